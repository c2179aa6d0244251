import os, json, time, hashlib, logging, yaml, numpy as np, pandas as pd
from typing import Any, Dict, List, Optional
from jsonschema import validate
from blake3 import blake3
from .core import Core
from .registry import build_registry, with_defaults
from ..schemas.schema import get_schema
from ...agent_iface.commands import Direction
from ...world_iface.rng import hash64
logger = logging.getLogger(__name__)
def load_scenario(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        cfg = yaml.safe_load(f) or {}
    validate(cfg, get_schema())
    cfg = apply_defaults(cfg)
    scenario_hash = stable_hash(cfg)
    cfg["_scenario_hash"] = scenario_hash
    return cfg
def apply_defaults(cfg: Dict[str, Any]) -> Dict[str, Any]:
    cfg = with_defaults(cfg)
    sim = cfg["simulation"]
    sim.setdefault("tick_ms", 200)
    sim.setdefault("player_step_ms", 400)
    out = cfg["outputs"]
    out.setdefault("deer_cadence", 1)
    out.setdefault("write_fields", True)
    return cfg
def stable_hash(obj: Any) -> str:
    s = json.dumps(obj, sort_keys=True, separators=(",", ":"))
    return hashlib.blake2b(s.encode("utf-8"), digest_size=16).hexdigest()
def build_core(cfg: Dict[str, Any]) -> Core:
    return Core({k: v for k, v in cfg.items() if not k.startswith("_")})
def write_checksums(run_dir: str, files: list[str]):
    os.makedirs(os.path.join(run_dir, "checksums"), exist_ok=True)
    for fp in files:
        with open(fp, "rb") as f:
            h = blake3()
            while True:
                b = f.read(1048576)
                if not b:
                    break
                h.update(b)
        out = os.path.join(run_dir, "checksums", os.path.basename(fp) + ".blake3")
        with open(out, "w") as o:
            o.write(h.hexdigest())
def world_tables(core: Core) -> Dict[str, pd.DataFrame]:
    ctx = core.ctx
    geo = ctx.artifact("geology")
    hydro = ctx.artifact("hydrology")
    veg = ctx.artifact("vegetation")
    tables: Dict[str, pd.DataFrame] = {}
    tables["formations"] = pd.DataFrame([f.to_dict() for f in geo.formations] if geo else [],
                                        columns=["formation_id", "kind", "center_x", "center_y", "radius", "rock_type", "elevation_effect", "strength"])
    tables["springs"] = pd.DataFrame([s.to_dict() for s in hydro.springs] if hydro else [],
                                     columns=["x", "y", "flow", "elevation", "rock_type", "score"])
    tables["rivers"] = pd.DataFrame([r.to_dict() for r in hydro.rivers] if hydro else [],
                                    columns=["river_id", "path_x", "path_y", "flow", "terminus", "length", "confluences"])
    tables["lakes"] = pd.DataFrame([l.to_dict() for l in hydro.lakes] if hydro else [],
                                   columns=["lake_id", "x", "y", "radius", "elevation", "rock_type"])
    tables["trees"] = pd.DataFrame([t.to_dict() for t in core.trees.trees], columns=["tree_id", "trunk_x", "trunk_y"])
    tables["forests"] = pd.DataFrame([f.to_dict() for f in veg.forests] if veg else [],
                                     columns=["forest_id", "center_x", "center_y", "width", "height", "density", "kind", "clearings"])
    return tables
def world_fields(core: Core) -> Dict[str, np.ndarray]:
    ctx = core.ctx
    shape = ctx.bounds.shape
    elev = ctx.artifact("elevation")
    geo = ctx.artifact("geology")
    hydro = ctx.artifact("hydrology")
    return {
        "elevation": elev.values if elev is not None else np.zeros(shape),
        "rock": geo.rock if geo is not None else np.full(shape, -1, dtype=np.int8),
        "classification": core.classifier.codes(),
        "moisture": hydro.moisture if hydro is not None else np.full(shape, 0.2),
    }
def run_headless(cfg: Dict[str, Any], ticks: int, out_dir: str, label: Optional[str] = None) -> str:
    t0 = time.time()
    os.makedirs(out_dir, exist_ok=True)
    core = build_core(cfg)
    reg = build_registry(cfg)
    run_label = label or time.strftime("%Y%m%d-%H%M%S")
    run_dir = os.path.join(out_dir, f"run-{run_label}")
    for sub in ("world", "grid", "streams"):
        os.makedirs(os.path.join(run_dir, sub), exist_ok=True)
    scenario_hash = cfg.get("_scenario_hash") or stable_hash(cfg)
    manifest = {
        "schema_version": "1.0",
        "scenario_hash": scenario_hash,
        "seed": core.seed,
        "created": int(time.time()),
        "ticks": int(ticks),
        "world": core.ctx.config.to_dict(),
        "bounds": core.bounds.to_dict(),
        "modules": reg,
        "generation_order": core.ctx.generation_order(),
        "label": run_label,
    }
    with open(os.path.join(run_dir, "manifest.json"), "w") as f:
        json.dump(manifest, f, separators=(",", ":"), sort_keys=True)
    with open(os.path.join(run_dir, "scenario.json"), "w") as f:
        json.dump(cfg, f, separators=(",", ":"), sort_keys=True)
    files: List[str] = [os.path.join(run_dir, "manifest.json"), os.path.join(run_dir, "scenario.json")]
    for name, df in world_tables(core).items():
        fp = os.path.join(run_dir, "world", f"{name}.parquet")
        df.to_parquet(fp, index=False)
        files.append(fp)
    if cfg["outputs"].get("write_fields", True):
        fp = os.path.join(run_dir, "grid", "fields.npz")
        np.savez_compressed(fp, **world_fields(core))
        files.append(fp)
    sim = cfg["simulation"]
    tick_ms = int(sim["tick_ms"])
    step_every = max(1, int(sim["player_step_ms"]) // tick_ms)
    cadence = max(1, int(cfg["outputs"]["deer_cadence"]))
    rng = np.random.default_rng(hash64(core.seed, "player", "walk"))
    directions = list(Direction)
    heading = directions[int(rng.integers(0, len(directions)))]
    deer_rows = []
    move_events = []
    for t in range(ticks):
        now = (t + 1) * tick_ms
        core.now = now
        if t % step_every == 0:
            if rng.random() < 0.25:
                heading = directions[int(rng.integers(0, len(directions)))]
            outcome = core.apply_move(heading.dx, heading.dy)
            if not outcome.moved:
                heading = directions[int(rng.integers(0, len(directions)))]
            move_events.append({"t": now, "event": "player_move", **outcome.to_dict()})
        core.tick(now)
        if t % cadence == 0:
            for d in core.deer:
                deer_rows.append((t, d.deer_id, d.x, d.y, d.state.value, len(d.reactions)))
    events = move_events + [dict(e, event="deer_state") for e in core.deer_manager.events]
    events += [dict(e, event="companion_state") for e in core.companion_manager.events]
    events.sort(key=lambda e: e["t"])
    ev_path = os.path.join(run_dir, "streams", "events.ndjson")
    with open(ev_path, "w") as s:
        for e in events:
            s.write(json.dumps(e, sort_keys=True) + "\n")
    files.append(ev_path)
    dfd = pd.DataFrame(deer_rows, columns=["tick", "deer_id", "x", "y", "state", "pending_reactions"])
    fp = os.path.join(run_dir, "streams", "deer.parquet")
    dfd.to_parquet(fp, index=False)
    files.append(fp)
    write_checksums(run_dir, files)
    dt = time.time() - t0
    manifest["runtime_s"] = dt
    manifest["statistics"] = core.terrain_statistics()
    manifest["deer"] = core.deer_manager.stats()
    manifest["companion"] = core.companion_manager.stats()
    with open(os.path.join(run_dir, "manifest.json"), "w") as f:
        json.dump(manifest, f, separators=(",", ":"), sort_keys=True)
    logger.info("Run written to %s in %.2fs", run_dir, dt)
    return run_dir
