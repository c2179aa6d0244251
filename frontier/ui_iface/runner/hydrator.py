import os
import json
import numpy as np
import pandas as pd
from typing import Dict, Any

def load_manifest(run_dir: str) -> Dict[str, Any]:
    with open(os.path.join(run_dir, "manifest.json"), "r") as f:
        return json.load(f)

def load_scenario_json(run_dir: str) -> Dict[str, Any]:
    with open(os.path.join(run_dir, "scenario.json"), "r") as f:
        return json.load(f)

def load_table(run_dir: str, name: str) -> pd.DataFrame:
    p = os.path.join(run_dir, "world", f"{name}.parquet")
    if not os.path.exists(p):
        raise FileNotFoundError(f"No '{name}' table in {run_dir}")
    return pd.read_parquet(p)

def load_fields(run_dir: str) -> Dict[str, np.ndarray]:
    p = os.path.join(run_dir, "grid", "fields.npz")
    if not os.path.exists(p):
        return {}
    with np.load(p) as data:
        return {k: data[k] for k in data.files}

def load_deer_stream(run_dir: str) -> pd.DataFrame:
    p = os.path.join(run_dir, "streams", "deer.parquet")
    if not os.path.exists(p):
        return pd.DataFrame(columns=["tick", "deer_id", "x", "y", "state", "pending_reactions"])
    return pd.read_parquet(p)

def load_events(run_dir: str) -> list[dict]:
    p = os.path.join(run_dir, "streams", "events.ndjson")
    if not os.path.exists(p):
        return []
    with open(p, "r") as f:
        return [json.loads(line) for line in f if line.strip()]

def deer_positions_at(run_dir: str, tick: int) -> pd.DataFrame:
    df = load_deer_stream(run_dir)
    if len(df) == 0:
        return df
    df = df[df["tick"] <= tick]
    if len(df) == 0:
        return df
    last = df["tick"].max()
    return df[df["tick"] == last].sort_values("deer_id").reset_index(drop=True)

def rebuild_world(run_dir: str):
    """Regenerate the world of a run from its scenario; the seed makes it identical."""
    from .engine import build_core
    return build_core(load_scenario_json(run_dir))

def verify_fields(run_dir: str) -> Dict[str, bool]:
    from .engine import world_fields
    stored = load_fields(run_dir)
    fresh = world_fields(rebuild_world(run_dir))
    return {k: bool(np.array_equal(stored[k], fresh[k])) for k in stored}
