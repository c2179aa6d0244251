import os, json, logging, typer, yaml
from jsonschema import validate
from ..schemas.schema import get_schema
from .registry import scenario_defaults
app = typer.Typer(add_completion=False)
@app.callback()
def main(log_level: str = typer.Option("WARNING", help="Logging level")):
    logging.basicConfig(level=getattr(logging, log_level.upper(), logging.WARNING),
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
@app.command()
def init():
    d = scenario_defaults()
    out = os.path.join("frontier", "ui_iface", "scenarios")
    os.makedirs(out, exist_ok=True)
    p = os.path.join(out, "default.yaml")
    with open(p, "w") as f:
        yaml.safe_dump(d, f, sort_keys=True, allow_unicode=True)
    typer.echo(p)
@app.command()
def validate_scenario(path: str):
    from .engine import stable_hash
    with open(path, "r") as f:
        cfg = yaml.safe_load(f) or {}
    validate(cfg, get_schema())
    typer.echo(stable_hash(cfg))
@app.command()
def run(path: str, ticks: int = 256, out: str = "runs", label: str = None):
    from .engine import load_scenario, run_headless
    cfg = load_scenario(path)
    rd = run_headless(cfg, ticks, out, label)
    typer.echo(os.path.abspath(rd))
@app.command()
def inspect(run_dir: str):
    from .hydrator import load_manifest, load_deer_stream
    m = load_manifest(run_dir)
    typer.echo(json.dumps({"label": m.get("label"), "seed": m.get("seed"), "ticks": m.get("ticks"), "runtime_s": m.get("runtime_s")}, separators=(",", ":"), sort_keys=True))
    typer.echo(json.dumps(m.get("statistics", {}), indent=2, sort_keys=True))
    df = load_deer_stream(run_dir)
    if len(df):
        last = df[df["tick"] == df["tick"].max()]
        typer.echo(last.to_string(index=False))
@app.command()
def render(path: str, width: int = 60, height: int = 24, x: int = None, y: int = None,
           seed: int = None, fog: bool = True, moves: str = ""):
    from .engine import load_scenario, build_core
    from .render import TextBuffer, Viewport
    from ...agent_iface.commands import Direction
    cfg = load_scenario(path)
    if seed is not None:
        cfg["world"]["seed"] = seed
    cfg["fog_of_war"]["enabled"] = fog
    core = build_core(cfg)
    for step in filter(None, moves.split(",")):
        d = Direction.parse(step.strip())
        core.apply_move(d.dx, d.dy)
    px, py = core.player
    vp = Viewport.centered_on(px if x is None else x, py if y is None else y, width, height)
    buf = TextBuffer()
    core.render_view(buf, vp)
    typer.echo(buf.text())
    dog = core.companion
    typer.echo(f"player=({px},{py}) facing={core.fog.facing_name()} deer={len(core.deer)} "
               f"companion={dog.state.value if dog is not None else 'none'}")
@app.command()
def visualize(run_dir: str, plot_type: str = "world", field: str = "classification", save: str = None):
    from .viz import plot_field, plot_world, plot_deer_tracks
    if plot_type == "field":
        try:
            plot_field(run_dir, field, save_path=save)
        except ValueError as e:
            typer.echo(f"Error: {e}")
    elif plot_type == "world":
        plot_world(run_dir, save_path=save)
    elif plot_type == "deer":
        plot_deer_tracks(run_dir, save_path=save)
    else:
        typer.echo(f"Unknown plot type: {plot_type}. Available: field, world, deer")
if __name__ == "__main__":
    app()
