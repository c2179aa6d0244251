import sys
import numpy as np

if len(sys.argv) < 2:
    print("Usage: python show_initial_state.py <scenario_yaml>")
    sys.exit(1)

scenario_path = sys.argv[1]

from frontier.ui_iface.runner.engine import load_scenario, build_core

cfg = load_scenario(scenario_path)
core = build_core(cfg)
ctx = core.ctx
stats = core.terrain_statistics()
b = core.bounds

print("=" * 60)
print("INITIAL WORLD")
print("=" * 60)
print(f"Region: x {b.min_x}..{b.max_x}, y {b.min_y}..{b.max_y} ({b.width}x{b.height}), seed {core.seed}")
print(f"Generation order: {' -> '.join(ctx.generation_order())}")
print()

elev = ctx.artifact("elevation")
if elev is not None:
    values = elev.values
    print(f"ELEVATION ({elev.mode} mode):")
    print(f"  Range: [{values.min():.3f}, {values.max():.3f}]")
    print(f"  Mean: {values.mean():.3f}")
    print(f"  Std Dev: {values.std():.3f}")
    bins = [0.0, 0.2, 0.4, 0.6, 0.8, 1.0]
    hist, _ = np.histogram(values, bins=bins)
    print(f"  Distribution:")
    for i in range(len(bins)-1):
        pct = 100.0 * hist[i] / values.size
        print(f"    {bins[i]:.1f}-{bins[i+1]:.1f}: {hist[i]:6d} cells ({pct:5.1f}%)")
    print()

print("TERRAIN:")
total = b.width * b.height
for name, n in stats["terrain"].items():
    print(f"  {name:10s} {n:6d} cells ({100.0 * n / total:5.1f}%)")
print()

hydro = ctx.artifact("hydrology")
if hydro is not None:
    print("HYDROLOGY:")
    print(f"  Springs: {len(hydro.springs)}")
    for r in hydro.rivers:
        print(f"  {r.river_id}: {r.length} cells, ends at {r.terminus}, confluences {[c.other_id for c in r.confluences]}")
    for l in hydro.lakes:
        print(f"  lake {l.lake_id}: ({l.x}, {l.y}) radius {l.radius:.1f} on {l.rock_type}")
    print()

print(f"Trees: {stats['trees']}   Forests: {stats.get('forests', 0)}   Deer: {stats['deer']}")
print(f"Player starts at {core.player} facing {core.fog.facing_name()}")
if core.companion is not None:
    print(f"Companion at ({core.companion.x}, {core.companion.y}) {core.companion.state.value}")
print("=" * 60)
