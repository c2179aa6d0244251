import matplotlib
import matplotlib.pyplot as plt
import matplotlib.colors as mcolors
from .hydrator import load_manifest, load_fields, load_table, load_deer_stream
from ...world_iface.classifier import CLASSES
CLASS_COLORS = {
    "plains": "#9bc46b",
    "foothills": "#c2b280",
    "river": "#3a7bd5",
    "lake": "#1f4e9c",
    "rocks": "#8d8d8d",
    "boulders": "#6e6259",
    "stone": "#b9b9b9",
}
STATE_COLORS = {"wandering": "tab:green", "alert": "tab:orange", "fleeing": "tab:red"}
def create_colormap(field_name: str) -> mcolors.Colormap:
    if field_name == "classification":
        return mcolors.ListedColormap([CLASS_COLORS[c] for c in CLASSES])
    elif field_name == "elevation":
        return matplotlib.colormaps["terrain"]
    elif field_name == "moisture":
        return plt.cm.Blues
    elif field_name == "rock":
        return plt.cm.tab10
    else:
        return plt.cm.viridis
def world_extent(manifest: dict) -> list:
    b = manifest["bounds"]
    return [b["min_x"] - 0.5, b["max_x"] + 0.5, b["max_y"] + 0.5, b["min_y"] - 0.5]
def plot_field(run_dir: str, field: str = "classification", title: str = None, save_path: str = None):
    m = load_manifest(run_dir)
    fields = load_fields(run_dir)
    if field not in fields:
        raise ValueError(f"Field '{field}' not found; available: {sorted(fields)}")
    plt.figure(figsize=(10, 8))
    data = fields[field]
    cmap = create_colormap(field)
    if field == "classification":
        im = plt.imshow(data, cmap=cmap, vmin=-0.5, vmax=len(CLASSES) - 0.5, extent=world_extent(m), interpolation="nearest")
        cb = plt.colorbar(im, ticks=range(len(CLASSES)))
        cb.ax.set_yticklabels(CLASSES)
    else:
        im = plt.imshow(data, cmap=cmap, extent=world_extent(m))
        plt.colorbar(im, label=field)
    plt.title(title or f"{field.title()} (seed {m['seed']})")
    plt.xlabel("X")
    plt.ylabel("Y")
    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.show()
def plot_world(run_dir: str, save_path: str = None):
    m = load_manifest(run_dir)
    fields = load_fields(run_dir)
    fig, axes = plt.subplots(1, 2, figsize=(16, 8))
    extent = world_extent(m)
    ax = axes[0]
    if "elevation" in fields:
        im = ax.imshow(fields["elevation"], cmap=create_colormap("elevation"), extent=extent)
        plt.colorbar(im, ax=ax, label="elevation")
    rivers = load_table(run_dir, "rivers")
    for _, r in rivers.iterrows():
        ax.plot(list(r["path_x"]), list(r["path_y"]), color="#1f4e9c", linewidth=1.2)
    lakes = load_table(run_dir, "lakes")
    for _, l in lakes.iterrows():
        ax.add_patch(plt.Circle((l["x"], l["y"]), l["radius"], color="#3a7bd5", alpha=0.6))
    springs = load_table(run_dir, "springs")
    if len(springs):
        ax.scatter(springs["x"], springs["y"], s=12, c="white", edgecolors="black", label="springs")
        ax.legend(loc="upper right")
    ax.set_title("Elevation and Water")
    ax = axes[1]
    if "classification" in fields:
        ax.imshow(fields["classification"], cmap=create_colormap("classification"), vmin=-0.5,
                  vmax=len(CLASSES) - 0.5, extent=extent, interpolation="nearest")
    trees = load_table(run_dir, "trees")
    if len(trees):
        ax.scatter(trees["trunk_x"], trees["trunk_y"], s=6, marker="^", c="#1b5e20", label="trees")
        ax.legend(loc="upper right")
    ax.set_title("Terrain Classes")
    for a in axes:
        a.set_xlabel("X")
        a.set_ylabel("Y")
    plt.tight_layout()
    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.show()
def plot_deer_tracks(run_dir: str, save_path: str = None):
    m = load_manifest(run_dir)
    fields = load_fields(run_dir)
    df = load_deer_stream(run_dir)
    fig, axes = plt.subplots(1, 2, figsize=(16, 7))
    ax = axes[0]
    if "classification" in fields:
        ax.imshow(fields["classification"], cmap=create_colormap("classification"), vmin=-0.5,
                  vmax=len(CLASSES) - 0.5, extent=world_extent(m), interpolation="nearest", alpha=0.5)
    for deer_id, track in df.groupby("deer_id"):
        track = track.sort_values("tick")
        ax.plot(track["x"], track["y"], linewidth=1, label=f"deer {deer_id}")
        ax.scatter(track["x"].iloc[-1], track["y"].iloc[-1], s=20)
    ax.set_title("Deer Tracks")
    ax.set_xlabel("X")
    ax.set_ylabel("Y")
    ax = axes[1]
    if len(df):
        counts = df.groupby(["tick", "state"]).size().unstack(fill_value=0)
        for state in counts.columns:
            ax.plot(counts.index, counts[state], label=state, color=STATE_COLORS.get(state))
        ax.legend()
    ax.set_title("Herd State Over Time")
    ax.set_xlabel("Tick")
    ax.set_ylabel("Deer")
    ax.grid(True, alpha=0.3)
    plt.tight_layout()
    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.show()
