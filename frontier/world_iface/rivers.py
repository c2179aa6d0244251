from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

Point = Tuple[int, int]

COMPASS = {
    (0, -1): "N", (0, 1): "S", (1, 0): "E", (-1, 0): "W",
    (1, -1): "NE", (-1, -1): "NW", (1, 1): "SE", (-1, 1): "SW",
}
# Stepping order for tracers: diagonals first, then cardinals.
COMPASS_STEPS = [(1, -1), (-1, -1), (1, 1), (-1, 1), (0, -1), (0, 1), (1, 0), (-1, 0)]

CONFLUENCE_GLYPH = "╬"
SOURCE_GLYPH = "●"
MOUTH_GLYPH = "▼"
SINGLE_GLYPHS = {"N": "║", "S": "║", "E": "═", "W": "═", "NE": "╗", "NW": "╔", "SE": "╝", "SW": "╚"}
JUNCTION_GLYPHS = {
    frozenset(("N", "E", "W")): "╦",
    frozenset(("S", "E", "W")): "╩",
    frozenset(("N", "S", "E")): "╣",
    frozenset(("N", "S", "W")): "╠",
    frozenset(("N", "S")): "║",
    frozenset(("E", "W")): "═",
}


def _sign(v: int) -> int:
    return (v > 0) - (v < 0)


def direction_name(dx: int, dy: int) -> Optional[str]:
    return COMPASS.get((_sign(dx), _sign(dy)))


def line_cells(x0: int, y0: int, x1: int, y1: int) -> List[Point]:
    """8-connected Bresenham line, both endpoints included."""
    cells = []
    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx + dy
    x, y = x0, y0
    while True:
        cells.append((x, y))
        if x == x1 and y == y1:
            break
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x += sx
        if e2 <= dx:
            err += dx
            y += sy
    return cells


def rasterize(path: Iterable[Point]) -> List[Point]:
    cells: List[Point] = []
    prev = None
    for p in path:
        p = (int(p[0]), int(p[1]))
        seg = [p] if prev is None else line_cells(prev[0], prev[1], p[0], p[1])[1:]
        for c in seg:
            if not cells or cells[-1] != c:
                cells.append(c)
        prev = p
    return cells


def river_glyph(dirs: Set[str], role: str, is_confluence: bool) -> str:
    if is_confluence:
        return CONFLUENCE_GLYPH
    if role == "source":
        return SOURCE_GLYPH
    if role == "mouth":
        return MOUTH_GLYPH
    if len(dirs) == 1:
        return SINGLE_GLYPHS[next(iter(dirs))]
    return JUNCTION_GLYPHS.get(frozenset(dirs), "~")


@dataclass
class RiverTile:
    x: int
    y: int
    inflow_dirs: List[str] = field(default_factory=list)
    outflow_dirs: List[str] = field(default_factory=list)
    role: str = "middle"
    rivers: List[str] = field(default_factory=list)
    is_confluence: bool = False
    glyph: str = "~"


class RiverSymbolizer:
    """Flow directions, roles and glyphs for every river tile."""

    def __init__(self, rivers):
        self.tiles: Dict[Point, RiverTile] = self.build(rivers)

    @staticmethod
    def build(rivers) -> Dict[Point, RiverTile]:
        acc: Dict[Point, dict] = {}
        for river in rivers:
            cells = river.cells
            if len(cells) < 2:
                continue
            last = len(cells) - 1
            for i, (x, y) in enumerate(cells):
                t = acc.setdefault((x, y), {"in": [], "out": [], "roles": set(), "rivers": []})
                if river.river_id not in t["rivers"]:
                    t["rivers"].append(river.river_id)
                if i > 0:
                    px, py = cells[i - 1]
                    t["in"].append(direction_name(x - px, y - py))
                if i < last:
                    nx, ny = cells[i + 1]
                    t["out"].append(direction_name(nx - x, ny - y))
                t["roles"].add("source" if i == 0 else "mouth" if i == last else "middle")
        points = {c.point for river in rivers for c in river.confluences}
        tiles = {}
        for pos in sorted(acc):
            t = acc[pos]
            roles = t["roles"]
            role = "source" if "source" in roles else "mouth" if "mouth" in roles else "middle"
            is_conf = len(t["rivers"]) > 1 or pos in points
            dirs = set(t["out"]) or set(t["in"])
            tiles[pos] = RiverTile(
                x=pos[0],
                y=pos[1],
                inflow_dirs=sorted(set(t["in"])),
                outflow_dirs=sorted(set(t["out"])),
                role=role,
                rivers=list(t["rivers"]),
                is_confluence=is_conf,
                glyph=river_glyph(dirs, role, is_conf),
            )
        return tiles

    def glyph_at(self, x: int, y: int) -> Optional[str]:
        t = self.tiles.get((x, y))
        return t.glyph if t is not None else None

    def confluence_tiles(self) -> List[RiverTile]:
        return [t for t in self.tiles.values() if t.is_confluence]
