import logging
import math
import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from scipy.ndimage import distance_transform_edt
from .context import Bounds
from .geology import ROCK_CODE, ROCK_TYPES
from .module_base import TerrainModule
from .rivers import COMPASS_STEPS, RiverSymbolizer, RiverTile, line_cells, rasterize
from .rng import rand

logger = logging.getLogger(__name__)

Point = Tuple[int, int]
TERMINI = ("sea", "lake", "river", "edge", "stalled", "exhausted")


@dataclass
class Spring:
    x: int
    y: int
    flow: float
    elevation: float
    rock_type: str
    score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "flow": float(self.flow), "elevation": float(self.elevation),
                "rock_type": self.rock_type, "score": float(self.score)}


@dataclass
class Confluence:
    other_id: str
    point: Point


@dataclass
class River:
    river_id: str
    path: List[Point]
    flow: float = 0.5
    spring: Optional[Spring] = None
    terminus: str = "stalled"
    confluences: List[Confluence] = field(default_factory=list)
    cells: Optional[List[Point]] = None

    def __post_init__(self):
        self.path = [(int(x), int(y)) for x, y in self.path]
        if self.cells is None:
            self.cells = rasterize(self.path)

    @property
    def length(self) -> int:
        return len(self.cells)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "river_id": self.river_id,
            "path_x": [p[0] for p in self.path],
            "path_y": [p[1] for p in self.path],
            "flow": float(self.flow),
            "terminus": self.terminus,
            "length": self.length,
            "confluences": ",".join(c.other_id for c in self.confluences),
        }


@dataclass
class Lake:
    lake_id: int
    x: int
    y: int
    radius: float
    elevation: float
    rock_type: str

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(x - self.x, y - self.y)

    def contains(self, x: float, y: float) -> bool:
        return self.distance_to(x, y) <= self.radius

    def to_dict(self) -> Dict[str, Any]:
        return {"lake_id": self.lake_id, "x": self.x, "y": self.y, "radius": float(self.radius),
                "elevation": float(self.elevation), "rock_type": self.rock_type}


@dataclass
class HydrologyResult:
    bounds: Bounds
    springs: List[Spring]
    rivers: List[River]
    lakes: List[Lake]
    river_mask: np.ndarray
    lake_id: np.ndarray
    water_distance: np.ndarray
    moisture: np.ndarray
    tiles: Dict[Point, RiverTile] = field(default_factory=dict)

    @classmethod
    def empty(cls, bounds: Bounds) -> "HydrologyResult":
        return cls(
            bounds=bounds,
            springs=[],
            rivers=[],
            lakes=[],
            river_mask=np.zeros(bounds.shape, dtype=bool),
            lake_id=np.full(bounds.shape, -1, dtype=np.int16),
            water_distance=np.full(bounds.shape, np.inf),
            moisture=np.full(bounds.shape, 0.2),
        )

    def _index(self, x: int, y: int) -> Optional[Tuple[int, int]]:
        if not self.bounds.contains(x, y):
            return None
        return self.bounds.to_index(x, y)

    def is_on_river(self, x: int, y: int) -> bool:
        idx = self._index(x, y)
        return idx is not None and bool(self.river_mask[idx])

    def lake_at(self, x: int, y: int) -> Optional[Lake]:
        idx = self._index(x, y)
        if idx is None or self.lake_id[idx] < 0:
            return None
        return self.lakes[int(self.lake_id[idx])]

    def is_in_lake(self, x: int, y: int) -> bool:
        return self.lake_at(x, y) is not None

    def is_water(self, x: int, y: int) -> bool:
        return self.is_on_river(x, y) or self.is_in_lake(x, y)

    def distance_to_water(self, x: int, y: int) -> float:
        idx = self._index(x, y)
        return float("inf") if idx is None else float(self.water_distance[idx])

    def moisture_at(self, x: int, y: int) -> float:
        idx = self._index(x, y)
        return 0.2 if idx is None else float(self.moisture[idx])

    def river(self, river_id: str) -> Optional[River]:
        for r in self.rivers:
            if r.river_id == river_id:
                return r
        return None


def find_confluences(rivers: Sequence[River], max_distance: float) -> None:
    """Record, in both rivers, the midpoint of the first point pair closer than max_distance."""
    for i in range(len(rivers)):
        a = np.asarray(rivers[i].path, dtype=np.int64)
        for j in range(i + 1, len(rivers)):
            b = np.asarray(rivers[j].path, dtype=np.int64)
            if a.size == 0 or b.size == 0:
                continue
            d = np.hypot(a[:, None, 0] - b[None, :, 0], a[:, None, 1] - b[None, :, 1])
            hits = np.argwhere(d <= max_distance)
            if hits.size == 0:
                continue
            p, q = hits[0]
            point = (int((a[p, 0] + b[q, 0]) // 2), int((a[p, 1] + b[q, 1]) // 2))
            rivers[i].confluences.append(Confluence(rivers[j].river_id, point))
            rivers[j].confluences.append(Confluence(rivers[i].river_id, point))


class HydrologyModule(TerrainModule):
    name = "hydrology"
    default_priority = 90
    dependencies = ("geology", "elevation")

    @classmethod
    def default_config(cls) -> Dict[str, Any]:
        return {
            "spring_count": 8,
            "spring_elevation_min": 0.25,
            "spring_elevation_max": 0.8,
            "spring_candidate_factor": 10,
            "spring_spacing": 40,
            "river_step_size": 2,
            "max_river_length": 100,
            "min_river_length": 10,
            "hard_rock_avoidance": 0.4,
            "soft_rock_preference": 0.6,
            "clay_channeling": 0.4,
            "gradient_step": 2,
            "sea_level": 0.12,
            "lake_stop_distance": 6,
            "lake_count": 4,
            "min_lake_radius": 6,
            "max_lake_radius": 18,
            "lake_spacing": 35,
            "lake_stride": 15,
            "lake_clay_preference": 0.6,
            "lake_low_elevation_max": 0.3,
            "lake_hard_rock_avoidance": 0.4,
            "lake_feed_distance": 25,
            "lake_feed_bonus": 0.3,
            "confluence_enabled": True,
            "confluence_distance": 8,
        }

    def uphill_tolerance(self) -> float:
        c = self.config
        best = max(c["soft_rock_preference"], c["clay_channeling"], -c["hard_rock_avoidance"]) + 0.3
        return max(0.0, (best - 2.0) / 10.0)

    def generate(self, ctx) -> HydrologyResult:
        c = self.config
        b = ctx.bounds
        geo = ctx.artifact("geology")
        elev = ctx.artifact("elevation")
        if geo is None or elev is None:
            missing = "elevation" if elev is None else "geology"
            logger.warning("Hydrology needs %s; producing no water", missing)
            return HydrologyResult.empty(b)
        springs = self.select_springs(ctx, elev, geo)
        rivers: List[River] = []
        river_cells: Dict[Point, str] = {}
        min_points = math.ceil(c["min_river_length"] / c["river_step_size"])
        for i, spring in enumerate(springs):
            try:
                path, terminus = self.trace_river(ctx, spring, i, elev, geo, river_cells=river_cells)
            except (ValueError, IndexError, ArithmeticError) as e:
                logger.warning("Trace from spring %d at (%d, %d) failed: %s", i, spring.x, spring.y, e)
                continue
            if len(path) < min_points:
                logger.info("River %d too short (%d points < %d)", i, len(path), min_points)
                continue
            river = River(f"river_{i}", path, flow=spring.flow, spring=spring, terminus=terminus)
            rivers.append(river)
            for cell in river.cells:
                river_cells.setdefault(cell, river.river_id)
        river_mask = np.zeros(b.shape, dtype=bool)
        for (x, y) in river_cells:
            river_mask[b.to_index(x, y)] = True
        lakes = self.place_lakes(ctx, elev, geo, river_mask, rivers)
        reach = float(c["lake_stop_distance"])
        for r in rivers:
            if r.terminus in ("stalled", "exhausted"):
                x, y = r.path[-1]
                if any(lake.distance_to(x, y) <= lake.radius + reach for lake in lakes):
                    r.terminus = "lake"
        if c["confluence_enabled"]:
            find_confluences(rivers, float(c["confluence_distance"]))
        X, Y = b.grid()
        lake_id = np.full(b.shape, -1, dtype=np.int16)
        best = np.full(b.shape, np.inf)
        for lake in lakes:
            d = np.hypot(X - lake.x, Y - lake.y)
            inside = (d <= lake.radius) & (d < best)
            lake_id[inside] = lake.lake_id
            best = np.where(inside, d, best)
        water = river_mask | (lake_id >= 0)
        water_distance = distance_transform_edt(~water) if water.any() else np.full(b.shape, np.inf)
        moisture = np.select(
            [water, water_distance <= 5, water_distance <= 10, water_distance <= 20],
            [1.0, 0.8, 0.6, 0.4],
            0.2,
        )
        logger.info("Hydrology: %d springs, %d rivers, %d lakes", len(springs), len(rivers), len(lakes))
        return HydrologyResult(
            bounds=b,
            springs=springs,
            rivers=rivers,
            lakes=lakes,
            river_mask=river_mask,
            lake_id=lake_id,
            water_distance=water_distance,
            moisture=moisture,
            tiles=RiverSymbolizer(rivers).tiles,
        )

    def select_springs(self, ctx, elev, geo) -> List[Spring]:
        c = self.config
        b = ctx.bounds
        lo = float(c["spring_elevation_min"])
        hi = float(c["spring_elevation_max"])
        values = elev.values
        mask = (values >= lo) & (values <= hi)
        m = min(10, b.width // 4, b.height // 4)
        if m > 0:
            mask[:m, :] = False
            mask[-m:, :] = False
            mask[:, :m] = False
            mask[:, -m:] = False
        idx = np.flatnonzero(mask)
        if idx.size == 0:
            logger.warning("No cells between elevation %.2f and %.2f; no springs", lo, hi)
            return []
        rng = ctx.rng("hydrology", "springs")
        n = int(c["spring_count"]) * int(c["spring_candidate_factor"])
        candidates = sorted({int(idx[int(rng.random() * idx.size)]) for _ in range(n)})
        grad = elev.gradient_field(int(c["gradient_step"]))
        hard, soft = ROCK_CODE["hard"], ROCK_CODE["soft"]
        scored = []
        for flat in candidates:
            iy, ix = divmod(flat, b.width)
            e = float(values[iy, ix])
            score = 0.4 * (e - lo) / (hi - lo)
            window = geo.rock[max(0, iy - 5):iy + 6, max(0, ix - 5):ix + 6]
            has_hard = bool((window == hard).any())
            if has_hard and bool((window == soft).any()):
                score += 0.4
            elif has_hard:
                score += 0.2
            if 0.02 < grad[iy, ix] < 0.15:
                score += 0.2
            scored.append((score, b.min_x + ix, b.min_y + iy, e))
        scored.sort(key=lambda s: (-s[0], s[2], s[1]))
        springs: List[Spring] = []
        spacing = float(c["spring_spacing"])
        for score, x, y, e in scored:
            if len(springs) >= int(c["spring_count"]):
                break
            if any(math.hypot(x - s.x, y - s.y) < spacing for s in springs):
                continue
            springs.append(Spring(x, y, flow=0.5 + 0.5 * min(1.0, score), elevation=e,
                                  rock_type=geo.rock_type_at(x, y), score=score))
        return springs

    def direction_score(self, here: float, nx: int, ny: int, elev, geo) -> float:
        c = self.config
        drop = here - elev.at(nx, ny)
        score = drop * 10.0
        if drop < 0:
            score -= 2.0
        rock = geo.rock_type_at(nx, ny)
        if rock == "soft":
            score += c["soft_rock_preference"]
        elif rock == "clay":
            score += c["clay_channeling"]
        else:
            score -= c["hard_rock_avoidance"]
        g = elev.gradient(nx, ny, int(c["gradient_step"]))[2]
        if 0.01 < g < 0.2:
            score += 0.3
        elif g > 0.3:
            score -= 0.5
        return score

    def trace_river(self, ctx, spring: Spring, index: int, elev, geo,
                    river_cells: Optional[Dict[Point, str]] = None) -> Tuple[List[Point], str]:
        """Walk downhill from a spring; returns the path and why it stopped.

        Lakes are placed after every river is traced, so a river that ends
        beside one is retagged `lake` afterwards rather than stopped here.
        """
        c = self.config
        b = ctx.bounds
        s = int(c["river_step_size"])
        sea = float(c["sea_level"])
        rng = ctx.rng("hydrology", "trace", index)
        x, y = spring.x, spring.y
        path = [(x, y)]
        seen = {(x, y)}
        terminus = "exhausted"
        for _ in range(int(c["max_river_length"]) // s):
            here = elev.at(x, y)
            options = []
            for k, (dx, dy) in enumerate(COMPASS_STEPS):
                nx, ny = x + dx * s, y + dy * s
                if not b.contains(nx, ny) or (nx, ny) in seen:
                    continue
                score = self.direction_score(here, nx, ny, elev, geo)
                if score >= 0:
                    options.append((score, k, nx, ny))
            if not options:
                near_edge = x - b.min_x < s or b.max_x - x < s or y - b.min_y < s or b.max_y - y < s
                terminus = "edge" if near_edge else "stalled"
                break
            options.sort(key=lambda o: (-o[0], o[1]))
            _, _, nx, ny = options[int(rng.random() * min(3, len(options)))]
            joined = False
            if river_cells:
                for cell in line_cells(x, y, nx, ny)[1:]:
                    if cell in river_cells and elev.at(*cell) <= here:
                        nx, ny = cell
                        joined = True
                        break
            x, y = nx, ny
            path.append((x, y))
            seen.add((x, y))
            if joined:
                terminus = "river"
                break
            if elev.at(x, y) <= sea:
                terminus = "sea"
                break
        return path, terminus

    def water_supply(self, rivers: Sequence[River]) -> float:
        """Share of the lake size range the river network can fill, in [0.5, 1]."""
        total = sum(r.flow for r in rivers)
        return min(1.0, 0.5 + 0.5 * total / max(1, int(self.config["lake_count"])))

    def place_lakes(self, ctx, elev, geo, river_mask: np.ndarray, rivers: Sequence[River] = ()) -> List[Lake]:
        c = self.config
        b = ctx.bounds
        values = elev.values
        low_max = float(c["lake_low_elevation_max"])
        dist_river = distance_transform_edt(~river_mask) if river_mask.any() else np.full(b.shape, np.inf)
        grad = elev.gradient_field(int(c["gradient_step"]))
        stride = int(c["lake_stride"])
        feed = float(c["lake_feed_distance"])
        mouths = [r.path[-1] for r in rivers if r.terminus in ("stalled", "exhausted")]
        candidates = []
        for iy in range(0, b.height, stride):
            for ix in range(0, b.width, stride):
                e = float(values[iy, ix])
                if e > low_max:
                    continue
                score = (low_max - e) * 2.0
                rock = ROCK_TYPES[int(geo.rock[iy, ix])]
                if rock == "clay":
                    score += c["lake_clay_preference"]
                elif rock == "hard":
                    score -= c["lake_hard_rock_avoidance"]
                else:
                    score += 0.2
                if grad[iy, ix] < 0.05:
                    score += 0.3
                if 5 < dist_river[iy, ix] < 20:
                    score += 0.2
                x, y = b.min_x + ix, b.min_y + iy
                if any(math.hypot(x - mx, y - my) <= feed for mx, my in mouths):
                    score += c["lake_feed_bonus"]
                if score > 0:
                    candidates.append((score, x, y, iy, ix, e, rock))
        candidates.sort(key=lambda t: (-t[0], t[2], t[1]))
        lakes: List[Lake] = []
        lo_r, hi_r = float(c["min_lake_radius"]), float(c["max_lake_radius"])
        supply = self.water_supply(rivers)
        for score, x, y, iy, ix, e, rock in candidates:
            if len(lakes) >= int(c["lake_count"]):
                break
            if any(math.hypot(x - l.x, y - l.y) < c["lake_spacing"] for l in lakes):
                continue
            radius = lo_r + rand(ctx.config.seed, "hydrology", "lake", x, y) * (hi_r - lo_r) * supply
            # lakes never swallow a river cell
            if dist_river[iy, ix] <= radius + 1:
                continue
            lakes.append(Lake(len(lakes), x, y, radius, e, rock))
        return lakes

    def affects_position(self, x: int, y: int, ctx) -> bool:
        h = self.artifact(ctx)
        return h is not None and (h.is_water(x, y) or h.distance_to_water(x, y) <= 10)

    def get_data_at(self, x: int, y: int, ctx) -> Dict[str, Any]:
        h = self.artifact(ctx)
        terrain = None
        features: List[str] = []
        if h.is_in_lake(x, y):
            terrain = "lake"
            features.append("water-lake")
        elif h.is_on_river(x, y):
            terrain = "river"
            features.append("water-river")
        elif h.distance_to_water(x, y) <= 8:
            features.append("near-water")
        return {"terrain": terrain, "features": features, "moisture": h.moisture_at(x, y)}
