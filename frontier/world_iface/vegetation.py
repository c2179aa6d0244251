import logging
import math
import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from .context import Bounds
from .module_base import TerrainModule, smoothstep

logger = logging.getLogger(__name__)

COVERAGE_TYPES = ("none", "forest", "clearing", "grassland", "scrubland", "alpine", "desert")
COVERAGE_CODE = {name: i for i, name in enumerate(COVERAGE_TYPES)}


@dataclass
class Clearing:
    x: float
    y: float
    radius: float


@dataclass
class Forest:
    forest_id: int
    center_x: int
    center_y: int
    width: float
    height: float
    density: float
    kind: str
    clearings: List[Clearing] = field(default_factory=list)

    def mask(self, X: np.ndarray, Y: np.ndarray) -> np.ndarray:
        nx = (X - self.center_x) / (self.width / 2.0)
        ny = (Y - self.center_y) / (self.height / 2.0)
        return nx * nx + ny * ny <= 1.0

    def contains(self, x: float, y: float) -> bool:
        return bool(self.mask(np.asarray(x, dtype=float), np.asarray(y, dtype=float)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "forest_id": self.forest_id,
            "center_x": self.center_x,
            "center_y": self.center_y,
            "width": float(self.width),
            "height": float(self.height),
            "density": float(self.density),
            "kind": self.kind,
            "clearings": len(self.clearings),
        }


@dataclass
class Grassland:
    center_x: int
    center_y: int
    radius: float
    density: float
    kind: str


@dataclass
class VegetationField:
    bounds: Bounds
    forests: List[Forest]
    grasslands: List[Grassland]
    coverage: np.ndarray
    density: np.ndarray
    forest_index: np.ndarray

    def coverage_at(self, x: int, y: int) -> str:
        if not self.bounds.contains(x, y):
            return "none"
        return COVERAGE_TYPES[int(self.coverage[self.bounds.to_index(x, y)])]

    def density_at(self, x: int, y: int) -> float:
        if not self.bounds.contains(x, y):
            return 0.0
        return float(self.density[self.bounds.to_index(x, y)])

    def forest_at(self, x: int, y: int) -> Optional[Forest]:
        if not self.bounds.contains(x, y):
            return None
        i = int(self.forest_index[self.bounds.to_index(x, y)])
        return self.forests[i] if i >= 0 else None

    def is_forested(self, x: int, y: int) -> bool:
        return self.coverage_at(x, y) == "forest"


class VegetationModule(TerrainModule):
    name = "vegetation"
    default_priority = 70
    dependencies = ("elevation", "hydrology")

    @classmethod
    def default_config(cls) -> Dict[str, Any]:
        return {
            "forest_count": 4,
            "min_forest_size": 30,
            "max_forest_size": 80,
            "forest_spacing": 40,
            "forest_elevation_min": 0.25,
            "forest_elevation_max": 0.75,
            "forest_moisture_min": 0.4,
            "forest_density": 0.8,
            "forest_stride": 20,
            "clearings_enabled": True,
            "clearing_chance": 0.3,
            "min_clearing_radius": 8,
            "max_clearing_radius": 15,
            "grasslands_enabled": True,
            "grassland_stride": 25,
            "grassland_elevation_min": 0.15,
            "grassland_elevation_max": 0.5,
            "grassland_moisture_min": 0.3,
            "tree_line_elevation": 0.8,
        }

    def generate(self, ctx) -> VegetationField:
        b = ctx.bounds
        elev = ctx.artifact("elevation")
        hydro = ctx.artifact("hydrology")
        if elev is None:
            logger.warning("Vegetation needs elevation; producing bare ground")
            return VegetationField(b, [], [], np.zeros(b.shape, dtype=np.int8),
                                   np.zeros(b.shape), np.full(b.shape, -1, dtype=np.int16))
        if hydro is not None:
            moisture = hydro.moisture
            water = hydro.river_mask | (hydro.lake_id >= 0)
        else:
            moisture = np.full(b.shape, 0.3)
            water = np.zeros(b.shape, dtype=bool)
        forests = self.place_forests(ctx, elev, moisture, water)
        grasslands = self.place_grasslands(ctx, elev, moisture, water, forests) if self.config["grasslands_enabled"] else []
        coverage, density, forest_index = self.coverage(ctx, elev, moisture, forests, grasslands)
        logger.info("Vegetation: %d forests, %d grasslands", len(forests), len(grasslands))
        return VegetationField(b, forests, grasslands, coverage, density, forest_index)

    def suitability(self, e: float, moisture: float, gradient: float, wet: bool) -> float:
        c = self.config
        if e < c["forest_elevation_min"] or e > c["forest_elevation_max"] or e > c["tree_line_elevation"] or wet:
            return 0.0
        s = float(smoothstep(1.0 - abs(e - 0.5) / 0.3)) * 0.4
        if moisture >= c["forest_moisture_min"]:
            s += min(1.0, moisture / 0.8) * 0.4
        s += (1.0 if 0.05 < gradient < 0.2 else 0.5) * 0.2
        return max(0.0, min(1.0, s))

    @staticmethod
    def forest_kind(e: float, moisture: float) -> str:
        if e > 0.6 and moisture < 0.6:
            return "coniferous"
        if moisture > 0.7:
            return "rainforest"
        if e < 0.4:
            return "lowland"
        return "mixed"

    def place_forests(self, ctx, elev, moisture, water) -> List[Forest]:
        c = self.config
        b = ctx.bounds
        grad = elev.gradient_field(3)
        stride = int(c["forest_stride"])
        candidates = []
        for iy in range(0, b.height, stride):
            for ix in range(0, b.width, stride):
                s = self.suitability(float(elev.values[iy, ix]), float(moisture[iy, ix]), float(grad[iy, ix]), bool(water[iy, ix]))
                if s > 0.5:
                    candidates.append((s, b.min_x + ix, b.min_y + iy, iy, ix))
        candidates.sort(key=lambda t: (-t[0], t[2], t[1]))
        forests: List[Forest] = []
        for s, x, y, iy, ix in candidates:
            if len(forests) >= int(c["forest_count"]):
                break
            if any(math.hypot(f.center_x - x, f.center_y - y) < c["forest_spacing"] for f in forests):
                continue
            rng = ctx.rng("vegetation", "forest", x, y)
            size = rng.uniform(float(c["min_forest_size"]), float(c["max_forest_size"]))
            forest = Forest(
                forest_id=len(forests),
                center_x=x,
                center_y=y,
                width=size,
                height=size * rng.uniform(0.8, 1.2),
                density=float(c["forest_density"]),
                kind=self.forest_kind(float(elev.values[iy, ix]), float(moisture[iy, ix])),
            )
            if c["clearings_enabled"]:
                forest.clearings = self.place_clearings(ctx, forest)
            forests.append(forest)
        return forests

    def place_clearings(self, ctx, forest: Forest) -> List[Clearing]:
        c = self.config
        rng = ctx.rng("vegetation", "clearings", forest.forest_id)
        out = []
        for _ in range(int(forest.width * forest.height // 2000) + 1):
            if not rng.chance(float(c["clearing_chance"])):
                continue
            out.append(Clearing(
                x=forest.center_x + (rng.random() - 0.5) * forest.width * 0.6,
                y=forest.center_y + (rng.random() - 0.5) * forest.height * 0.6,
                radius=rng.uniform(float(c["min_clearing_radius"]), float(c["max_clearing_radius"])),
            ))
        return out

    def place_grasslands(self, ctx, elev, moisture, water, forests) -> List[Grassland]:
        c = self.config
        b = ctx.bounds
        stride = int(c["grassland_stride"])
        out = []
        for iy in range(0, b.height, stride):
            for ix in range(0, b.width, stride):
                x, y = b.min_x + ix, b.min_y + iy
                e = float(elev.values[iy, ix])
                m = float(moisture[iy, ix])
                if not (c["grassland_elevation_min"] <= e <= c["grassland_elevation_max"]) or water[iy, ix]:
                    continue
                if any(f.contains(x, y) for f in forests):
                    continue
                if m < c["grassland_moisture_min"]:
                    continue
                out.append(Grassland(x, y, radius=20 + ctx.rng("vegetation", "grassland", x, y).random() * 30,
                                     density=0.3 + m * 0.3, kind="lush_grassland" if m > 0.6 else "dry_grassland"))
        return out

    def coverage(self, ctx, elev, moisture, forests, grasslands):
        c = self.config
        b = ctx.bounds
        X, Y = b.grid()
        coverage = np.zeros(b.shape, dtype=np.int8)
        density = np.zeros(b.shape)
        forest_index = np.full(b.shape, -1, dtype=np.int16)
        claimed = np.zeros(b.shape, dtype=bool)
        for f in forests:
            inside = f.mask(X, Y) & ~claimed
            clear = np.zeros(b.shape, dtype=bool)
            for cl in f.clearings:
                clear |= np.hypot(X - cl.x, Y - cl.y) <= cl.radius
            coverage[inside & clear] = COVERAGE_CODE["clearing"]
            density[inside & clear] = 0.1
            coverage[inside & ~clear] = COVERAGE_CODE["forest"]
            density[inside & ~clear] = f.density
            forest_index[inside] = f.forest_id
            claimed |= inside
        for g in grasslands:
            inside = (np.hypot(X - g.center_x, Y - g.center_y) <= g.radius) & ~claimed
            coverage[inside] = COVERAGE_CODE["grassland"]
            density[inside] = g.density
            claimed |= inside
        rest = ~claimed
        e = elev.values
        alpine = rest & (e > c["tree_line_elevation"])
        desert = rest & ~alpine & (moisture <= 0.2)
        scrub = rest & ~alpine & ~desert & (e > 0.2) & (moisture > 0.3)
        coverage[alpine] = COVERAGE_CODE["alpine"]
        density[alpine] = 0.1
        coverage[desert] = COVERAGE_CODE["desert"]
        density[desert] = 0.05
        coverage[scrub] = COVERAGE_CODE["scrubland"]
        density[scrub] = 0.2
        return coverage, density, forest_index

    def affects_position(self, x: int, y: int, ctx) -> bool:
        v = self.artifact(ctx)
        return v is not None and v.coverage_at(x, y) != "none"

    def get_data_at(self, x: int, y: int, ctx) -> Dict[str, Any]:
        v = self.artifact(ctx)
        kind = v.coverage_at(x, y)
        features = []
        if kind == "forest":
            features.append(f"forest-{v.forest_at(x, y).kind}")
        elif kind == "clearing":
            features.append("forest-clearing")
        elif kind == "grassland":
            features.append("grassland")
        elif kind == "alpine":
            features.append("alpine-vegetation")
        elif kind == "desert":
            features.append("arid")
        elif kind == "scrubland":
            features.append("scrubland")
        return {"vegetation": kind, "vegetation_density": v.density_at(x, y), "features": features}
