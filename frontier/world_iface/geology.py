import copy
import logging
import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, List
from .context import Bounds
from .module_base import TerrainModule, smoothstep
from .rng import value_noise

logger = logging.getLogger(__name__)

ROCK_TYPES = ("hard", "soft", "clay")
ROCK_CODE = {name: i for i, name in enumerate(ROCK_TYPES)}

DEFAULT_FORMATIONS = [
    {"type": "granite_intrusion", "count": 2, "min_radius": 40, "max_radius": 80, "rock_type": "hard", "elevation_effect": 0.6},
    {"type": "limestone_beds", "count": 3, "min_radius": 30, "max_radius": 60, "rock_type": "soft", "elevation_effect": -0.3},
    {"type": "clay_deposits", "count": 4, "min_radius": 20, "max_radius": 40, "rock_type": "clay", "elevation_effect": -0.1},
]

PRESETS = {
    "mountainous": [
        {"type": "granite_range", "count": 2, "min_radius": 60, "max_radius": 100, "rock_type": "hard", "elevation_effect": 0.9},
        {"type": "valley_systems", "count": 3, "min_radius": 30, "max_radius": 50, "rock_type": "soft", "elevation_effect": -0.4},
    ],
    "rolling": [
        {"type": "soft_hills", "count": 4, "min_radius": 30, "max_radius": 50, "rock_type": "soft", "elevation_effect": 0.3},
        {"type": "clay_valleys", "count": 3, "min_radius": 25, "max_radius": 40, "rock_type": "clay", "elevation_effect": -0.2},
    ],
    "flat": [
        {"type": "sedimentary_layers", "count": 5, "min_radius": 40, "max_radius": 80, "rock_type": "soft", "elevation_effect": 0.1},
        {"type": "clay_basins", "count": 4, "min_radius": 30, "max_radius": 60, "rock_type": "clay", "elevation_effect": -0.05},
    ],
    "volcanic": [
        {"type": "volcanic_peaks", "count": 2, "min_radius": 20, "max_radius": 35, "rock_type": "hard", "elevation_effect": 1.0},
        {"type": "lava_plains", "count": 3, "min_radius": 50, "max_radius": 80, "rock_type": "hard", "elevation_effect": 0.2},
        {"type": "ash_valleys", "count": 2, "min_radius": 30, "max_radius": 50, "rock_type": "soft", "elevation_effect": -0.1},
    ],
}


@dataclass
class Formation:
    formation_id: int
    kind: str
    center_x: int
    center_y: int
    radius: float
    rock_type: str
    elevation_effect: float
    strength: float

    def contains(self, x: float, y: float) -> bool:
        return (x - self.center_x) ** 2 + (y - self.center_y) ** 2 < self.radius ** 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formation_id": self.formation_id,
            "kind": self.kind,
            "center_x": self.center_x,
            "center_y": self.center_y,
            "radius": float(self.radius),
            "rock_type": self.rock_type,
            "elevation_effect": float(self.elevation_effect),
            "strength": float(self.strength),
        }


@dataclass
class GeologyField:
    bounds: Bounds
    rock: np.ndarray
    soil_quality: np.ndarray
    elevation_bias: np.ndarray
    erosion_resistance: np.ndarray
    water_retention: np.ndarray
    formations: List[Formation] = field(default_factory=list)

    def rock_type_at(self, x: int, y: int) -> str:
        iy, ix = self.bounds.to_index(*self.bounds.clamp(x, y))
        return ROCK_TYPES[int(self.rock[iy, ix])]

    def count(self, kind: str) -> int:
        return sum(1 for f in self.formations if f.kind == kind)


class GeologyModule(TerrainModule):
    """Rock formations with radial falloff; the foundation every other layer reads."""

    name = "geology"
    default_priority = 120
    dependencies = ()

    @classmethod
    def default_config(cls) -> Dict[str, Any]:
        return {
            "formations": copy.deepcopy(DEFAULT_FORMATIONS),
            "preset": None,
            "rock_properties": {
                "hard": {"erosion_resistance": 0.9, "soil_quality": 0.2, "water_retention": 0.1},
                "soft": {"erosion_resistance": 0.3, "soil_quality": 0.8, "water_retention": 0.4},
                "clay": {"erosion_resistance": 0.5, "soil_quality": 0.6, "water_retention": 0.9},
            },
            "base_rock_type": "soft",
            "weathering_effect": 0.3,
            "weathering_scale": 24.0,
            "placement_margin": 30,
            "formation_spacing": 20,
        }

    def formation_specs(self) -> List[Dict[str, Any]]:
        preset = self.config.get("preset")
        if preset:
            if preset not in PRESETS:
                raise ValueError(f"unknown geology preset '{preset}'; available: {sorted(PRESETS)}")
            return PRESETS[preset]
        return self.config["formations"]

    def place_formations(self, ctx) -> List[Formation]:
        b = ctx.bounds
        rng = ctx.rng("geology", "formations")
        margin = min(int(self.config["placement_margin"]), (b.width - 1) // 4, (b.height - 1) // 4)
        span_x = b.width - 1 - 2 * margin
        span_y = b.height - 1 - 2 * margin
        spacing = float(self.config["formation_spacing"])
        placed: List[Formation] = []
        for spec in self.formation_specs():
            for _ in range(int(spec["count"])):
                for _attempt in range(30):
                    cx = b.min_x + margin + int(rng.random() * (span_x + 1))
                    cy = b.min_y + margin + int(rng.random() * (span_y + 1))
                    if all(np.hypot(cx - f.center_x, cy - f.center_y) >= spacing for f in placed):
                        break
                placed.append(Formation(
                    formation_id=len(placed),
                    kind=spec["type"],
                    center_x=cx,
                    center_y=cy,
                    radius=rng.uniform(float(spec["min_radius"]), float(spec["max_radius"])),
                    rock_type=spec["rock_type"],
                    elevation_effect=float(spec["elevation_effect"]),
                    strength=rng.uniform(0.8, 1.2),
                ))
        return placed

    def generate(self, ctx) -> GeologyField:
        b = ctx.bounds
        X, Y = b.grid()
        formations = self.place_formations(ctx)
        base = self.config["base_rock_type"]
        if base not in ROCK_CODE:
            raise ValueError(f"unknown rock type '{base}'")
        rock = np.full(b.shape, ROCK_CODE[base], dtype=np.int8)
        bias = np.zeros(b.shape, dtype=np.float64)
        dominant = np.zeros(b.shape, dtype=np.float64)
        for f in formations:
            d = np.hypot(X - f.center_x, Y - f.center_y)
            w = smoothstep(1.0 - d / f.radius) * f.elevation_effect * f.strength
            bias += w
            stronger = np.abs(w) > dominant
            rock[stronger] = ROCK_CODE[f.rock_type]
            dominant = np.where(stronger, np.abs(w), dominant)
        props = self.config["rock_properties"]

        def table(key):
            return np.array([props[r][key] for r in ROCK_TYPES], dtype=np.float64)

        weathering = value_noise(ctx.config.seed, "geology.weathering", X, Y, float(self.config["weathering_scale"]))
        soil = np.clip(table("soil_quality")[rock] + (weathering - 0.5) * float(self.config["weathering_effect"]), 0.0, 1.0)
        logger.info("Generated %d geological formations", len(formations))
        return GeologyField(
            bounds=b,
            rock=rock,
            soil_quality=soil,
            elevation_bias=np.clip(bias, -1.0, 1.0),
            erosion_resistance=table("erosion_resistance")[rock],
            water_retention=table("water_retention")[rock],
            formations=formations,
        )

    def affects_position(self, x: int, y: int, ctx) -> bool:
        geo = self.artifact(ctx)
        return geo is not None and any(f.contains(x, y) for f in geo.formations)

    def get_data_at(self, x: int, y: int, ctx) -> Dict[str, Any]:
        geo = self.artifact(ctx)
        iy, ix = geo.bounds.to_index(x, y)
        rock = ROCK_TYPES[int(geo.rock[iy, ix])]
        return {
            "rock_type": rock,
            "soil_quality": float(geo.soil_quality[iy, ix]),
            "erosion_resistance": float(geo.erosion_resistance[iy, ix]),
            "features": [f"rock-{rock}"],
        }
