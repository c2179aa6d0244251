import logging
import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple
from scipy.ndimage import convolve
from .context import Bounds
from .module_base import TerrainModule, smoothstep
from .rng import value_noise

logger = logging.getLogger(__name__)

SMOOTH_KERNEL = np.array([[0.0, 1.0, 0.0], [1.0, 1.0, 1.0], [0.0, 1.0, 0.0]]) / 5.0


@dataclass
class Hill:
    center_x: int
    center_y: int
    radius: float
    height: float

    def to_dict(self) -> Dict[str, Any]:
        return {"center_x": self.center_x, "center_y": self.center_y, "radius": float(self.radius), "height": float(self.height)}


@dataclass
class ElevationField:
    bounds: Bounds
    values: np.ndarray
    mode: str
    hills: List[Hill] = field(default_factory=list)

    def at(self, x: int, y: int) -> float:
        iy, ix = self.bounds.to_index(*self.bounds.clamp(x, y))
        return float(self.values[iy, ix])

    def gradient(self, x: int, y: int, step: int = 1) -> Tuple[float, float, float]:
        dx = self.at(x + step, y) - self.at(x, y)
        dy = self.at(x, y) - self.at(x, y - step)
        return dx, dy, float(np.hypot(dx, dy))

    def gradient_field(self, step: int = 1) -> np.ndarray:
        h, w = self.values.shape
        xi = np.clip(np.arange(w) + step, 0, w - 1)
        yi = np.clip(np.arange(h) - step, 0, h - 1)
        dx = self.values[:, xi] - self.values
        dy = self.values - self.values[yi, :]
        return np.hypot(dx, dy)


def smooth(values: np.ndarray, passes: int) -> np.ndarray:
    for _ in range(int(passes)):
        values = convolve(values, SMOOTH_KERNEL, mode="nearest")
    return values


class ElevationModule(TerrainModule):
    name = "elevation"
    default_priority = 110

    def __init__(self, config=None, enabled=True, priority=None):
        super().__init__(config, enabled, priority)
        self.dependencies = ("geology",) if self.config["use_geology"] else ()

    @classmethod
    def default_config(cls) -> Dict[str, Any]:
        return {
            "use_geology": True,
            "geological_strength": 0.7,
            "base_elevation": 0.2,
            "max_elevation": 1.0,
            "erosion_strength": 0.3,
            "erosion_scale": 0.2,
            "noise_amount": 0.05,
            "noise_scale": 12.0,
            "smoothing_passes": 2,
            "fallback_hill_count": 6,
            "fallback_hill_radius": 35,
        }

    def generate(self, ctx) -> ElevationField:
        c = self.config
        b = ctx.bounds
        X, Y = b.grid()
        noise = (value_noise(ctx.config.seed, "elevation.noise", X, Y, float(c["noise_scale"])) - 0.5) * 2.0 * float(c["noise_amount"])
        geo = ctx.artifact("geology") if c["use_geology"] else None
        hills: List[Hill] = []
        if geo is not None:
            mode = "geology"
            values = (float(c["base_elevation"])
                      + float(c["geological_strength"]) * geo.elevation_bias
                      - (1.0 - geo.erosion_resistance) * float(c["erosion_strength"]) * float(c["erosion_scale"])
                      + noise)
        else:
            if c["use_geology"]:
                logger.warning("Geology artifact missing; elevation falls back to hill mode")
            mode = "hills"
            hills = self.place_hills(ctx)
            values = np.full(b.shape, float(c["base_elevation"])) + noise
            for h in hills:
                d = np.hypot(X - h.center_x, Y - h.center_y)
                values += h.height * smoothstep(1.0 - d / h.radius)
        lo, hi = 0.05, float(c["max_elevation"])
        values = np.clip(values, lo, hi)
        values = np.clip(smooth(values, c["smoothing_passes"]), lo, hi)
        logger.info("Generated elevation in %s mode (mean %.3f, max %.3f)", mode, values.mean(), values.max())
        return ElevationField(bounds=b, values=values, mode=mode, hills=hills)

    def place_hills(self, ctx) -> List[Hill]:
        b = ctx.bounds
        rng = ctx.rng("elevation", "hills")
        margin = min(20, (b.width - 1) // 4, (b.height - 1) // 4)
        r0 = float(self.config["fallback_hill_radius"])
        hills = []
        for _ in range(int(self.config["fallback_hill_count"])):
            hills.append(Hill(
                center_x=b.min_x + margin + int(rng.random() * (b.width - 2 * margin)),
                center_y=b.min_y + margin + int(rng.random() * (b.height - 2 * margin)),
                radius=r0 * rng.uniform(0.7, 1.3),
                height=rng.uniform(0.3, 0.6),
            ))
        return hills

    def affects_position(self, x: int, y: int, ctx) -> bool:
        return ctx.is_in_bounds(x, y)

    def get_data_at(self, x: int, y: int, ctx) -> Dict[str, Any]:
        elev = self.artifact(ctx)
        return {"elevation": elev.at(x, y)}
