import logging
import numpy as np
from dataclasses import dataclass
from typing import Dict, Optional
from .geology import ROCK_CODE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerrainType:
    symbol: str
    class_tag: str
    name: str
    walkable: bool


TERRAIN_TYPES: Dict[str, TerrainType] = {
    "plains": TerrainType("▓", "terrain-grass", "Plains", True),
    "foothills": TerrainType("▒", "terrain-hills", "Foothills", True),
    "river": TerrainType("~", "terrain-water", "River", False),
    "lake": TerrainType("▀", "terrain-water", "Lake", False),
    "rocks": TerrainType("▓", "terrain-rocks", "Rocky Ground", True),
    "boulders": TerrainType("▒", "terrain-boulders", "Boulder Field", True),
    "stone": TerrainType("░", "terrain-stone", "Stone Outcrops", True),
    "unknown": TerrainType("░", "terrain-unknown", "Unknown", False),
    "fog": TerrainType("▓", "terrain-fog", "Unknown", False),
    "explored": TerrainType("░", "terrain-explored", "Explored", True),
}

FEATURE_TYPES: Dict[str, Dict[str, object]] = {
    "trunk": {"symbol": "♠", "class_tag": "feature-tree-trunk", "name": "Tree Trunk", "walkable": False, "blocks_vision": True},
    "canopy": {"symbol": "♠", "class_tag": "feature-tree-canopy", "name": "Tree Canopy", "walkable": True, "blocks_vision": True},
}

# Tags a generated cell can carry, in code order.
CLASSES = ("plains", "foothills", "river", "lake", "rocks", "boulders", "stone")
CLASS_CODE = {name: i for i, name in enumerate(CLASSES)}

DEFAULT_ELEVATION = 0.2


def classify_layers(rock: Optional[np.ndarray], elevation: Optional[np.ndarray],
                    river: Optional[np.ndarray], lake: Optional[np.ndarray], shape=None) -> np.ndarray:
    """Terrain class codes for every cell; first matching rule wins."""
    if shape is None:
        shape = next(a.shape for a in (elevation, rock, river, lake) if a is not None)
    e = np.full(shape, DEFAULT_ELEVATION) if elevation is None else elevation
    hard = np.zeros(shape, dtype=bool) if rock is None else rock == ROCK_CODE["hard"]
    river = np.zeros(shape, dtype=bool) if river is None else river
    lake = np.zeros(shape, dtype=bool) if lake is None else lake
    conditions = [
        river,
        lake,
        hard & (e > 0.7),
        hard & (e > 0.55),
        e > 0.4,
        hard & (e > 0.25),
        e > 0.3,
    ]
    choices = [CLASS_CODE[t] for t in ("river", "lake", "boulders", "rocks", "foothills", "stone", "foothills")]
    return np.select(conditions, choices, CLASS_CODE["plains"]).astype(np.int8)


def classify_context(ctx) -> np.ndarray:
    geo = ctx.artifact("geology")
    elev = ctx.artifact("elevation")
    hydro = ctx.artifact("hydrology")
    return classify_layers(
        None if geo is None else geo.rock,
        None if elev is None else elev.values,
        None if hydro is None else hydro.river_mask,
        None if hydro is None else hydro.lake_id >= 0,
        shape=ctx.bounds.shape,
    )


class TerrainClassifier:
    """Per-cell terrain tags, cached until the context regenerates."""

    def __init__(self, ctx):
        self.ctx = ctx
        self._codes: Optional[np.ndarray] = None
        self._version = -1

    def codes(self) -> np.ndarray:
        if self._codes is None or self._version != self.ctx.version:
            self._codes = classify_context(self.ctx)
            self._version = self.ctx.version
            logger.debug("Reclassified terrain at context version %d", self._version)
        return self._codes

    def invalidate(self) -> None:
        self._codes = None

    def classify(self, x: int, y: int) -> str:
        b = self.ctx.bounds
        if not b.contains(x, y):
            return "unknown"
        return CLASSES[int(self.codes()[b.to_index(x, y)])]

    def counts(self) -> Dict[str, int]:
        values, counts = np.unique(self.codes(), return_counts=True)
        out = {name: 0 for name in CLASSES}
        for v, n in zip(values, counts):
            out[CLASSES[int(v)]] = int(n)
        return out
