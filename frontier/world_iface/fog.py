import logging
import math
import numpy as np
from typing import Any, Callable, Dict, Optional, Set, Tuple
from .classifier import TERRAIN_TYPES
from .kernels import in_vision, los_clear, vision_mask

logger = logging.getLogger(__name__)

FACING_NAMES = {
    (0, -1): "North", (0, 1): "South", (-1, 0): "West", (1, 0): "East",
    (-1, -1): "Northwest", (1, -1): "Northeast", (-1, 1): "Southwest", (1, 1): "Southeast",
}

_NO_BLOCKERS = np.zeros((1, 1), dtype=np.bool_)

Blockers = Tuple[np.ndarray, int, int]


def _sign(v: int) -> int:
    return (v > 0) - (v < 0)


class FogOfWar:
    """Vision disk plus forward cone, gated by line of sight; remembers explored cells."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, blockers: Optional[Callable[[], Blockers]] = None):
        c = {
            "enabled": True,
            "vision_radius": 4,
            "forward_vision_range": 15,
            "explored_radius": 2,
            "cone_angle": 160,
            "facing": [0, -1],
        }
        c.update(config or {})
        self.enabled = bool(c["enabled"])
        self.vision_radius = 1.0
        self.forward_vision_range = 1.0
        self.cone_angle = 160.0
        self.explored_radius = 0.0
        self.set_vision_radius(c["vision_radius"])
        self.set_forward_vision_range(c["forward_vision_range"])
        self.set_cone_angle(c["cone_angle"])
        self.set_explored_radius(c["explored_radius"])
        self.facing: Tuple[int, int] = (0, -1)
        self.update_facing(*c["facing"])
        self.explored: Set[Tuple[int, int]] = set()
        self.blockers = blockers

    def toggle(self) -> bool:
        self.enabled = not self.enabled
        return self.enabled

    def set_vision_radius(self, radius: float) -> None:
        self.vision_radius = max(1.0, float(radius))

    def set_forward_vision_range(self, value: float) -> None:
        self.forward_vision_range = max(self.vision_radius, float(value))

    def set_cone_angle(self, angle: float) -> None:
        self.cone_angle = max(30.0, min(360.0, float(angle)))

    def set_explored_radius(self, radius: float) -> None:
        self.explored_radius = max(0.0, float(radius))

    def update_facing(self, dx: int, dy: int) -> None:
        if dx == 0 and dy == 0:
            return
        self.facing = (_sign(dx), _sign(dy))

    def facing_angle(self) -> float:
        return math.atan2(self.facing[1], self.facing[0])

    def facing_name(self) -> str:
        return FACING_NAMES.get(self.facing, "Unknown")

    def half_cone(self) -> float:
        if self.cone_angle >= 360.0:
            return math.pi
        return math.radians(self.cone_angle) / 2.0

    def _grid(self) -> Blockers:
        if self.blockers is None:
            return _NO_BLOCKERS, 0, 0
        return self.blockers()

    def has_line_of_sight(self, x0: int, y0: int, x1: int, y1: int) -> bool:
        mask, ox, oy = self._grid()
        return bool(los_clear(mask, int(ox), int(oy), int(x0), int(y0), int(x1), int(y1)))

    def is_in_vision(self, x: int, y: int, px: int, py: int) -> bool:
        mask, ox, oy = self._grid()
        return bool(in_vision(mask, int(ox), int(oy), int(px), int(py), int(x), int(y),
                              self.vision_radius, self.forward_vision_range,
                              self.facing_angle(), self.half_cone()))

    def visible_window(self, x0: int, y0: int, width: int, height: int, px: int, py: int) -> np.ndarray:
        """Visibility for the rectangle starting at (x0, y0), indexed [y, x]."""
        mask, ox, oy = self._grid()
        return vision_mask(mask, int(ox), int(oy), int(px), int(py), int(x0), int(y0), int(width), int(height),
                           self.vision_radius, self.forward_vision_range,
                           self.facing_angle(), self.half_cone())

    def update_exploration(self, px: int, py: int) -> None:
        r = int(math.floor(self.explored_radius))
        for dy in range(-r, r + 1):
            for dx in range(-r, r + 1):
                if math.hypot(dx, dy) <= self.explored_radius:
                    self.explored.add((px + dx, py + dy))
        reach = int(math.ceil(max(self.vision_radius, self.forward_vision_range)))
        seen = self.visible_window(px - reach, py - reach, 2 * reach + 1, 2 * reach + 1, px, py)
        for j, i in np.argwhere(seen):
            self.explored.add((px - reach + int(i), py - reach + int(j)))

    def is_explored(self, x: int, y: int) -> bool:
        return (x, y) in self.explored

    def clear_exploration(self) -> None:
        self.explored.clear()

    def apply_fog_of_war(self, x: int, y: int, px: int, py: int, cell: Dict[str, Any],
                         visible: Optional[bool] = None) -> Dict[str, Any]:
        if not self.enabled:
            return dict(cell, visible=True, explored=self.is_explored(x, y))
        if visible is None:
            visible = self.is_in_vision(x, y, px, py)
        explored = self.is_explored(x, y)
        if not visible and not explored:
            fog = TERRAIN_TYPES["fog"]
            return dict(cell, tag="fog", symbol=fog.symbol, class_tag=fog.class_tag, name=fog.name,
                        feature=None, deer=None, visible=False, explored=False)
        if not visible:
            class_tag = cell["class_tag"]
            if "terrain-explored" not in class_tag:
                class_tag = f"{class_tag} terrain-explored"
            return dict(cell, class_tag=class_tag, visible=False, explored=True)
        return dict(cell, visible=True, explored=explored)

    def status(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "vision_radius": self.vision_radius,
            "forward_vision_range": self.forward_vision_range,
            "cone_angle": self.cone_angle,
            "explored_radius": self.explored_radius,
            "explored_count": len(self.explored),
            "facing": self.facing_name(),
            "facing_vector": list(self.facing),
        }
