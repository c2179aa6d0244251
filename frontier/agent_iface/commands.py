from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Tuple


class Direction(Enum):
    NORTH = (0, -1)
    SOUTH = (0, 1)
    EAST = (1, 0)
    WEST = (-1, 0)
    NORTHEAST = (1, -1)
    NORTHWEST = (-1, -1)
    SOUTHEAST = (1, 1)
    SOUTHWEST = (-1, 1)

    @property
    def dx(self) -> int:
        return self.value[0]

    @property
    def dy(self) -> int:
        return self.value[1]

    @classmethod
    def parse(cls, name: str) -> "Direction":
        aliases = {"n": "NORTH", "s": "SOUTH", "e": "EAST", "w": "WEST",
                   "ne": "NORTHEAST", "nw": "NORTHWEST", "se": "SOUTHEAST", "sw": "SOUTHWEST"}
        key = aliases.get(name.lower(), name.upper())
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"unknown direction '{name}'") from None


@dataclass(frozen=True)
class MoveOutcome:
    from_x: int
    from_y: int
    to_x: int
    to_y: int
    facing_before: Tuple[int, int]
    facing_after: Tuple[int, int]

    @property
    def moved(self) -> bool:
        return (self.from_x, self.from_y) != (self.to_x, self.to_y)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": [self.from_x, self.from_y],
            "to": [self.to_x, self.to_y],
            "facing_before": list(self.facing_before),
            "facing_after": list(self.facing_after),
            "moved": self.moved,
        }


def plan_move(x: int, y: int, dx: int, dy: int, facing: Tuple[int, int],
              can_move_to: Callable[[int, int], bool]) -> MoveOutcome:
    """Facing always turns toward (dx, dy); the position changes only onto an open cell."""
    new_facing = facing if dx == 0 and dy == 0 else ((dx > 0) - (dx < 0), (dy > 0) - (dy < 0))
    tx, ty = x + dx, y + dy
    if (dx, dy) != (0, 0) and can_move_to(tx, ty):
        return MoveOutcome(x, y, tx, ty, facing, new_facing)
    return MoveOutcome(x, y, x, y, facing, new_facing)


def invert_move(outcome: MoveOutcome) -> MoveOutcome:
    return MoveOutcome(outcome.to_x, outcome.to_y, outcome.from_x, outcome.from_y,
                       outcome.facing_after, outcome.facing_before)
