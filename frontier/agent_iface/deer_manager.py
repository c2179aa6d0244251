import logging
import math
import numpy as np
from typing import Any, Callable, Dict, List, Optional, Tuple
from .deer import DEER_DEFAULTS, Deer, DeerState
from ..world_iface.rng import hash64

logger = logging.getLogger(__name__)

MANAGER_DEFAULTS: Dict[str, Any] = {
    "max_deer_count": 8,
    "player_detection_radius": 25,
    "update_interval": 200,
    "lazy_wander_chance": 0.05,
    "spawn_margin": 25,
    "spawn_attempts": 150,
    "spawn_spacing": 15,
    "spawn_clearance": 20,
}


class DeerView:
    """What a deer may ask of the world: open cells exclude other deer, the player and any other occupant."""

    def __init__(self, world, manager: "DeerManager"):
        self.world = world
        self.manager = manager

    def can_move_to(self, x: int, y: int) -> bool:
        if (x, y) == self.manager.player_position:
            return False
        occupant_at = self.manager.occupant_at
        if occupant_at is not None and occupant_at(x, y) is not None:
            return False
        return self.world.can_move_to(x, y) and self.manager.get_deer_at(x, y) is None

    def has_line_of_sight(self, x0: int, y0: int, x1: int, y1: int) -> bool:
        return self.world.has_line_of_sight(x0, y0, x1, y1)


class DeerManager:
    def __init__(self, world, config: Optional[Dict[str, Any]] = None, seed: int = 12345):
        self.world = world
        self.seed = int(seed)
        cfg = dict(MANAGER_DEFAULTS)
        cfg.update(DEER_DEFAULTS)
        cfg.update(config or {})
        self.config = cfg
        self.deer_config = {k: cfg[k] for k in DEER_DEFAULTS}
        self.view = DeerView(world, self)
        self.deer: List[Deer] = []
        self.player_position: Optional[Tuple[int, int]] = None
        self.occupant_at: Optional[Callable[[int, int], Any]] = None
        self.last_update_time: Optional[int] = None
        self.generation = 0
        self.tick_count = 0
        self.events: List[Dict[str, Any]] = []

    def spawn(self) -> int:
        c = self.config
        b = self.world.bounds
        rng = np.random.default_rng(hash64(self.seed, "deer", "spawn", self.generation))
        margin = min(int(c["spawn_margin"]), (b.width - 1) // 4, (b.height - 1) // 4)
        cx = (b.min_x + b.max_x) / 2.0
        cy = (b.min_y + b.max_y) / 2.0
        for _ in range(int(c["spawn_attempts"])):
            if len(self.deer) >= int(c["max_deer_count"]):
                break
            x = b.min_x + margin + int(rng.integers(0, max(1, b.width - 2 * margin)))
            y = b.min_y + margin + int(rng.integers(0, max(1, b.height - 2 * margin)))
            if math.hypot(x - cx, y - cy) < c["spawn_clearance"]:
                continue
            if any(math.hypot(d.x - x, d.y - y) < c["spawn_spacing"] for d in self.deer):
                continue
            if not self.view.can_move_to(x, y):
                continue
            self.add_deer(x, y)
        logger.info("Spawned %d deer", len(self.deer))
        return len(self.deer)

    def add_deer(self, x: int, y: int) -> Deer:
        if self.get_deer_at(x, y) is not None:
            raise ValueError(f"({x}, {y}) is already occupied by a deer")
        deer_id = len(self.deer)
        d = Deer(deer_id, x, y, self.view, self.deer_config, seed=hash64(self.seed, "deer", self.generation, deer_id))
        self.deer.append(d)
        return d

    def get_deer_at(self, x: int, y: int) -> Optional[Deer]:
        for d in self.deer:
            if d.x == x and d.y == y:
                return d
        return None

    def get_deer_near(self, px: int, py: int, radius: float = 15) -> List[Deer]:
        return [d for d in self.deer if d.distance_to(px, py) <= radius]

    def _record(self, now: int, before: Dict[int, DeerState], cause: str) -> None:
        for d in self.deer:
            if before[d.deer_id] is not d.state:
                self.events.append({"t": int(now), "deer_id": d.deer_id, "from": before[d.deer_id].value,
                                    "to": d.state.value, "cause": cause, "x": d.x, "y": d.y})

    def on_player_moved(self, px: int, py: int, now: int) -> None:
        self.player_position = (px, py)
        before = {d.deer_id: d.state for d in self.deer}
        radius = self.config["player_detection_radius"]
        for d in self.deer:
            if d.distance_to(px, py) <= radius:
                d.react_to_player_movement(px, py, now)
        self._record(now, before, "reaction")

    def tick(self, now: int, px: Optional[int] = None, py: Optional[int] = None) -> bool:
        """Advance every deer once if a full update interval has passed; returns whether it ran."""
        interval = int(self.config["update_interval"])
        if self.last_update_time is not None and now - self.last_update_time < interval:
            return False
        if px is not None and py is not None:
            self.player_position = (px, py)
        if self.player_position is None:
            b = self.world.bounds
            self.player_position = ((b.min_x + b.max_x) // 2, (b.min_y + b.max_y) // 2)
        px, py = self.player_position
        before = {d.deer_id: d.state for d in self.deer}
        radius = self.config["player_detection_radius"]
        for d in self.deer:
            if d.distance_to(px, py) <= radius or d.state is DeerState.FLEEING:
                d.update(px, py, self.deer, now, interval)
            else:
                d.lazy_wander(float(self.config["lazy_wander_chance"]))
        self._record(now, before, "tick")
        self.last_update_time = now
        self.tick_count += 1
        return True

    def get_deer_states(self) -> Dict[str, int]:
        states = {s.value: 0 for s in DeerState}
        for d in self.deer:
            states[d.state.value] += 1
        return states

    def scare_all(self, px: int, py: int, now: int) -> None:
        before = {d.deer_id: d.state for d in self.deer}
        for d in self.deer:
            d.set_state(DeerState.FLEEING)
            d.last_player_position = (px, py)
            d.last_player_seen = now
        self._record(now, before, "scare")
        logger.info("Scared %d deer", len(self.deer))

    def calm_all(self) -> None:
        for d in self.deer:
            d.set_state(DeerState.WANDERING)
            d.clear_reactions()
            d.generate_wander_target()
        logger.info("Calmed %d deer", len(self.deer))

    def respawn(self) -> int:
        self.deer = []
        self.events = []
        self.generation += 1
        return self.spawn()

    def stats(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "deer_count": len(self.deer),
            "states": self.get_deer_states(),
            "pending_reactions": sum(len(d.reactions) for d in self.deer),
            "ticks": self.tick_count,
            "update_interval": int(self.config["update_interval"]),
            "player_detection_radius": self.config["player_detection_radius"],
        }
        if self.player_position is not None and self.deer:
            px, py = self.player_position
            out["mean_distance_from_player"] = float(np.mean([d.distance_to(px, py) for d in self.deer]))
            out["deer_near_player"] = len(self.get_deer_near(px, py, self.config["player_detection_radius"]))
        return out
