import logging
import math
import numpy as np
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from .deer import GroundAgent
from ..world_iface.rng import hash64

logger = logging.getLogger(__name__)

COMPANION_DEFAULTS: Dict[str, Any] = {
    "enabled": True,
    "update_interval": 200,
    "spawn_offset": [2, 2],
    "spawn_search_radius": 5,
    "wander_radius": 8,
    "follow_distance": 2,
    "follow_trigger_distance": 6,
    "wander_move_interval": 1000,
    "follow_move_interval": 400,
    "coming_move_interval": 200,
    "wander_duration": 3000,
    "wander_move_chance": 0.4,
    "follow_idle_timeout": 3000,
    "idle_after": 5000,
    "idle_action_every": 2000,
    "idle_move_chance": 0.1,
}

IDLE_ACTIONS = ("sit", "sniff", "look_around", "scratch")
CARDINAL_STEPS = [(1, 0), (-1, 0), (0, 1), (0, -1)]


class CompanionState(Enum):
    WANDERING = "wandering"
    FOLLOWING = "following"
    COMING = "coming"


MOVE_INTERVAL_KEYS = {
    CompanionState.WANDERING: "wander_move_interval",
    CompanionState.FOLLOWING: "follow_move_interval",
    CompanionState.COMING: "coming_move_interval",
}


class CompanionDog(GroundAgent):
    """A dog that roams near the player, tags along while the player walks and comes when called."""

    def __init__(self, x: int, y: int, world, config: Optional[Dict[str, Any]] = None, seed: int = 0):
        super().__init__(x, y, world)
        self.config = dict(COMPANION_DEFAULTS)
        self.config.update(config or {})
        self.rng = np.random.default_rng(seed)
        self.state = CompanionState.WANDERING
        self.state_timer = 0
        self.move_interval = self.config["wander_move_interval"]
        self.last_move_time = 0
        self.wander_target: Optional[Tuple[int, int]] = None
        self.wander_timer = 0
        self.idle_action: Optional[str] = None
        self.player: Optional[Tuple[int, int]] = None
        self.player_idle_time = 0
        self.last_player_distance = 0.0

    def set_state(self, state: CompanionState) -> None:
        if state is self.state:
            return
        self.state = state
        self.state_timer = 0
        self.idle_action = None
        self.move_interval = self.config[MOVE_INTERVAL_KEYS[state]]

    def come_here(self) -> None:
        self.set_state(CompanionState.COMING)

    def generate_wander_target(self) -> None:
        if self.player is None:
            return
        px, py = self.player
        angle = self.rng.random() * 2.0 * math.pi
        dist = 2.0 + self.rng.random() * self.config["wander_radius"]
        for r in (dist, 3.0):
            tx = int(math.floor(px + math.cos(angle) * r))
            ty = int(math.floor(py + math.sin(angle) * r))
            if self.world.can_move_to(tx, ty):
                self.wander_target = (tx, ty)
                return

    def idle(self, now: int) -> None:
        c = self.config
        if self.idle_action is None or self.state_timer % int(c["idle_action_every"]) == 0:
            self.idle_action = IDLE_ACTIONS[int(self.rng.integers(0, len(IDLE_ACTIONS)))]
        if self.rng.random() < c["idle_move_chance"] and now - self.last_move_time >= self.move_interval:
            sx, sy = CARDINAL_STEPS[int(self.rng.integers(0, len(CARDINAL_STEPS)))]
            if self.world.can_move_to(self.x + sx, self.y + sy):
                self.x += sx
                self.y += sy
                self.last_move_time = now

    def update(self, px: int, py: int, now: int, tick_ms: int = 200) -> None:
        c = self.config
        self.state_timer += tick_ms
        if self.player != (px, py):
            self.player_idle_time = 0
        else:
            self.player_idle_time += tick_ms
        self.player = (px, py)
        distance = self.distance_to(px, py)
        self.last_player_distance = distance
        target = None
        if self.state is CompanionState.WANDERING:
            walking_nearby = self.player_idle_time == 0 and distance <= c["follow_trigger_distance"]
            if walking_nearby or distance > c["wander_radius"] * 1.5:
                self.set_state(CompanionState.FOLLOWING)
                return
            self.wander_timer += tick_ms
            if self.player_idle_time > c["idle_after"]:
                self.idle(now)
                return
            if self.wander_target is None or self.wander_timer >= c["wander_duration"]:
                self.generate_wander_target()
                self.wander_timer = 0
            if self.wander_target is not None and self.rng.random() < c["wander_move_chance"]:
                target = self.wander_target
        elif self.state is CompanionState.FOLLOWING:
            if self.player_idle_time > c["follow_idle_timeout"]:
                self.set_state(CompanionState.WANDERING)
                return
            if distance > c["follow_distance"] + 2:
                target = (px, py)
        else:
            if distance <= c["follow_distance"]:
                self.set_state(CompanionState.FOLLOWING)
                return
            target = (px, py)
        if target is not None and now - self.last_move_time >= self.move_interval:
            if self.step_toward(*target):
                self.last_move_time = now

    def status(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "state": self.state.value,
            "distance_to_player": round(self.last_player_distance, 1),
            "idle_action": self.idle_action,
            "player_idle_time": self.player_idle_time,
        }


class CompanionView:
    """Open cells for the dog: walkable ground not taken by the player or a deer."""

    def __init__(self, world, keeper: "CompanionManager"):
        self.world = world
        self.keeper = keeper

    def can_move_to(self, x: int, y: int) -> bool:
        if (x, y) == self.keeper.player_position:
            return False
        if not self.world.can_move_to(x, y):
            return False
        herd = self.keeper.herd
        return herd is None or herd.get_deer_at(x, y) is None


class CompanionManager:
    def __init__(self, world, config: Optional[Dict[str, Any]] = None, seed: int = 12345, herd=None):
        self.world = world
        self.seed = int(seed)
        self.config = dict(COMPANION_DEFAULTS)
        self.config.update(config or {})
        self.herd = herd
        self.view = CompanionView(world, self)
        self.companion: Optional[CompanionDog] = None
        self.player_position: Optional[Tuple[int, int]] = None
        self.last_update_time: Optional[int] = None
        self.generation = 0
        self.events: List[Dict[str, Any]] = []

    @property
    def enabled(self) -> bool:
        return bool(self.config["enabled"])

    def spawn(self, px: int, py: int) -> Optional[CompanionDog]:
        """Place the dog on the open cell nearest to the player plus the spawn offset."""
        self.player_position = (px, py)
        if not self.enabled:
            return None
        ox, oy = self.config["spawn_offset"]
        x0, y0 = px + int(ox), py + int(oy)
        for r in range(int(self.config["spawn_search_radius"]) + 1):
            for dy in range(-r, r + 1):
                for dx in range(-r, r + 1):
                    if max(abs(dx), abs(dy)) != r or not self.view.can_move_to(x0 + dx, y0 + dy):
                        continue
                    seed = hash64(self.seed, "companion", self.generation)
                    self.companion = CompanionDog(x0 + dx, y0 + dy, self.view, self.config, seed=seed)
                    logger.info("Companion spawned at (%d, %d)", x0 + dx, y0 + dy)
                    return self.companion
        logger.warning("No open cell for the companion near (%d, %d)", x0, y0)
        return None

    def remove(self) -> None:
        self.companion = None
        self.events = []
        self.last_update_time = None
        self.generation += 1

    def call(self, now: int = 0) -> bool:
        """The player whistles; returns False when there is no dog to come."""
        dog = self.companion
        if dog is None:
            return False
        before = dog.state
        dog.come_here()
        self._record(now, before, "call")
        return True

    def get_companion_at(self, x: int, y: int) -> Optional[CompanionDog]:
        dog = self.companion
        if dog is not None and dog.x == x and dog.y == y:
            return dog
        return None

    def _record(self, now: int, before: CompanionState, cause: str) -> None:
        dog = self.companion
        if dog is not None and dog.state is not before:
            self.events.append({"t": int(now), "from": before.value, "to": dog.state.value,
                                "cause": cause, "x": dog.x, "y": dog.y})

    def tick(self, now: int, px: Optional[int] = None, py: Optional[int] = None) -> bool:
        interval = int(self.config["update_interval"])
        if self.companion is None:
            return False
        if self.last_update_time is not None and now - self.last_update_time < interval:
            return False
        if px is not None and py is not None:
            self.player_position = (px, py)
        if self.player_position is None:
            return False
        before = self.companion.state
        self.companion.update(*self.player_position, now, interval)
        self._record(now, before, "tick")
        self.last_update_time = now
        return True

    def stats(self) -> Dict[str, Any]:
        if self.companion is None:
            return {"has_companion": False}
        return {"has_companion": True, "update_interval": int(self.config["update_interval"]),
                **self.companion.status()}
