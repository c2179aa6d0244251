import heapq
import math
import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

# Diagonals first so ties resolve toward the diagonal step.
NEIGHBOR_STEPS = [(1, -1), (-1, -1), (1, 1), (-1, 1), (0, -1), (0, 1), (1, 0), (-1, 0)]

DEER_DEFAULTS: Dict[str, Any] = {
    "vision_range": 8,
    "alert_range": 7,
    "flee_distance": 15,
    "panic_distance": 4,
    "base_move_interval": 1000,
    "alert_move_interval": 500,
    "flee_move_interval": 150,
    "wander_duration": 4000,
    "wander_move_chance": 0.3,
    "max_flee_time": 10000,
    "min_flee_time": 3000,
    "alert_duration": 600,
    "player_memory_time": 4000,
    "flock_radius": 6,
    "flock_strength": 0.4,
    "herd_alert_radius": 12,
    "max_reactions_per_update": 2,
    "reaction_queue_size": 3,
}


class DeerState(Enum):
    WANDERING = "wandering"
    ALERT = "alert"
    FLEEING = "fleeing"


class ReactionKind(Enum):
    PANIC = 100
    START_FLEEING = 90
    ALERT = 80


@dataclass
class Reaction:
    kind: ReactionKind
    player_x: int
    player_y: int

    @property
    def priority(self) -> int:
        return self.kind.value


@dataclass
class DeerStatus:
    deer_id: int
    x: int
    y: int
    state: str
    state_timer: int
    last_move_time: int
    pending_reactions: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deer_id": self.deer_id,
            "x": self.x,
            "y": self.y,
            "state": self.state,
            "state_timer": self.state_timer,
            "last_move_time": self.last_move_time,
            "pending_reactions": self.pending_reactions,
        }


class GroundAgent:
    """Something standing on one cell that moves a tile at a time through `world.can_move_to`."""

    def __init__(self, x: int, y: int, world):
        self.x = int(x)
        self.y = int(y)
        self.world = world

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)

    def step_toward(self, tx: float, ty: float) -> bool:
        """Move to the open neighbour best aligned with the direction to (tx, ty)."""
        dx, dy = tx - self.x, ty - self.y
        norm = math.hypot(dx, dy)
        if norm == 0:
            return False
        best = None
        best_align = -math.inf
        for sx, sy in NEIGHBOR_STEPS:
            nx, ny = self.x + sx, self.y + sy
            if not self.world.can_move_to(nx, ny):
                continue
            align = (sx * dx + sy * dy) / (norm * math.hypot(sx, sy))
            if align > best_align:
                best, best_align = (nx, ny), align
        if best is None:
            return False
        self.x, self.y = best
        return True


class Deer(GroundAgent):
    """One deer: a wandering/alert/fleeing state machine plus a bounded reaction queue.

    `world` answers can_move_to(x, y) and has_line_of_sight(x0, y0, x1, y1); the
    manager hands each deer a view that also keeps deer off occupied cells.
    """

    def __init__(self, deer_id: int, x: int, y: int, world, config: Optional[Dict[str, Any]] = None, seed: int = 0):
        super().__init__(x, y, world)
        self.deer_id = deer_id
        self.config = dict(DEER_DEFAULTS)
        self.config.update(config or {})
        self.rng = np.random.default_rng(seed)
        self.state = DeerState.WANDERING
        self.state_timer = 0
        self.last_move_time = 0
        self.move_interval = self.config["base_move_interval"]
        self.reactions: List[Tuple[int, int, Reaction]] = []
        self._seq = 0
        self.last_player_position: Optional[Tuple[int, int]] = None
        self.last_player_distance = math.inf
        self.last_player_seen: Optional[int] = None
        self.wander_target: Optional[Tuple[int, int]] = None
        self.wander_timer = 0
        self.flee_timer = 0
        self.generate_wander_target()

    def can_see(self, x: int, y: int) -> bool:
        if self.distance_to(x, y) > self.config["vision_range"]:
            return False
        return self.world.has_line_of_sight(self.x, self.y, x, y)

    def set_state(self, state: DeerState) -> None:
        if state is self.state:
            return
        self.state = state
        self.state_timer = 0
        if state is DeerState.FLEEING:
            self.flee_timer = 0
            self.move_interval = self.config["flee_move_interval"]
        elif state is DeerState.ALERT:
            self.move_interval = self.config["alert_move_interval"]
        else:
            self.move_interval = self.config["base_move_interval"]

    def add_reaction(self, reaction: Reaction) -> None:
        heapq.heappush(self.reactions, (-reaction.priority, self._seq, reaction))
        self._seq += 1
        limit = int(self.config["reaction_queue_size"])
        if len(self.reactions) > limit:
            self.reactions = heapq.nsmallest(limit, self.reactions)
            heapq.heapify(self.reactions)

    def clear_reactions(self) -> None:
        self.reactions = []

    def react_to_player_movement(self, px: int, py: int, now: int) -> None:
        c = self.config
        distance = self.distance_to(px, py)
        moved = self.last_player_position is not None and self.last_player_position != (px, py)
        approaching = distance < self.last_player_distance - 0.5
        if self.can_see(px, py) and (moved or approaching):
            if distance <= c["panic_distance"]:
                self.add_reaction(Reaction(ReactionKind.PANIC, px, py))
            elif distance <= c["alert_range"] and self.state is DeerState.WANDERING:
                self.add_reaction(Reaction(ReactionKind.ALERT, px, py))
            elif distance <= c["alert_range"] + 2 and self.state is DeerState.ALERT:
                self.add_reaction(Reaction(ReactionKind.START_FLEEING, px, py))
        self.last_player_position = (px, py)
        self.last_player_distance = distance
        self.process_reactions(now)

    def process_reactions(self, now: int) -> int:
        done = 0
        while self.reactions and done < int(self.config["max_reactions_per_update"]):
            _, _, r = heapq.heappop(self.reactions)
            if r.kind is ReactionKind.PANIC:
                self.set_state(DeerState.FLEEING)
                self.last_player_seen = now
                self.escape_step(r.player_x, r.player_y)
                self.last_move_time = now
            elif r.kind is ReactionKind.ALERT:
                if self.state is DeerState.WANDERING:
                    self.set_state(DeerState.ALERT)
                    self.last_player_seen = now
            else:
                self.set_state(DeerState.FLEEING)
                self.last_player_seen = now
            done += 1
        return done

    def escape_step(self, px: int, py: int) -> bool:
        """One tile strictly away from (px, py); stays put when no such tile is open."""
        d0 = self.distance_to(px, py)
        if d0 > 0:
            ux, uy = (self.x - px) / d0, (self.y - py) / d0
        else:
            ux = uy = 0.0
        best = None
        best_score = -math.inf
        for sx, sy in NEIGHBOR_STEPS:
            nx, ny = self.x + sx, self.y + sy
            d = math.hypot(nx - px, ny - py)
            if d <= d0 or not self.world.can_move_to(nx, ny):
                continue
            score = d + 2.0 * (sx * ux + sy * uy)
            if score > best_score:
                best, best_score = (nx, ny), score
        if best is None:
            return False
        self.x, self.y = best
        return True

    def generate_wander_target(self) -> None:
        angle = self.rng.random() * 2.0 * math.pi
        dist = 4.0 + self.rng.random() * 6.0
        for r in (dist, 3.0):
            tx = int(math.floor(self.x + math.cos(angle) * r))
            ty = int(math.floor(self.y + math.sin(angle) * r))
            if self.world.can_move_to(tx, ty):
                self.wander_target = (tx, ty)
                return

    def nearby_fleeing(self, herd: Sequence["Deer"], radius: float) -> List["Deer"]:
        return [d for d in herd if d.deer_id != self.deer_id and d.state is DeerState.FLEEING
                and self.distance_to(d.x, d.y) <= radius]

    def flee_direction(self, px: float, py: float, herd: Sequence["Deer"]) -> Tuple[int, int]:
        c = self.config
        dx, dy = self.x - px, self.y - py
        d = math.hypot(dx, dy)
        fx, fy = float(self.x), float(self.y)
        if d > 0:
            fx += dx / d * 10.0
            fy += dy / d * 10.0
        peers = self.nearby_fleeing(herd, c["flock_radius"])
        if peers:
            ax = ay = 0.0
            for p in peers:
                pdx, pdy = p.x - px, p.y - py
                pd = math.hypot(pdx, pdy)
                if pd > 0:
                    ax += pdx / pd
                    ay += pdy / pd
            ax /= len(peers)
            ay /= len(peers)
            k = float(c["flock_strength"])
            fx = fx * (1 - k) + (self.x + ax * 10.0) * k
            fy = fy * (1 - k) + (self.y + ay * 10.0) * k
        return int(math.floor(fx)), int(math.floor(fy))

    def remembered_player(self, px: int, py: int, sees: bool, now: int) -> Tuple[int, int]:
        if sees or self.last_player_position is None or self.last_player_seen is None:
            return px, py
        if now - self.last_player_seen < self.config["player_memory_time"]:
            return self.last_player_position
        return px, py

    def update(self, px: int, py: int, herd: Sequence["Deer"], now: int, tick_ms: int = 200) -> None:
        c = self.config
        self.state_timer += tick_ms
        distance = self.distance_to(px, py)
        sees = self.can_see(px, py)
        if sees:
            self.last_player_position = (px, py)
            self.last_player_seen = now
        target = None
        if self.state is DeerState.WANDERING:
            if self.nearby_fleeing(herd, c["herd_alert_radius"]) or (sees and distance <= c["alert_range"]):
                self.set_state(DeerState.ALERT)
                return
            self.wander_timer += tick_ms
            if self.wander_target is None or self.wander_timer >= c["wander_duration"]:
                self.generate_wander_target()
                self.wander_timer = 0
            if self.wander_target is not None and self.rng.random() < c["wander_move_chance"]:
                target = self.wander_target
        elif self.state is DeerState.ALERT:
            if self.state_timer >= c["alert_duration"]:
                if sees and distance <= c["alert_range"]:
                    self.set_state(DeerState.FLEEING)
                else:
                    self.set_state(DeerState.WANDERING)
                    return
            elif sees and distance < c["alert_range"] + 1:
                target = (2 * self.x - px, 2 * self.y - py)
        if self.state is DeerState.FLEEING:
            self.flee_timer += tick_ms
            mx, my = self.remembered_player(px, py, sees, now)
            effective = self.distance_to(mx, my)
            if self.flee_timer >= c["max_flee_time"] or (effective >= c["flee_distance"] and self.flee_timer >= c["min_flee_time"]):
                self.set_state(DeerState.WANDERING)
                return
            target = self.flee_direction(mx, my, herd)
        if target is not None and now - self.last_move_time >= self.move_interval:
            if self.step_toward(*target):
                self.last_move_time = now

    def lazy_wander(self, chance: float) -> None:
        if self.rng.random() < chance:
            self.generate_wander_target()
            if self.wander_target is not None:
                self.step_toward(*self.wander_target)

    def status(self) -> DeerStatus:
        return DeerStatus(self.deer_id, self.x, self.y, self.state.value, self.state_timer,
                          self.last_move_time, len(self.reactions))
