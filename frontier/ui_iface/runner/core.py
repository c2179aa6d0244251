import logging
import numpy as np
from typing import Any, Dict, List, Optional, Tuple
from .registry import build_context, with_defaults
from .render import COMPANION_CLASS, COMPANION_SYMBOL, DEER_CLASS, DEER_SYMBOL, PLAYER_CLASS, PLAYER_SYMBOL, Viewport
from ...world_iface.classifier import FEATURE_TYPES, TERRAIN_TYPES, TerrainClassifier
from ...world_iface.errors import InvariantViolation
from ...world_iface.fog import FogOfWar
from ...world_iface.trees import CANOPY, TRUNK, TreeLayer
from ...agent_iface.commands import MoveOutcome, invert_move, plan_move
from ...agent_iface.companion import CompanionDog, CompanionManager, CompanionState
from ...agent_iface.deer import Deer, DeerState
from ...agent_iface.deer_manager import DeerManager

logger = logging.getLogger(__name__)

Point = Tuple[int, int]


class Core:
    """The façade adapters talk to: terrain queries, movement, agents, fog and rendering."""

    def __init__(self, cfg: Optional[Dict[str, Any]] = None, spawn_deer: bool = True):
        self.cfg = with_defaults(cfg or {})
        self.ctx = build_context(self.cfg)
        self.classifier = TerrainClassifier(self.ctx)
        self.fog = FogOfWar(self.cfg["fog_of_war"], blockers=self._blockers)
        self.now = 0
        self._tree_layer: Optional[TreeLayer] = None
        self.player: Point = (0, 0)
        self.deer_manager = DeerManager(self, self.cfg["deer"], seed=self.ctx.config.seed)
        self.companion_manager = CompanionManager(self, self.cfg["companion"], seed=self.ctx.config.seed)
        self._spawn_deer = spawn_deer
        self._build()

    @property
    def bounds(self):
        return self.ctx.bounds

    @property
    def seed(self) -> int:
        return self.ctx.config.seed

    @property
    def trees(self) -> TreeLayer:
        layer = self.ctx.artifact("trees")
        if layer is not None:
            return layer
        if self._tree_layer is None:
            self._tree_layer = TreeLayer(self.bounds)
        return self._tree_layer

    @property
    def deer(self) -> List[Deer]:
        return self.deer_manager.deer

    @property
    def companion(self) -> Optional[CompanionDog]:
        return self.companion_manager.companion

    def _build(self) -> None:
        self.ctx.generate()
        self._tree_layer = None
        self.fog.clear_exploration()
        self.player = self.find_open_cell(*self.start_position())
        self.deer_manager = DeerManager(self, self.cfg["deer"], seed=self.seed)
        self.companion_manager = CompanionManager(self, self.cfg["companion"], seed=self.seed, herd=self.deer_manager)
        self.deer_manager.occupant_at = self.companion_manager.get_companion_at
        self.deer_manager.player_position = self.player
        self._populate()
        self.fog.update_exploration(*self.player)
        if self.cfg.get("debug"):
            self.check_invariants()

    def _populate(self) -> None:
        if self._spawn_deer:
            self.deer_manager.spawn()
        self.companion_manager.spawn(*self.player)

    def start_position(self) -> Point:
        start = self.cfg["simulation"].get("player_start")
        if start:
            return int(start[0]), int(start[1])
        return self.ctx.config.center_x, self.ctx.config.center_y

    def find_open_cell(self, x: int, y: int, max_radius: int = 50) -> Point:
        """Nearest walkable cell to (x, y), searching outward ring by ring."""
        for r in range(max_radius + 1):
            for dy in range(-r, r + 1):
                for dx in range(-r, r + 1):
                    if max(abs(dx), abs(dy)) == r and self.can_move_to(x + dx, y + dy):
                        return x + dx, y + dy
        return x, y

    def _blockers(self):
        b = self.bounds
        return self.trees.sight_mask(), b.min_x, b.min_y

    def has_line_of_sight(self, x0: int, y0: int, x1: int, y1: int) -> bool:
        return self.fog.has_line_of_sight(x0, y0, x1, y1)

    def terrain_tag(self, x: int, y: int) -> str:
        return self.classifier.classify(x, y)

    def can_move_to(self, x: int, y: int) -> bool:
        if not self.ctx.is_in_bounds(x, y):
            return False
        if not TERRAIN_TYPES[self.terrain_tag(x, y)].walkable:
            return False
        return not self.trees.blocks_movement(x, y)

    def base_cell(self, x: int, y: int) -> Dict[str, Any]:
        """Terrain, feature, deer and companion at (x, y) before fog is applied."""
        if not self.ctx.is_in_bounds(x, y):
            t = TERRAIN_TYPES["unknown"]
            return {"x": x, "y": y, "tag": "unknown", "symbol": t.symbol, "class_tag": t.class_tag, "name": t.name,
                    "feature": None, "deer": None, "companion": False, "elevation": None, "rock_type": None}
        tag = self.terrain_tag(x, y)
        t = TERRAIN_TYPES[tag]
        symbol, class_tag, name = t.symbol, t.class_tag, t.name
        if tag == "river":
            hydro = self.ctx.artifact("hydrology")
            tile = hydro.tiles.get((x, y)) if hydro is not None else None
            if tile is not None:
                symbol = tile.glyph
        elev = self.ctx.artifact("elevation")
        geo = self.ctx.artifact("geology")
        feature = self.trees.feature_at(x, y)
        if feature is not None:
            ft = FEATURE_TYPES[feature.kind]
            symbol, class_tag, name = ft["symbol"], ft["class_tag"], ft["name"]
        deer = self.deer_manager.get_deer_at(x, y)
        dog = self.companion_manager.get_companion_at(x, y)
        under_canopy = feature is not None and feature.kind == CANOPY
        if deer is not None and not under_canopy:
            symbol = DEER_SYMBOL
            class_tag = DEER_CLASS + (" deer-fleeing" if deer.state is DeerState.FLEEING else "")
            name = f"Deer ({deer.state.value})"
        elif dog is not None and not under_canopy:
            symbol = COMPANION_SYMBOL
            class_tag = COMPANION_CLASS
            if dog.state is not CompanionState.WANDERING:
                class_tag += f" companion-{dog.state.value}"
            name = f"Companion ({dog.state.value})"
        return {
            "x": x,
            "y": y,
            "tag": tag,
            "symbol": symbol,
            "class_tag": class_tag,
            "name": name,
            "feature": None if feature is None else feature.kind,
            "deer": None if deer is None else deer.deer_id,
            "companion": dog is not None,
            "elevation": None if elev is None else elev.at(x, y),
            "rock_type": None if geo is None else geo.rock_type_at(x, y),
        }

    def get_terrain_at(self, x: int, y: int) -> Dict[str, Any]:
        cell = self.base_cell(x, y)
        px, py = self.player
        cell["explored"] = self.fog.is_explored(x, y)
        cell["visible"] = (not self.fog.enabled) or self.fog.is_in_vision(x, y, px, py)
        return cell

    def on_player_moved(self, x: int, y: int, now: Optional[int] = None) -> None:
        if now is not None:
            self.now = int(now)
        self.player = (int(x), int(y))
        self.fog.update_exploration(x, y)
        self.companion_manager.player_position = self.player
        self.deer_manager.on_player_moved(x, y, self.now)

    def tick(self, now: int) -> bool:
        """Run the herd and the companion; returns whether the herd's interval had elapsed."""
        self.now = int(now)
        ran = self.deer_manager.tick(self.now, *self.player)
        self.companion_manager.tick(self.now, *self.player)
        if self.cfg.get("debug"):
            self.check_invariants()
        return ran

    def apply_move(self, dx: int, dy: int) -> MoveOutcome:
        """Turn toward (dx, dy) and step if the target cell is open."""
        x, y = self.player
        outcome = plan_move(x, y, dx, dy, self.fog.facing, self.can_move_to)
        self.commit_move(outcome)
        return outcome

    def commit_move(self, outcome: MoveOutcome) -> None:
        self.fog.facing = outcome.facing_after
        if outcome.moved:
            self.on_player_moved(outcome.to_x, outcome.to_y)

    def revert_move(self, outcome: MoveOutcome) -> MoveOutcome:
        inverse = invert_move(outcome)
        self.commit_move(inverse)
        return inverse

    def render_view(self, buffer, viewport: Viewport, player: Optional[Point] = None) -> None:
        px, py = player if player is not None else self.player
        if self.fog.enabled:
            seen = self.fog.visible_window(viewport.x, viewport.y, viewport.width, viewport.height, px, py)
        else:
            seen = np.ones((viewport.height, viewport.width), dtype=bool)
        buffer.begin(viewport)
        for col, row, x, y in viewport.cells():
            if (x, y) == (px, py):
                buffer.put(col, row, PLAYER_SYMBOL, PLAYER_CLASS)
                continue
            cell = self.fog.apply_fog_of_war(x, y, px, py, self.base_cell(x, y), visible=bool(seen[row, col]))
            buffer.put(col, row, cell["symbol"], cell["class_tag"])
        buffer.end()

    def regenerate_all(self, seed: Optional[int] = None) -> None:
        if seed is not None:
            self.cfg["world"]["seed"] = int(seed)
        self.ctx = build_context(self.cfg)
        self.classifier = TerrainClassifier(self.ctx)
        logger.info("Regenerating world with seed %d", self.seed)
        self._build()

    def regenerate_module(self, name: str, config: Optional[Dict[str, Any]] = None) -> None:
        """Re-run one module, optionally with new settings, plus everything downstream of it."""
        module = self.ctx.get_module(name)
        if module is None:
            raise KeyError(name)
        if config:
            module.config.update(config)
            self.cfg.setdefault(name, {}).update(config)
        self.ctx.regenerate_module(name)
        self.classifier.invalidate()
        self._tree_layer = None
        self.fog.clear_exploration()
        # new water or trunks may now cover the player's cell
        self.player = self.find_open_cell(*self.player)
        self.deer_manager.player_position = self.player
        self.companion_manager.remove()
        if self._spawn_deer:
            self.deer_manager.respawn()
        else:
            self.deer_manager.deer.clear()
        self.companion_manager.spawn(*self.player)
        self.fog.update_exploration(*self.player)
        if self.cfg.get("debug"):
            self.check_invariants()

    def is_occupied(self, x: int, y: int) -> bool:
        return ((x, y) == self.player or self.deer_manager.get_deer_at(x, y) is not None
                or self.companion_manager.get_companion_at(x, y) is not None)

    def place_tree(self, x: int, y: int):
        if not self.ctx.is_in_bounds(x, y):
            raise ValueError(f"({x}, {y}) is outside the world bounds")
        if self.is_occupied(x, y):
            raise ValueError(f"({x}, {y}) is occupied; a trunk cannot go there")
        return self.trees.place_tree(x, y)

    def place_deer(self, x: int, y: int) -> Deer:
        if not self.can_move_to(x, y) or self.is_occupied(x, y):
            raise ValueError(f"({x}, {y}) is not open ground")
        return self.deer_manager.add_deer(x, y)

    def call_companion(self) -> bool:
        return self.companion_manager.call(self.now)

    def terrain_statistics(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {"terrain": self.classifier.counts()}
        geo = self.ctx.artifact("geology")
        hydro = self.ctx.artifact("hydrology")
        veg = self.ctx.artifact("vegetation")
        elev = self.ctx.artifact("elevation")
        if geo is not None:
            stats["formations"] = len(geo.formations)
        if elev is not None:
            stats["elevation_mean"] = float(elev.values.mean())
            stats["elevation_max"] = float(elev.values.max())
        if hydro is not None:
            stats["springs"] = len(hydro.springs)
            stats["rivers"] = len(hydro.rivers)
            stats["lakes"] = len(hydro.lakes)
            stats["confluences"] = sum(1 for t in hydro.tiles.values() if t.is_confluence)
        if veg is not None:
            stats["forests"] = len(veg.forests)
        stats["trees"] = len(self.trees.trees)
        stats["deer"] = len(self.deer)
        stats["companion"] = self.companion is not None
        return stats

    def check_invariants(self) -> None:
        hydro = self.ctx.artifact("hydrology")
        elev = self.ctx.artifact("elevation")
        if hydro is not None and elev is not None:
            module = self.ctx.get_module("hydrology")
            eps = module.uphill_tolerance() + 1e-12
            sea = module.config["sea_level"]
            for r in hydro.rivers:
                heights = [elev.at(x, y) for x, y in r.path]
                for a, b in zip(heights, heights[1:]):
                    if b > a + eps:
                        raise InvariantViolation("river-descent", f"{r.river_id} climbs from {a:.4f} to {b:.4f}")
                if r.terminus == "sea" and heights[-1] > sea:
                    raise InvariantViolation("river-terminus", f"{r.river_id} ends above sea level")
            if (hydro.river_mask & (hydro.lake_id >= 0)).any():
                raise InvariantViolation("water-overlap", "a cell is both lake and river")
        for tree in self.trees.trees:
            window = [self.trees.feature_at(x, y) for x, y in tree.footprint()]
            trunk = self.trees.feature_at(tree.trunk_x, tree.trunk_y)
            if trunk is None or trunk.kind != TRUNK or trunk.tree_id != tree.tree_id:
                raise InvariantViolation("tree-footprint", f"tree {tree.tree_id} lost its trunk")
            if not any(f is not None and f.kind == CANOPY for f in window):
                raise InvariantViolation("tree-footprint", f"tree {tree.tree_id} has no canopy")
        cells = [(d.x, d.y) for d in self.deer]
        if len(set(cells)) != len(cells):
            raise InvariantViolation("deer-occupancy", "two deer share a cell")
        for d in self.deer:
            if self.trees.blocks_movement(d.x, d.y):
                raise InvariantViolation("deer-on-trunk", f"deer {d.deer_id} stands on a trunk at ({d.x}, {d.y})")
        dog = self.companion
        if dog is not None:
            if (dog.x, dog.y) in set(cells):
                raise InvariantViolation("companion-occupancy", "the companion shares a cell with a deer")
            if self.trees.blocks_movement(dog.x, dog.y):
                raise InvariantViolation("companion-on-trunk", f"the companion stands on a trunk at ({dog.x}, {dog.y})")
