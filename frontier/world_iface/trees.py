import logging
import math
import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from .classifier import CLASS_CODE, classify_context
from .context import Bounds
from .module_base import TerrainModule

logger = logging.getLogger(__name__)

Point = Tuple[int, int]
TRUNK = "trunk"
CANOPY = "canopy"


@dataclass
class Tree:
    tree_id: int
    trunk_x: int
    trunk_y: int

    def footprint(self) -> List[Point]:
        return [(self.trunk_x + dx, self.trunk_y + dy) for dy in (-1, 0, 1) for dx in (-1, 0, 1)]

    def to_dict(self) -> Dict[str, Any]:
        return {"tree_id": self.tree_id, "trunk_x": self.trunk_x, "trunk_y": self.trunk_y}


@dataclass
class TreeFeature:
    kind: str
    tree_id: int
    trunk_x: int
    trunk_y: int


@dataclass
class TreeLayer:
    bounds: Bounds
    trees: List[Tree] = field(default_factory=list)
    features: Dict[Point, TreeFeature] = field(default_factory=dict)
    _sight: Optional[np.ndarray] = field(default=None, repr=False)

    def place_tree(self, x: int, y: int) -> Tree:
        existing = self.features.get((x, y))
        if existing is not None and existing.kind == TRUNK:
            raise ValueError(f"({x}, {y}) already holds the trunk of tree {existing.tree_id}")
        tree = Tree(len(self.trees), int(x), int(y))
        self.trees.append(tree)
        for cell in tree.footprint():
            if cell == (tree.trunk_x, tree.trunk_y):
                self.features[cell] = TreeFeature(TRUNK, tree.tree_id, tree.trunk_x, tree.trunk_y)
            elif cell not in self.features:
                self.features[cell] = TreeFeature(CANOPY, tree.tree_id, tree.trunk_x, tree.trunk_y)
        self._sight = None
        return tree

    def feature_at(self, x: int, y: int) -> Optional[TreeFeature]:
        return self.features.get((x, y))

    def tree_at(self, x: int, y: int) -> Optional[Tree]:
        f = self.features.get((x, y))
        return None if f is None else self.trees[f.tree_id]

    def blocks_movement(self, x: int, y: int) -> bool:
        f = self.features.get((x, y))
        return f is not None and f.kind == TRUNK

    def blocks_sight(self, x: int, y: int) -> bool:
        return (x, y) in self.features

    def sight_mask(self) -> np.ndarray:
        """Boolean [y, x] grid of cells that stop line of sight."""
        if self._sight is None:
            mask = np.zeros(self.bounds.shape, dtype=np.bool_)
            for (x, y) in self.features:
                if self.bounds.contains(x, y):
                    mask[self.bounds.to_index(x, y)] = True
            self._sight = mask
        return self._sight

    def trunk_count(self) -> int:
        return sum(1 for f in self.features.values() if f.kind == TRUNK)


class TreesModule(TerrainModule):
    name = "trees"
    default_priority = 50
    dependencies = ("geology", "elevation", "hydrology")

    @classmethod
    def default_config(cls) -> Dict[str, Any]:
        return {
            "max_trees": 50,
            "min_tree_spacing": 2,
            "forest_patch_count": 3,
            "scattered_tree_count": 15,
            "tree_line": 0.8,
            "bounds_margin": 2,
        }

    def generate(self, ctx) -> TreeLayer:
        c = self.config
        b = ctx.bounds
        layer = TreeLayer(b)
        sites = self.site_mask(ctx)
        rng = ctx.rng("trees", "patches")
        for patch in range(int(c["forest_patch_count"]) + rng.randint(0, 2)):
            self.grow_patch(ctx, layer, sites, patch)
        rng = ctx.rng("trees", "scattered")
        count = min(int(c["scattered_tree_count"]), 8 + rng.randint(0, 7))
        for i in range(count):
            prng = ctx.rng("trees", "scattered", i)
            for _ in range(20):
                x = b.min_x + 10 + int(prng.random() * max(1, b.width - 21))
                y = b.min_y + 10 + int(prng.random() * max(1, b.height - 21))
                if self.can_place(layer, sites, x, y):
                    layer.place_tree(x, y)
                    break
        logger.info("Placed %d trees", len(layer.trees))
        return layer

    def site_mask(self, ctx) -> np.ndarray:
        """Cells a trunk may stand on: plains below the tree line, clear of the border."""
        sites = classify_context(ctx) == CLASS_CODE["plains"]
        elev = ctx.artifact("elevation")
        if elev is not None:
            sites &= elev.values <= self.config["tree_line"]
        m = int(self.config["bounds_margin"])
        if m > 0:
            sites[:m, :] = False
            sites[-m:, :] = False
            sites[:, :m] = False
            sites[:, -m:] = False
        return sites

    def grow_patch(self, ctx, layer: TreeLayer, sites: np.ndarray, patch: int) -> None:
        b = ctx.bounds
        rng = ctx.rng("trees", "patch", patch)
        cx = b.min_x + 20 + int(rng.random() * max(1, b.width - 41))
        cy = b.min_y + 20 + int(rng.random() * max(1, b.height - 41))
        if not self.good_location(layer, sites, cx, cy):
            return
        size = 15 + rng.randint(0, 9)
        density = rng.uniform(0.3, 0.6)
        for _ in range(size * 2):
            if not rng.chance(density):
                continue
            angle = rng.random() * 2.0 * math.pi
            dist = rng.random() * size
            x = int(math.floor(cx + math.cos(angle) * dist))
            y = int(math.floor(cy + math.sin(angle) * dist))
            if self.can_place(layer, sites, x, y):
                layer.place_tree(x, y)

    @staticmethod
    def good_location(layer: TreeLayer, sites: np.ndarray, x: int, y: int) -> bool:
        return layer.bounds.contains(x, y) and bool(sites[layer.bounds.to_index(x, y)])

    def can_place(self, layer: TreeLayer, sites: np.ndarray, x: int, y: int) -> bool:
        if len(layer.trees) >= int(self.config["max_trees"]):
            return False
        if not self.good_location(layer, sites, x, y):
            return False
        spacing = float(self.config["min_tree_spacing"])
        return all(math.hypot(t.trunk_x - x, t.trunk_y - y) >= spacing for t in layer.trees)

    def affects_position(self, x: int, y: int, ctx) -> bool:
        layer = self.artifact(ctx)
        return layer is not None and layer.feature_at(x, y) is not None

    def get_data_at(self, x: int, y: int, ctx) -> Dict[str, Any]:
        f = self.artifact(ctx).feature_at(x, y)
        if f is None:
            return {}
        return {"feature": f.kind, "tree_id": f.tree_id, "features": [f"tree-{f.kind}"]}
