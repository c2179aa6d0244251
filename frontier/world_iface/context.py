import heapq
import logging
import numpy as np
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
from .errors import CycleError, DependencyMissing, GenerationError, OutOfBounds
from .rng import SeededRandom

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Bounds:
    min_x: int
    max_x: int
    min_y: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    def contains(self, x: int, y: int) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def to_index(self, x: int, y: int) -> Tuple[int, int]:
        if not self.contains(x, y):
            raise OutOfBounds(x, y)
        return int(y - self.min_y), int(x - self.min_x)

    def clamp(self, x: int, y: int) -> Tuple[int, int]:
        return (min(max(x, self.min_x), self.max_x), min(max(y, self.min_y), self.max_y))

    def grid(self) -> Tuple[np.ndarray, np.ndarray]:
        xs = np.arange(self.min_x, self.max_x + 1)
        ys = np.arange(self.min_y, self.max_y + 1)
        return np.meshgrid(xs, ys)

    def to_dict(self) -> Dict[str, int]:
        return {"min_x": self.min_x, "max_x": self.max_x, "min_y": self.min_y, "max_y": self.max_y}


@dataclass(frozen=True)
class WorldConfig:
    center_x: int = 0
    center_y: int = 0
    region_size: int = 200
    seed: int = 12345
    explicit_bounds: Optional[Bounds] = None

    @property
    def bounds(self) -> Bounds:
        if self.explicit_bounds is not None:
            return self.explicit_bounds
        half = self.region_size // 2
        return Bounds(self.center_x - half, self.center_x + half, self.center_y - half, self.center_y + half)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WorldConfig":
        b = d.get("bounds")
        return cls(
            center_x=int(d.get("center_x", 0)),
            center_y=int(d.get("center_y", 0)),
            region_size=int(d.get("region_size", 200)),
            seed=int(d.get("seed", 12345)),
            explicit_bounds=Bounds(int(b["min_x"]), int(b["max_x"]), int(b["min_y"]), int(b["max_y"])) if b else None,
        )

    def with_seed(self, seed: int) -> "WorldConfig":
        return WorldConfig(self.center_x, self.center_y, self.region_size, int(seed), self.explicit_bounds)

    def to_dict(self) -> Dict[str, Any]:
        d = {"center_x": self.center_x, "center_y": self.center_y, "region_size": self.region_size, "seed": self.seed}
        if self.explicit_bounds is not None:
            d["bounds"] = self.explicit_bounds.to_dict()
        return d


class WorldContext:
    """Registered terrain modules, their artifacts and the order they run in."""

    def __init__(self, config: WorldConfig):
        self.config = config
        self.modules: Dict[str, Any] = {}
        self.artifacts: Dict[str, Any] = {}
        self.failures: Dict[str, GenerationError] = {}
        self.skipped: List[str] = []
        self.version = 0

    @property
    def bounds(self) -> Bounds:
        return self.config.bounds

    def is_in_bounds(self, x: int, y: int) -> bool:
        return self.bounds.contains(x, y)

    def rng(self, *key: Any) -> SeededRandom:
        return SeededRandom(self.config.seed, *key)

    def register_module(self, module) -> None:
        if module.name in self.modules:
            raise ValueError(f"module '{module.name}' is already registered")
        for dep in module.dependencies:
            if dep not in self.modules:
                raise DependencyMissing(module.name, dep)
        self.modules[module.name] = module
        try:
            self.generation_order(include_disabled=True)
        except CycleError:
            del self.modules[module.name]
            raise

    def remove_module(self, name: str) -> None:
        if name not in self.modules:
            raise KeyError(name)
        dependents = sorted(m.name for m in self.modules.values() if name in m.dependencies)
        if dependents:
            raise DependencyMissing(dependents[0], name)
        del self.modules[name]
        self.artifacts.pop(name, None)
        self.version += 1

    def get_module(self, name: str):
        return self.modules.get(name)

    def artifact(self, name: str) -> Optional[Any]:
        m = self.modules.get(name)
        if m is None or not m.enabled:
            return None
        return self.artifacts.get(name)

    def generation_order(self, include_disabled: bool = False) -> List[str]:
        names = [n for n, m in self.modules.items() if include_disabled or m.enabled]
        pending = {n: {d for d in self.modules[n].dependencies if d in names} for n in names}
        heap = [(-self.modules[n].priority, n) for n, deps in pending.items() if not deps]
        heapq.heapify(heap)
        order = []
        while heap:
            _, n = heapq.heappop(heap)
            order.append(n)
            for other, deps in pending.items():
                if n in deps:
                    deps.discard(n)
                    if not deps:
                        heapq.heappush(heap, (-self.modules[other].priority, other))
        if len(order) != len(names):
            raise CycleError(set(names) - set(order))
        return order

    def dependents_of(self, name: str) -> Set[str]:
        out: Set[str] = set()
        frontier = [name]
        while frontier:
            cur = frontier.pop()
            for m in self.modules.values():
                if cur in m.dependencies and m.name not in out:
                    out.add(m.name)
                    frontier.append(m.name)
        return out

    def generate(self) -> None:
        self.artifacts.clear()
        self.failures.clear()
        self.skipped = []
        self._run(self.generation_order())

    def regenerate_module(self, name: str) -> None:
        if name not in self.modules:
            raise KeyError(name)
        targets = {name} | self.dependents_of(name)
        order = [n for n in self.generation_order() if n in targets]
        for n in order:
            self.artifacts.pop(n, None)
            self.failures.pop(n, None)
        self.skipped = [n for n in self.skipped if n not in targets]
        logger.info("Regenerating %s", ", ".join(order))
        self._run(order)

    def _run(self, order: Iterable[str]) -> None:
        first_error = None
        for name in order:
            module = self.modules[name]
            blocked = [d for d in module.dependencies if d in self.failures or d in self.skipped]
            if blocked:
                logger.warning("Skipping %s: upstream %s did not generate", name, ", ".join(blocked))
                self.skipped.append(name)
                continue
            try:
                self.artifacts[name] = module.generate(self)
            except Exception as e:
                err = GenerationError(name, e)
                self.failures[name] = err
                logger.error("%s", err)
                if first_error is None:
                    first_error = err
        self.version += 1
        if first_error is not None:
            raise first_error

    def query(self, x: int, y: int) -> Dict[str, Any]:
        """Layered data at (x, y); higher-priority modules win terrain conflicts."""
        if not self.is_in_bounds(x, y):
            return {"terrain": "unknown", "features": []}
        result: Dict[str, Any] = {"terrain": None, "features": []}
        for module in sorted(self.modules.values(), key=lambda m: (m.priority, m.name)):
            if not module.enabled or module.name not in self.artifacts:
                continue
            for key, value in module.get_data_at(x, y, self).items():
                if key == "features":
                    result["features"].extend(value)
                elif key == "terrain":
                    if value is not None:
                        result["terrain"] = value
                else:
                    result[key] = value
        return result
