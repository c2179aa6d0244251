import copy
import numpy as np
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple


def smoothstep(t):
    t = np.clip(t, 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


class TerrainModule(ABC):
    name: str = ""
    default_priority: int = 0
    dependencies: Tuple[str, ...] = ()

    def __init__(self, config: Optional[Dict[str, Any]] = None, enabled: bool = True, priority: Optional[int] = None):
        cfg = dict(config or {})
        self.enabled = bool(cfg.pop("enabled", enabled))
        p = cfg.pop("priority", priority)
        self.priority = self.default_priority if p is None else int(p)
        self.config = self.default_config()
        self.config.update(copy.deepcopy(cfg))

    @classmethod
    def default_config(cls) -> Dict[str, Any]:
        return {}

    @abstractmethod
    def generate(self, ctx) -> Any:
        """Build this module's artifact from the context; must not mutate other artifacts."""

    def artifact(self, ctx) -> Any:
        return ctx.artifact(self.name)

    def affects_position(self, x: int, y: int, ctx) -> bool:
        return False

    def get_data_at(self, x: int, y: int, ctx) -> Dict[str, Any]:
        return {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(priority={self.priority}, enabled={self.enabled})"
