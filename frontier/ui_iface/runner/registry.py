import copy
from typing import Dict, Any, List
from ...world_iface.context import WorldConfig, WorldContext
from ...world_iface.geology import GeologyModule
from ...world_iface.elevation import ElevationModule
from ...world_iface.hydrology import HydrologyModule
from ...world_iface.vegetation import VegetationModule
from ...world_iface.trees import TreesModule
from ...agent_iface.companion import COMPANION_DEFAULTS
from ...agent_iface.deer import DEER_DEFAULTS
from ...agent_iface.deer_manager import MANAGER_DEFAULTS
MODULE_TYPES = {
    "geology": GeologyModule,
    "elevation": ElevationModule,
    "hydrology": HydrologyModule,
    "vegetation": VegetationModule,
    "trees": TreesModule,
}
def scenario_defaults() -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "world": {"center_x": 0, "center_y": 0, "region_size": 200, "seed": 12345},
        "deer": {**MANAGER_DEFAULTS, **DEER_DEFAULTS},
        "companion": copy.deepcopy(COMPANION_DEFAULTS),
        "fog_of_war": {"enabled": True, "vision_radius": 4, "forward_vision_range": 15, "explored_radius": 2, "cone_angle": 160, "facing": [0, -1]},
        "simulation": {"tick_ms": 200, "player_step_ms": 400, "player_start": None},
        "outputs": {"deer_cadence": 1, "write_fields": True},
        "debug": False,
    }
    for name, cls in MODULE_TYPES.items():
        d[name] = {"enabled": True, "priority": cls.default_priority, **cls.default_config()}
    return d
def build_modules(cfg: Dict[str, Any]) -> List[Any]:
    mods = []
    for name, cls in MODULE_TYPES.items():
        section = copy.deepcopy(cfg.get(name) or {})
        mods.append(cls(section))
    return mods
def build_context(cfg: Dict[str, Any]) -> WorldContext:
    ctx = WorldContext(WorldConfig.from_dict(cfg.get("world", {})))
    for m in build_modules(cfg):
        ctx.register_module(m)
    return ctx
def build_registry(cfg: Dict[str, Any]) -> Dict[str, Any]:
    mods = build_modules(cfg)
    names: List[str] = [m.name for m in mods]
    indices: Dict[str, int] = {n: i for i, n in enumerate(names)}
    priorities: List[int] = [m.priority for m in mods]
    enabled: List[bool] = [m.enabled for m in mods]
    dependencies: List[List[str]] = [list(m.dependencies) for m in mods]
    return {"names": names, "indices": indices, "priorities": priorities, "enabled": enabled, "dependencies": dependencies}
def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out
def with_defaults(cfg: Dict[str, Any]) -> Dict[str, Any]:
    return deep_merge(scenario_defaults(), cfg or {})
