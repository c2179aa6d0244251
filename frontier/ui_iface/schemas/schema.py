def module_section(extra: dict = None) -> dict:
    props = {"enabled": {"type": "boolean"}, "priority": {"type": "integer"}}
    props.update(extra or {})
    return {"type": "object", "properties": props}
def get_schema() -> dict:
    unit = {"type": "number", "minimum": 0, "maximum": 1}
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "properties": {
            "world": {
                "type": "object",
                "properties": {
                    "center_x": {"type": "integer"},
                    "center_y": {"type": "integer"},
                    "region_size": {"type": "integer", "minimum": 4},
                    "seed": {"type": "integer"},
                    "bounds": {
                        "type": "object",
                        "required": ["min_x", "max_x", "min_y", "max_y"],
                        "properties": {k: {"type": "integer"} for k in ("min_x", "max_x", "min_y", "max_y")},
                    },
                },
                "additionalProperties": False,
            },
            "geology": module_section({
                "preset": {"type": ["string", "null"]},
                "formations": {"type": "array", "items": {
                    "type": "object",
                    "required": ["type", "count", "min_radius", "max_radius", "rock_type"],
                    "properties": {
                        "type": {"type": "string"},
                        "count": {"type": "integer", "minimum": 0},
                        "min_radius": {"type": "number", "minimum": 0},
                        "max_radius": {"type": "number", "minimum": 0},
                        "rock_type": {"enum": ["hard", "soft", "clay", "mixed"]},
                        "elevation_effect": {"type": "number"},
                    },
                }},
                "base_rock_type": {"enum": ["hard", "soft", "clay"]},
            }),
            "elevation": module_section({"use_geology": {"type": "boolean"}, "base_elevation": unit, "max_elevation": unit}),
            "hydrology": module_section({
                "spring_count": {"type": "integer", "minimum": 0},
                "lake_count": {"type": "integer", "minimum": 0},
                "sea_level": unit,
                "confluence_enabled": {"type": "boolean"},
            }),
            "vegetation": module_section({"forest_count": {"type": "integer", "minimum": 0}}),
            "trees": module_section({
                "max_trees": {"type": "integer", "minimum": 0},
                "min_tree_spacing": {"type": "integer", "minimum": 0},
                "tree_line": unit,
            }),
            "deer": {"type": "object", "properties": {
                "max_deer_count": {"type": "integer", "minimum": 0},
                "update_interval": {"type": "integer", "minimum": 1},
                "max_reactions_per_update": {"type": "integer", "minimum": 1},
                "reaction_queue_size": {"type": "integer", "minimum": 1},
            }},
            "companion": {"type": "object", "properties": {
                "enabled": {"type": "boolean"},
                "update_interval": {"type": "integer", "minimum": 1},
                "spawn_offset": {"type": "array", "items": {"type": "integer"}, "minItems": 2, "maxItems": 2},
                "spawn_search_radius": {"type": "integer", "minimum": 0},
                "wander_radius": {"type": "number", "minimum": 0},
                "follow_distance": {"type": "number", "minimum": 0},
            }},
            "fog_of_war": {"type": "object", "properties": {
                "enabled": {"type": "boolean"},
                "vision_radius": {"type": "integer", "minimum": 1},
                "forward_vision_range": {"type": "integer", "minimum": 1},
                "explored_radius": {"type": "integer", "minimum": 0},
                "cone_angle": {"type": "number"},
                "facing": {"type": "array", "items": {"type": "integer", "minimum": -1, "maximum": 1}, "minItems": 2, "maxItems": 2},
            }},
            "simulation": {"type": "object", "properties": {
                "tick_ms": {"type": "integer", "minimum": 1},
                "player_step_ms": {"type": "integer", "minimum": 1},
                "player_start": {"type": ["array", "null"], "items": {"type": "integer"}, "minItems": 2, "maxItems": 2},
            }},
            "outputs": {"type": "object", "properties": {
                "deer_cadence": {"type": "integer", "minimum": 1},
                "write_fields": {"type": "boolean"},
            }},
            "debug": {"type": "boolean"},
        },
    }
