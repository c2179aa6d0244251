import math
import numpy as np
import pytest
from frontier.world_iface.fog import FogOfWar

def fog_with_walls(cells, config=None, size=40):
    mask = np.zeros((size, size), dtype=np.bool_)
    for x, y in cells:
        mask[y, x] = True
    return FogOfWar(config or {}, blockers=lambda: (mask, 0, 0))

def test_cone_and_disk():
    fog = FogOfWar({"vision_radius": 3, "forward_vision_range": 12, "cone_angle": 150, "facing": [0, -1]})
    assert fog.is_in_vision(15, 5, 15, 15)
    assert not fog.is_in_vision(25, 15, 15, 15)
    assert fog.is_in_vision(17, 16, 15, 15)
    assert not fog.is_in_vision(15, 19, 15, 15)

def test_full_cone_is_a_disk():
    fog = FogOfWar({"vision_radius": 2, "forward_vision_range": 9, "cone_angle": 360})
    for dx in range(-11, 12):
        for dy in range(-11, 12):
            expected = math.hypot(dx, dy) <= 9
            assert fog.is_in_vision(dx, dy, 0, 0) == expected, (dx, dy)

def test_settings_are_clamped():
    fog = FogOfWar({"vision_radius": 0, "forward_vision_range": 5, "cone_angle": 10, "explored_radius": -3})
    assert fog.vision_radius == 1
    assert fog.cone_angle == 30
    assert fog.explored_radius == 0
    fog.set_vision_radius(8)
    fog.set_forward_vision_range(3)
    assert fog.forward_vision_range == 8
    fog.set_cone_angle(720)
    assert fog.cone_angle == 360

def test_facing_updates():
    fog = FogOfWar()
    assert fog.facing_name() == "North"
    fog.update_facing(5, 3)
    assert fog.facing == (1, 1)
    assert fog.facing_name() == "Southeast"
    fog.update_facing(0, 0)
    assert fog.facing == (1, 1)

def test_line_of_sight_blocked_by_wall():
    fog = fog_with_walls([(10, 10)])
    assert not fog.has_line_of_sight(9, 10, 11, 10)
    assert fog.has_line_of_sight(9, 12, 11, 12)
    assert fog.has_line_of_sight(10, 10, 12, 10), "The viewer's own cell never blocks"

def test_line_of_sight_is_symmetric():
    rng = np.random.default_rng(3)
    walls = [tuple(int(v) for v in rng.integers(0, 30, size=2)) for _ in range(60)]
    fog = fog_with_walls(walls)
    for _ in range(300):
        x0, y0, x1, y1 = (int(v) for v in rng.integers(0, 30, size=4))
        assert fog.has_line_of_sight(x0, y0, x1, y1) == fog.has_line_of_sight(x1, y1, x0, y0)

def test_vision_respects_line_of_sight():
    fog = fog_with_walls([(15, 12)], {"vision_radius": 3, "forward_vision_range": 12, "cone_angle": 150})
    assert not fog.is_in_vision(15, 8, 15, 15)
    assert fog.is_in_vision(15, 12, 15, 15), "A blocker itself is visible"

def test_visible_window_matches_point_queries():
    fog = fog_with_walls([(12, 12), (20, 18)], {"vision_radius": 4, "forward_vision_range": 10, "cone_angle": 120})
    win = fog.visible_window(5, 5, 20, 20, 15, 15)
    for j in range(20):
        for i in range(20):
            assert win[j, i] == fog.is_in_vision(5 + i, 5 + j, 15, 15)

def test_exploration_only_grows():
    fog = FogOfWar({"vision_radius": 2, "forward_vision_range": 6, "explored_radius": 2})
    sizes = []
    seen = set()
    for step in range(10):
        fog.update_exploration(step, 0)
        assert seen <= fog.explored
        seen = set(fog.explored)
        sizes.append(len(seen))
    assert sizes == sorted(sizes)
    assert fog.is_explored(0, 0)
    fog.clear_exploration()
    assert not fog.explored

def test_apply_fog_of_war_states():
    fog = FogOfWar({"vision_radius": 2, "forward_vision_range": 4, "explored_radius": 1})
    cell = {"tag": "plains", "symbol": "▓", "class_tag": "terrain-grass", "name": "Plains", "feature": None, "deer": 3}
    hidden = fog.apply_fog_of_war(30, 30, 0, 0, cell)
    assert hidden["tag"] == "fog" and hidden["class_tag"] == "terrain-fog" and hidden["deer"] is None
    fog.explored.add((30, 30))
    remembered = fog.apply_fog_of_war(30, 30, 0, 0, cell)
    assert remembered["class_tag"] == "terrain-grass terrain-explored"
    assert remembered["symbol"] == "▓"
    visible = fog.apply_fog_of_war(1, 0, 0, 0, cell)
    assert visible["class_tag"] == "terrain-grass" and visible["visible"]
    fog.toggle()
    assert fog.apply_fog_of_war(30, 31, 0, 0, cell)["visible"]

def test_status():
    fog = FogOfWar()
    s = fog.status()
    assert s["facing"] == "North"
    assert s["explored_count"] == 0
    assert s["cone_angle"] == 160
