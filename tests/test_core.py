import numpy as np
import pytest
from frontier.ui_iface.runner.core import Core
from frontier.agent_iface.companion import CompanionState
from frontier.ui_iface.runner.render import PLAYER_SYMBOL, DEER_SYMBOL, COMPANION_SYMBOL, TextBuffer, Viewport
from frontier.world_iface.errors import InvariantViolation

def dry_core(**overrides):
    cfg = {
        "world": {"seed": 1, "region_size": 60},
        "hydrology": {"spring_count": 0, "lake_count": 0},
        "trees": {"max_trees": 0},
        "deer": {"max_deer_count": 0},
    }
    cfg.update(overrides)
    return Core(cfg)

@pytest.fixture(scope="module")
def full_core():
    return Core({"world": {"seed": 12345, "region_size": 200}})

def test_trunk_blocks_and_canopy_is_walkable():
    core = dry_core()
    core.place_tree(10, 10)
    assert not core.can_move_to(10, 10)
    assert core.can_move_to(10, 11)
    assert not core.has_line_of_sight(9, 10, 11, 10)

def test_out_of_bounds_is_unknown():
    core = dry_core()
    cell = core.get_terrain_at(1000, 1000)
    assert cell["tag"] == "unknown"
    assert cell["class_tag"] == "terrain-unknown"
    assert not core.can_move_to(1000, 1000)
    with pytest.raises(ValueError):
        core.place_tree(1000, 1000)

def test_deer_flees_from_player():
    core = dry_core()
    deer = core.place_deer(20, 20)
    core.on_player_moved(17, 20, now=0)
    assert (deer.x - 17) ** 2 + (deer.y - 20) ** 2 > 9
    assert core.get_terrain_at(deer.x, deer.y)["deer"] == deer.deer_id

def test_place_deer_needs_open_ground():
    core = dry_core()
    core.place_tree(5, 5)
    with pytest.raises(ValueError):
        core.place_deer(5, 5)
    with pytest.raises(ValueError):
        core.place_deer(*core.player)

def test_deer_shown_on_open_ground_and_hidden_under_canopy():
    core = dry_core()
    core.place_deer(3, 3)
    assert core.get_terrain_at(3, 3)["symbol"] == DEER_SYMBOL
    core.place_tree(12, 12)
    core.place_deer(12, 13)
    cell = core.get_terrain_at(12, 13)
    assert cell["symbol"] == "♠"
    assert cell["deer"] is not None

def test_apply_and_revert_move():
    core = dry_core()
    start = core.player
    facing = core.fog.facing
    out = core.apply_move(1, 0)
    assert out.moved
    assert core.player == (start[0] + 1, start[1])
    assert core.fog.facing == (1, 0)
    core.revert_move(out)
    assert core.player == start
    assert core.fog.facing == facing

def test_blocked_move_turns_in_place():
    core = dry_core()
    px, py = core.player
    core.place_tree(px - 1, py)
    out = core.apply_move(-1, 0)
    assert not out.moved
    assert core.player == (px, py)
    assert core.fog.facing == (-1, 0)

def test_render_view_places_player_and_fog():
    core = dry_core()
    buf = TextBuffer()
    px, py = core.player
    core.render_view(buf, Viewport.centered_on(px, py, 21, 11))
    assert buf.find(PLAYER_SYMBOL) == [(10, 5)]
    assert buf.tag_at(10, 5) == "player"
    assert buf.tag_at(0, 10) == "terrain-fog"
    assert len(buf.lines()) == 11 and all(len(line) == 21 for line in buf.lines())

def test_render_without_fog_shows_terrain():
    core = dry_core(fog_of_war={"enabled": False})
    buf = TextBuffer()
    core.render_view(buf, Viewport.centered_on(0, 0, 9, 9))
    assert "terrain-fog" not in {buf.tag_at(c, r) for r in range(9) for c in range(9)}

def test_exploration_grows_with_movement():
    core = dry_core()
    before = set(core.fog.explored)
    core.apply_move(0, -1)
    assert before <= core.fog.explored
    assert len(core.fog.explored) > len(before)

def test_tick_is_gated():
    core = dry_core()
    assert core.tick(200)
    assert not core.tick(300)
    assert core.tick(400)

def test_regenerate_module_keeps_upstream_fields(full_core):
    geo_before = full_core.ctx.artifact("geology").rock.copy()
    elev_before = full_core.ctx.artifact("elevation").values.copy()
    hydro_before = full_core.ctx.artifact("hydrology")
    springs_before = [s.to_dict() for s in hydro_before.springs]
    rivers_before = [r.path for r in hydro_before.rivers]
    lakes_before = [(l.x, l.y, l.radius) for l in hydro_before.lakes]
    full_core.regenerate_module("hydrology", {"spring_count": 1})
    hydro = full_core.ctx.artifact("hydrology")
    assert np.array_equal(full_core.ctx.artifact("geology").rock, geo_before)
    assert np.array_equal(full_core.ctx.artifact("elevation").values, elev_before)
    assert hydro is not hydro_before
    assert len(hydro.springs) <= 1
    assert [s.to_dict() for s in hydro.springs] != springs_before
    assert [r.path for r in hydro.rivers] != rivers_before
    assert [(l.x, l.y, l.radius) for l in hydro.lakes] != lakes_before
    assert sorted(l.radius for l in hydro.lakes) != sorted(r for _, _, r in lakes_before)
    assert full_core.cfg["hydrology"]["spring_count"] == 1
    full_core.check_invariants()

def test_regenerate_all_with_new_seed():
    core = dry_core()
    before = core.ctx.artifact("elevation").values.copy()
    core.regenerate_all(seed=99)
    assert core.seed == 99
    assert not np.array_equal(core.ctx.artifact("elevation").values, before)

def test_invariants_hold_on_generated_world(full_core):
    full_core.check_invariants()
    stats = full_core.terrain_statistics()
    assert stats["formations"] == 9
    assert sum(stats["terrain"].values()) == 201 * 201

def deer_on_trunk(**overrides):
    core = dry_core(deer={"max_deer_count": 0, "lazy_wander_chance": 0.0}, **overrides)
    core.place_tree(10, 10)
    deer = core.place_deer(20, 20)
    deer.x, deer.y = 10, 10
    return core

def test_debug_mode_checks_invariants_every_tick():
    core = deer_on_trunk(debug=True)
    with pytest.raises(InvariantViolation) as info:
        core.tick(200)
    assert info.value.tag == "deer-on-trunk"

def test_without_debug_tick_does_not_check():
    core = deer_on_trunk()
    assert core.tick(200)
    with pytest.raises(InvariantViolation):
        core.check_invariants()

def test_debug_mode_checks_after_regeneration():
    core = dry_core(debug=True)
    core.regenerate_module("hydrology", {"spring_count": 4, "lake_count": 2})
    core.check_invariants()

def test_trunk_cannot_go_on_an_occupied_cell():
    core = dry_core()
    with pytest.raises(ValueError):
        core.place_tree(*core.player)
    deer = core.place_deer(20, 20)
    with pytest.raises(ValueError):
        core.place_tree(deer.x, deer.y)
    dog = core.companion
    with pytest.raises(ValueError):
        core.place_tree(dog.x, dog.y)
    assert core.trees.trees == []
    assert core.can_move_to(20, 20)

def test_deer_on_a_trunk_is_an_invariant_violation():
    core = dry_core()
    core.place_tree(10, 10)
    deer = core.place_deer(20, 20)
    deer.x, deer.y = 10, 10
    with pytest.raises(InvariantViolation) as info:
        core.check_invariants()
    assert info.value.tag == "deer-on-trunk"

@pytest.mark.parametrize("seed", [10, 11, 18])
def test_player_moves_off_new_water(seed):
    core = Core({"world": {"seed": seed, "region_size": 120}})
    core.regenerate_module("hydrology", {"spring_count": 20, "lake_count": 10, "spring_spacing": 10})
    assert core.can_move_to(*core.player)
    assert core.deer_manager.player_position == core.player
    assert core.companion_manager.player_position == core.player
    assert core.fog.is_explored(*core.player)

def test_companion_shown_beside_player():
    core = dry_core()
    dog = core.companion
    assert dog is not None
    px, py = core.player
    assert max(abs(dog.x - px), abs(dog.y - py)) <= 7
    cell = core.get_terrain_at(dog.x, dog.y)
    assert cell["symbol"] == COMPANION_SYMBOL
    assert cell["class_tag"] == "companion-dog"
    assert cell["companion"]
    assert core.terrain_statistics()["companion"]

def test_companion_hidden_under_canopy():
    core = dry_core()
    dog = core.companion
    core.place_tree(dog.x, dog.y - 1)
    cell = core.get_terrain_at(dog.x, dog.y)
    assert cell["symbol"] == "♠"
    assert cell["companion"]

def test_called_companion_comes_over():
    core = dry_core()
    assert core.call_companion()
    t = 0
    while core.companion.state is CompanionState.COMING and t < 50:
        t += 1
        core.tick(t * 200)
    assert core.companion.state is CompanionState.FOLLOWING
    assert core.companion.distance_to(*core.player) <= 2
    assert "companion-following" in core.get_terrain_at(core.companion.x, core.companion.y)["class_tag"]

def test_deer_cannot_be_placed_on_companion():
    core = dry_core()
    dog = core.companion
    with pytest.raises(ValueError):
        core.place_deer(dog.x, dog.y)

def test_shared_deer_cell_is_an_invariant_violation():
    core = dry_core()
    a = core.place_deer(3, 3)
    core.place_deer(6, 6)
    a.x, a.y = 6, 6
    with pytest.raises(InvariantViolation) as info:
        core.check_invariants()
    assert info.value.tag == "deer-occupancy"
