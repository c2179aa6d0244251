import math
import numpy as np
import pytest
from frontier.ui_iface.runner.registry import build_context
from frontier.world_iface.hydrology import HydrologyModule, River

TERMINI = {"sea", "lake", "river", "edge", "stalled", "exhausted"}

@pytest.fixture(scope="module")
def world():
    ctx = build_context({"world": {"seed": 12345, "region_size": 200}})
    ctx.generate()
    return ctx

def test_default_scenario_has_water(world):
    hydro = world.artifact("hydrology")
    assert len(hydro.springs) >= 2
    assert any(r.length >= 20 for r in hydro.rivers), "Expected at least one river of 20+ cells"
    assert len(hydro.lakes) >= 2

def test_springs_respect_elevation_and_spacing(world):
    c = world.get_module("hydrology").config
    springs = world.artifact("hydrology").springs
    assert len(springs) <= c["spring_count"]
    for s in springs:
        assert c["spring_elevation_min"] <= s.elevation <= c["spring_elevation_max"]
    for i, a in enumerate(springs):
        for b in springs[i + 1:]:
            assert math.hypot(a.x - b.x, a.y - b.y) >= c["spring_spacing"]

def test_rivers_never_climb(world):
    elev = world.artifact("elevation")
    eps = world.get_module("hydrology").uphill_tolerance()
    for r in world.artifact("hydrology").rivers:
        heights = [elev.at(x, y) for x, y in r.path]
        for a, b in zip(heights, heights[1:]):
            assert b <= a + eps + 1e-12, f"{r.river_id} climbs"

def test_rivers_end_somewhere_sensible(world):
    hydro = world.artifact("hydrology")
    elev = world.artifact("elevation")
    c = world.get_module("hydrology").config
    for r in hydro.rivers:
        assert r.terminus in TERMINI
        x, y = r.path[-1]
        if r.terminus == "sea":
            assert elev.at(x, y) <= c["sea_level"]
        elif r.terminus == "lake":
            assert any(l.distance_to(x, y) <= l.radius + c["lake_stop_distance"] for l in hydro.lakes)
        elif r.terminus == "river":
            assert any((x, y) in other.cells for other in hydro.rivers if other is not r)

def test_rivers_meet_minimum_length(world):
    c = world.get_module("hydrology").config
    min_points = math.ceil(c["min_river_length"] / c["river_step_size"])
    for r in world.artifact("hydrology").rivers:
        assert len(r.path) >= min_points
        assert r.cells[0] == r.path[0] and r.cells[-1] == r.path[-1]

def test_no_cell_is_both_lake_and_river(world):
    hydro = world.artifact("hydrology")
    assert not (hydro.river_mask & (hydro.lake_id >= 0)).any()

def test_lakes_respect_radius_and_spacing(world):
    c = world.get_module("hydrology").config
    lakes = world.artifact("hydrology").lakes
    for l in lakes:
        assert c["min_lake_radius"] <= l.radius <= c["max_lake_radius"]
    for i, a in enumerate(lakes):
        for b in lakes[i + 1:]:
            assert math.hypot(a.x - b.x, a.y - b.y) >= c["lake_spacing"]

def test_moisture_is_highest_on_water(world):
    hydro = world.artifact("hydrology")
    water = hydro.river_mask | (hydro.lake_id >= 0)
    assert np.all(hydro.moisture[water] == 1.0)
    assert set(np.unique(hydro.moisture)) <= {0.2, 0.4, 0.6, 0.8, 1.0}

def test_queries_outside_bounds(world):
    hydro = world.artifact("hydrology")
    b = world.bounds
    assert not hydro.is_water(b.max_x + 3, b.max_y + 3)
    assert hydro.moisture_at(b.max_x + 3, 0) == 0.2
    assert math.isinf(hydro.distance_to_water(b.min_x - 1, 0))

def test_confluences_reference_each_other(world):
    hydro = world.artifact("hydrology")
    for r in hydro.rivers:
        for conf in r.confluences:
            other = hydro.river(conf.other_id)
            assert other is not None
            assert any(c.other_id == r.river_id for c in other.confluences)

def test_missing_elevation_gives_empty_hydrology():
    ctx = build_context({"world": {"seed": 1, "region_size": 80}, "elevation": {"enabled": False}})
    ctx.generate()
    hydro = ctx.artifact("hydrology")
    assert hydro.rivers == [] and hydro.lakes == [] and hydro.springs == []
    assert not hydro.river_mask.any()

def test_zero_springs_and_lakes():
    ctx = build_context({"world": {"seed": 1, "region_size": 80}, "hydrology": {"spring_count": 0, "lake_count": 0}})
    ctx.generate()
    hydro = ctx.artifact("hydrology")
    assert hydro.rivers == [] and hydro.lakes == []
    assert hydro.tiles == {}

def test_uphill_tolerance_is_zero_by_default():
    assert HydrologyModule().uphill_tolerance() == 0.0
    assert HydrologyModule({"soft_rock_preference": 2.5}).uphill_tolerance() == pytest.approx(0.08)

def test_water_supply_scales_with_river_flow():
    module = HydrologyModule({"lake_count": 4})
    rivers = [River(f"river_{i}", [(0, i), (5, i)], flow=1.0) for i in range(4)]
    assert module.water_supply([]) == 0.5
    assert module.water_supply(rivers[:2]) == pytest.approx(0.75)
    assert module.water_supply(rivers) == 1.0
    assert module.water_supply(rivers * 3) == 1.0

def test_lakes_fit_the_water_supply(world):
    module = world.get_module("hydrology")
    hydro = world.artifact("hydrology")
    c = module.config
    ceiling = c["min_lake_radius"] + (c["max_lake_radius"] - c["min_lake_radius"]) * module.water_supply(hydro.rivers)
    assert all(l.radius <= ceiling + 1e-9 for l in hydro.lakes)

def test_fewer_springs_mean_smaller_lakes():
    def lakes(springs):
        ctx = build_context({"world": {"seed": 12345, "region_size": 200}, "hydrology": {"spring_count": springs}})
        ctx.generate()
        return {(l.x, l.y): l.radius for l in ctx.artifact("hydrology").lakes}
    wet, dry = lakes(8), lakes(1)
    assert wet != dry
    shared = set(wet) & set(dry)
    assert all(dry[k] <= wet[k] for k in shared)

def test_river_paths_do_not_depend_on_lakes():
    def rivers(lake_count):
        ctx = build_context({"world": {"seed": 12345, "region_size": 200}, "hydrology": {"lake_count": lake_count}})
        ctx.generate()
        return ctx.artifact("hydrology").rivers
    dry, wet = rivers(0), rivers(4)
    assert [r.path for r in dry] == [r.path for r in wet]
    assert "lake" not in {r.terminus for r in dry}
