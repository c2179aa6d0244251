import numpy as np
import pytest
from frontier.ui_iface.runner.registry import build_context
from frontier.world_iface.geology import PRESETS, ROCK_CODE
from frontier.world_iface.elevation import smooth

@pytest.fixture(scope="module")
def world():
    ctx = build_context({"world": {"seed": 12345, "region_size": 200}})
    ctx.generate()
    return ctx

def test_default_formations(world):
    geo = world.artifact("geology")
    assert geo.count("granite_intrusion") >= 2
    assert geo.count("limestone_beds") >= 3
    assert geo.count("clay_deposits") == 4

def test_formations_inside_bounds(world):
    b = world.bounds
    for f in world.artifact("geology").formations:
        assert b.contains(f.center_x, f.center_y)
        assert f.radius > 0

def test_rock_codes_and_properties(world):
    geo = world.artifact("geology")
    assert set(np.unique(geo.rock)) <= set(ROCK_CODE.values())
    assert (geo.soil_quality >= 0).all() and (geo.soil_quality <= 1).all()
    hard = geo.rock == ROCK_CODE["hard"]
    assert hard.any(), "Granite intrusions must leave hard rock behind"
    assert np.allclose(geo.erosion_resistance[hard], 0.9)

def test_granite_raises_ground(world):
    geo = world.artifact("geology")
    elev = world.artifact("elevation")
    hard = geo.rock == ROCK_CODE["hard"]
    assert elev.values[hard].mean() > elev.values[~hard].mean()

def test_elevation_range(world):
    elev = world.artifact("elevation")
    assert elev.mode == "geology"
    assert elev.values.min() >= 0.05
    assert elev.values.max() <= 1.0

def test_rock_type_at_clamps_outside(world):
    b = world.bounds
    geo = world.artifact("geology")
    assert geo.rock_type_at(b.max_x + 50, b.min_y) == geo.rock_type_at(b.max_x, b.min_y)

def test_preset_formations():
    ctx = build_context({"world": {"seed": 3, "region_size": 120}, "geology": {"preset": "mountainous"}})
    ctx.generate()
    kinds = {f.kind for f in ctx.artifact("geology").formations}
    assert kinds == {spec["type"] for spec in PRESETS["mountainous"]}

def test_unknown_preset_fails():
    from frontier.world_iface.errors import GenerationError
    ctx = build_context({"world": {"seed": 3, "region_size": 60}, "geology": {"preset": "glacial"}})
    with pytest.raises(GenerationError):
        ctx.generate()

def test_hill_fallback_without_geology():
    ctx = build_context({"world": {"seed": 8, "region_size": 120}, "geology": {"enabled": False}})
    ctx.generate()
    elev = ctx.artifact("elevation")
    assert elev.mode == "hills"
    assert len(elev.hills) == 6
    assert elev.values.max() > 0.3

def test_smooth_keeps_constant_field():
    values = np.full((10, 10), 0.4)
    assert np.allclose(smooth(values, 3), 0.4)

def test_gradient_is_zero_on_flat_ground():
    from frontier.world_iface.context import Bounds
    from frontier.world_iface.elevation import ElevationField
    field = ElevationField(Bounds(0, 9, 0, 9), np.full((10, 10), 0.3), "hills")
    assert field.gradient(5, 5)[2] == pytest.approx(0.0)
    assert field.at(5, 5) == pytest.approx(0.3)
