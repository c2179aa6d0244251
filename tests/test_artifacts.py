import pytest
import os
import json
import tempfile
import numpy as np
import pandas as pd
from frontier.ui_iface.runner.engine import load_scenario, run_headless, stable_hash
from frontier.ui_iface.runner.hydrator import (
    deer_positions_at, load_deer_stream, load_events, load_fields, load_manifest, load_table, verify_fields,
)

SCENARIO = os.path.join(os.path.dirname(__file__), "..", "frontier", "ui_iface", "scenarios", "default.yaml")

def small_scenario():
    cfg = load_scenario(SCENARIO)
    cfg["world"]["region_size"] = 100
    return cfg

@pytest.fixture(scope="module")
def test_run():
    with tempfile.TemporaryDirectory() as tmpdir:
        run_dir = run_headless(small_scenario(), ticks=40, out_dir=tmpdir, label="artifacts")
        yield run_dir

def test_manifest_exists(test_run):
    manifest = load_manifest(test_run)
    assert manifest["label"] == "artifacts"
    assert manifest["ticks"] == 40
    assert "runtime_s" in manifest
    assert manifest["generation_order"] == ["geology", "elevation", "hydrology", "vegetation", "trees"]
    assert manifest["bounds"] == {"min_x": -50, "max_x": 50, "min_y": -50, "max_y": 50}
    assert manifest["companion"]["has_companion"]
    assert manifest["companion"]["state"] in {"wandering", "following", "coming"}

def test_scenario_saved(test_run):
    with open(os.path.join(test_run, "scenario.json"), "r") as f:
        cfg = json.load(f)
    assert "_scenario_hash" in cfg
    assert cfg["world"]["region_size"] == 100
    assert "hydrology" in cfg and "deer" in cfg

def test_world_tables(test_run):
    formations = load_table(test_run, "formations")
    assert len(formations) == 9
    assert set(formations["kind"]) == {"granite_intrusion", "limestone_beds", "clay_deposits"}
    rivers = load_table(test_run, "rivers")
    assert {"river_id", "path_x", "path_y", "terminus"} <= set(rivers.columns)
    for name in ("springs", "lakes", "trees", "forests"):
        assert isinstance(load_table(test_run, name), pd.DataFrame)
    with pytest.raises(FileNotFoundError):
        load_table(test_run, "roads")

def test_fields(test_run):
    fields = load_fields(test_run)
    assert set(fields) == {"elevation", "rock", "classification", "moisture"}
    assert fields["elevation"].shape == (101, 101)
    assert verify_fields(test_run) == {k: True for k in fields}

def test_deer_stream(test_run):
    df = load_deer_stream(test_run)
    assert list(df.columns) == ["tick", "deer_id", "x", "y", "state", "pending_reactions"]
    assert set(df["state"]) <= {"wandering", "alert", "fleeing"}
    if len(df):
        last = deer_positions_at(test_run, 39)
        assert last["deer_id"].is_unique

def test_events(test_run):
    events = load_events(test_run)
    assert any(e["event"] == "player_move" for e in events)
    assert {e["event"] for e in events} <= {"player_move", "deer_state", "companion_state"}
    for e in events:
        if e["event"] == "companion_state":
            assert e["to"] in {"wandering", "following", "coming"}
    ts = [e["t"] for e in events]
    assert ts == sorted(ts)

def test_checksums(test_run):
    cdir = os.path.join(test_run, "checksums")
    names = set(os.listdir(cdir))
    assert "manifest.json.blake3" in names
    assert "deer.parquet.blake3" in names
    with open(os.path.join(cdir, "fields.npz.blake3")) as f:
        assert len(f.read()) == 64

def test_same_scenario_same_outputs():
    cfg = small_scenario()
    with tempfile.TemporaryDirectory() as t1, tempfile.TemporaryDirectory() as t2:
        a = run_headless(cfg, ticks=20, out_dir=t1, label="a")
        b = run_headless(cfg, ticks=20, out_dir=t2, label="b")
        assert load_deer_stream(a).equals(load_deer_stream(b))
        fa, fb = load_fields(a), load_fields(b)
        assert all(np.array_equal(fa[k], fb[k]) for k in fa)
        ra, rb = load_table(a, "rivers"), load_table(b, "rivers")
        assert list(ra["river_id"]) == list(rb["river_id"])
        assert [list(p) for p in ra["path_x"]] == [list(p) for p in rb["path_x"]]

def test_scenario_hash_consistency():
    a = load_scenario(SCENARIO)
    b = load_scenario(SCENARIO)
    assert a["_scenario_hash"] == b["_scenario_hash"]
    assert stable_hash({"a": 1, "b": 2}) == stable_hash({"b": 2, "a": 1})

def test_invalid_scenario_rejected(tmp_path):
    from jsonschema import ValidationError
    p = tmp_path / "bad.yaml"
    p.write_text("world:\n  region_size: two hundred\n")
    with pytest.raises(ValidationError):
        load_scenario(str(p))
