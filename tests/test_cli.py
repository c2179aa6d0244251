import os
from typer.testing import CliRunner
from frontier.ui_iface.runner.cli import app

SCENARIO = os.path.join(os.path.dirname(__file__), "..", "frontier", "ui_iface", "scenarios", "default.yaml")
runner = CliRunner()

def test_validate_prints_hash():
    result = runner.invoke(app, ["validate-scenario", SCENARIO])
    assert result.exit_code == 0
    assert len(result.output.strip()) == 32

def test_render_draws_player(tmp_path):
    p = tmp_path / "small.yaml"
    p.write_text("world:\n  seed: 3\n  region_size: 60\n")
    result = runner.invoke(app, ["render", str(p), "--width", "21", "--height", "9", "--moves", "n,n,e"])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert any("◊" in line for line in lines[:9])
    assert "facing=East" in lines[-1]
    assert "companion=" in lines[-1]

def test_run_and_inspect(tmp_path):
    p = tmp_path / "small.yaml"
    p.write_text("world:\n  seed: 3\n  region_size: 60\n")
    result = runner.invoke(app, ["run", str(p), "--ticks", "5", "--out", str(tmp_path / "runs"), "--label", "cli"])
    assert result.exit_code == 0, result.output
    run_dir = result.output.strip().splitlines()[-1]
    assert run_dir.endswith("run-cli")
    result = runner.invoke(app, ["inspect", run_dir])
    assert result.exit_code == 0
    assert '"label":"cli"' in result.output
