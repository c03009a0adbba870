"""Command line tests."""

import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from tilescript_engine.__main__ import app

EXAMPLE_SCENARIO = Path(__file__).resolve().parent.parent / "examples" / "farm_and_mine.yaml"

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # `run` installs a handler bound to the runner's captured stderr
    root = logging.getLogger("tilescript")
    root.handlers = []
    root.setLevel(logging.NOTSET)
    root.propagate = True


def test_check_valid_script(tmp_path) -> None:
    script = tmp_path / "main.ts"
    script.write_text("for i in range(3):\n    move_right()\nprint('done')\n", encoding="utf-8")

    result = runner.invoke(app, ["check", str(script)])

    assert result.exit_code == 0
    assert "OK main()" in result.output


def test_check_reports_syntax_error(tmp_path) -> None:
    script = tmp_path / "main.ts"
    script.write_text("move_right()\nmove_left(\n", encoding="utf-8")

    result = runner.invoke(app, ["check", str(script)])

    assert result.exit_code == 1
    assert "Syntax error" in result.output


def test_check_missing_file(tmp_path) -> None:
    result = runner.invoke(app, ["check", str(tmp_path / "nope.ts")])

    assert result.exit_code == 1
    assert "File not found" in result.output


def test_functions_lists_capabilities() -> None:
    result = runner.invoke(app, ["functions", "--category", "movement"])

    assert result.exit_code == 0
    assert "Functions" in result.output


def test_run_example_scenario() -> None:
    result = runner.invoke(app, ["run", str(EXAMPLE_SCENARIO), "--log-level", "ERROR"])

    assert result.exit_code == 0, result.output
    assert "Energy left: 80" in result.output
    assert "Stored 1 bitcoin" in result.output


def test_run_missing_scenario(tmp_path) -> None:
    result = runner.invoke(app, ["run", str(tmp_path / "absent.yaml")])

    assert result.exit_code == 1
    assert "Scenario not found" in result.output
