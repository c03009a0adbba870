"""EngineConfig defaults, serialisation and environment loading."""

import json
import os

import pytest

from tilescript_engine import EngineConfig, ExecutionConfig
from tilescript_engine.config import WorldConfig


def test_defaults() -> None:
    config = EngineConfig()

    assert config.world.width == 52
    assert config.world.height == 32
    assert config.execution.pacing_cap_ms == 500.0
    assert config.execution.max_loop_iterations == 10000
    assert config.execution.move_energy_cost == 5
    assert config.execution.scanner_energy_cost == 2
    assert config.execution.unblock_timeout_sec == 30.0
    assert config.use_virtual_clock is False
    assert config.log_level == "INFO"


def test_from_dict_ignores_unknown_keys() -> None:
    config = EngineConfig.from_dict(
        {
            "world": {"width": 10, "depth": 3},
            "execution": {"max_loop_iterations": 50},
            "use_virtual_clock": True,
        }
    )

    assert config.world == WorldConfig(width=10, height=32)
    assert config.execution.max_loop_iterations == 50
    assert config.execution.pacing_cap_ms == 500.0
    assert config.use_virtual_clock is True


def test_save_and_load(tmp_path) -> None:
    config = EngineConfig(execution=ExecutionConfig(pacing_cap_ms=0), use_virtual_clock=True)

    path = config.save(tmp_path / "nested" / "engine.json")

    assert json.loads(path.read_text(encoding="utf-8"))["execution"]["pacing_cap_ms"] == 0
    loaded = EngineConfig.load(path)
    assert loaded.to_dict() == config.to_dict()


def test_load_missing_file_gives_defaults(tmp_path) -> None:
    assert EngineConfig.load(tmp_path / "absent.json").to_dict() == EngineConfig().to_dict()


def test_from_env(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("TILESCRIPT_WORLD_WIDTH", "20")
    monkeypatch.setenv("TILESCRIPT_PACING_CAP_MS", "0")
    monkeypatch.setenv("TILESCRIPT_UNBLOCK_TIMEOUT_SEC", "4.5")
    monkeypatch.setenv("TILESCRIPT_VIRTUAL_CLOCK", "yes")
    monkeypatch.setenv("TILESCRIPT_LOG_LEVEL", "debug")

    config = EngineConfig.from_env(env_file=tmp_path / "missing.env")

    assert config.world.width == 20
    assert config.world.height == 32
    assert config.execution.pacing_cap_ms == 0.0
    assert config.execution.unblock_timeout_sec == 4.5
    assert config.use_virtual_clock is True
    assert config.log_level == "DEBUG"


def test_from_env_reads_dotenv_file(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("TILESCRIPT_MAX_LOOP_ITERATIONS", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("TILESCRIPT_MAX_LOOP_ITERATIONS=77\n", encoding="utf-8")

    config = EngineConfig.from_env(env_file=env_file)

    assert config.execution.max_loop_iterations == 77
    os.environ.pop("TILESCRIPT_MAX_LOOP_ITERATIONS", None)


@pytest.mark.parametrize(
    "execution",
    [
        ExecutionConfig(pacing_cap_ms=-1),
        ExecutionConfig(max_loop_iterations=0),
        ExecutionConfig(unblock_timeout_sec=-0.5),
    ],
)
def test_invalid_values_raise(execution) -> None:
    with pytest.raises(ValueError):
        EngineConfig(execution=execution)
