"""
TileScript Engine Configuration.

Configuration is an explicit object handed to ScriptRuntime; there is no
process-wide config singleton.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv

ENV_PREFIX = "TILESCRIPT_"


# ============================================================================
# Configuration Classes
# ============================================================================


@dataclass
class WorldConfig:
    """World dimensions used when a scenario does not specify them."""

    width: int = 52
    height: int = 32

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorldConfig":
        return cls(**{k: v for k, v in data.items() if hasattr(cls, k)})

    def to_dict(self) -> dict[str, Any]:
        return {"width": self.width, "height": self.height}


@dataclass
class ExecutionConfig:
    """Interpreter pacing and safety limits."""

    pacing_cap_ms: float = 500.0  # Max visual pause after a timed call
    max_loop_iterations: int = 10000  # While-loop guard
    move_energy_cost: int = 5  # Per tile moved
    scanner_energy_cost: int = 2
    unblock_timeout_sec: float = 30.0  # Longest a script waits on its own blocking call

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExecutionConfig":
        return cls(**{k: v for k, v in data.items() if hasattr(cls, k)})

    def to_dict(self) -> dict[str, Any]:
        return {
            "pacing_cap_ms": self.pacing_cap_ms,
            "max_loop_iterations": self.max_loop_iterations,
            "move_energy_cost": self.move_energy_cost,
            "scanner_energy_cost": self.scanner_energy_cost,
            "unblock_timeout_sec": self.unblock_timeout_sec,
        }


@dataclass
class EngineConfig:
    """Main configuration for the TileScript engine."""

    world: WorldConfig = field(default_factory=WorldConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)

    # Use a VirtualClock (deterministic, instant) instead of wall-clock time
    use_virtual_clock: bool = False

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    def __post_init__(self):
        if self.execution.pacing_cap_ms < 0:
            raise ValueError("pacing_cap_ms must be >= 0")
        if self.execution.max_loop_iterations <= 0:
            raise ValueError("max_loop_iterations must be > 0")
        if self.execution.unblock_timeout_sec < 0:
            raise ValueError("unblock_timeout_sec must be >= 0")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineConfig":
        """Create config from dictionary."""
        return cls(
            world=WorldConfig.from_dict(data.get("world", {})),
            execution=ExecutionConfig.from_dict(data.get("execution", {})),
            use_virtual_clock=bool(data.get("use_virtual_clock", False)),
            log_level=data.get("log_level", "INFO"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "world": self.world.to_dict(),
            "execution": self.execution.to_dict(),
            "use_virtual_clock": self.use_virtual_clock,
            "log_level": self.log_level,
        }

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "EngineConfig":
        """Build config from TILESCRIPT_* environment variables.

        A .env file is loaded first (existing variables win).

        Recognised variables:
            TILESCRIPT_WORLD_WIDTH, TILESCRIPT_WORLD_HEIGHT,
            TILESCRIPT_PACING_CAP_MS, TILESCRIPT_MAX_LOOP_ITERATIONS,
            TILESCRIPT_MOVE_ENERGY_COST, TILESCRIPT_SCANNER_ENERGY_COST,
            TILESCRIPT_UNBLOCK_TIMEOUT_SEC,
            TILESCRIPT_VIRTUAL_CLOCK, TILESCRIPT_LOG_LEVEL
        """
        load_dotenv(dotenv_path=env_file)

        def env(name: str) -> str | None:
            return os.getenv(f"{ENV_PREFIX}{name}")

        config = cls()
        if width := env("WORLD_WIDTH"):
            config.world.width = int(width)
        if height := env("WORLD_HEIGHT"):
            config.world.height = int(height)
        if pacing := env("PACING_CAP_MS"):
            config.execution.pacing_cap_ms = float(pacing)
        if iterations := env("MAX_LOOP_ITERATIONS"):
            config.execution.max_loop_iterations = int(iterations)
        if move_cost := env("MOVE_ENERGY_COST"):
            config.execution.move_energy_cost = int(move_cost)
        if scanner_cost := env("SCANNER_ENERGY_COST"):
            config.execution.scanner_energy_cost = int(scanner_cost)
        if unblock_timeout := env("UNBLOCK_TIMEOUT_SEC"):
            config.execution.unblock_timeout_sec = float(unblock_timeout)
        if virtual := env("VIRTUAL_CLOCK"):
            config.use_virtual_clock = virtual.strip().lower() in ("1", "true", "yes", "on")
        if level := env("LOG_LEVEL"):
            config.log_level = level.upper()  # type: ignore[assignment]
        config.__post_init__()
        return config

    @classmethod
    def load(cls, config_path: str | Path) -> "EngineConfig":
        """Load configuration from a JSON file; defaults if it does not exist."""
        config_path = Path(config_path)
        if not config_path.exists():
            return cls()
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    def save(self, config_path: str | Path) -> Path:
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        return config_path
