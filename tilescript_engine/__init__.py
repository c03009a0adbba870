"""TileScript Engine - script execution for the tile world.

Services (explicit objects, wired by ScriptRuntime):
- Clock (RealClock / VirtualClock)
- WorldStateStore: authoritative actors, tiles and resources
- MovementBridge: timed movement
- TaskScheduler: one active task per actor/tile, timed completion
- CapabilityRegistry: host operations callable from scripts
- TileFunctionDispatch: functions bound to tiles
- Interpreter: runs one actor's scripts

Usage:
    from tilescript_engine import ScriptRuntime, EngineConfig
    runtime = ScriptRuntime(EngineConfig(use_virtual_clock=True))
"""

from .capabilities import Capability, CapabilityCategory, CapabilityRegistry, build_default_registry
from .clock import Clock, RealClock, VirtualClock
from .config import EngineConfig, ExecutionConfig, WorldConfig
from .context import ExecutionContext
from .interpreter import Interpreter
from .movement import MovementBridge, SimulatedMovementBridge
from .runtime import ScriptRuntime
from .scenario import Scenario, build_runtime, load_scenario, parse_scenario
from .scheduler import TaskScheduler
from .script import ScriptSyntaxError
from .tiles import TileFunctionDispatch, TileTypeDefinition, TileTypeRegistry, build_default_tile_types
from .world_store import WorldStateStore

__all__ = [
    "Capability",
    "CapabilityCategory",
    "CapabilityRegistry",
    "build_default_registry",
    "Clock",
    "RealClock",
    "VirtualClock",
    "EngineConfig",
    "ExecutionConfig",
    "WorldConfig",
    "ExecutionContext",
    "Interpreter",
    "MovementBridge",
    "SimulatedMovementBridge",
    "ScriptRuntime",
    "Scenario",
    "build_runtime",
    "load_scenario",
    "parse_scenario",
    "TaskScheduler",
    "ScriptSyntaxError",
    "TileFunctionDispatch",
    "TileTypeDefinition",
    "TileTypeRegistry",
    "build_default_tile_types",
    "WorldStateStore",
]
