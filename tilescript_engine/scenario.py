"""
Scenario files for TileScript Engine.

A scenario is a YAML document describing a world and the scripts to run in
it:

    name: Farm demo
    world:
      width: 20
      height: 12
      resources: {wheat: 0}
    tiles:
      - type: farmland
        position: [6, 5]
    actors:
      - id: player
        position: [5, 5]
        scripts:
          main: |
            move_right()
            plant()
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from tilescript_core import Actor, ActorKind, ActorStats, Inventory, InventoryItem, Position

from .clock import Clock
from .config import EngineConfig
from .runtime import ScriptRuntime
from .utils.logging import get_logger

logger = get_logger("scenario")

DRONE_DEFAULT_SPEED = 3.0


def _coerce_position(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        if len(value) != 2:
            raise ValueError(f"Position needs exactly two numbers, got {value!r}")
        return {"x": value[0], "y": value[1]}
    return value


class ScenarioWorld(BaseModel):
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    resources: dict[str, int] = Field(default_factory=dict)


class ScenarioTile(BaseModel):
    type: str
    position: Position
    id: Optional[str] = None
    name: Optional[str] = None
    state: dict[str, Any] = Field(default_factory=dict)
    properties: dict[str, Any] = Field(default_factory=dict)

    @field_validator("position", mode="before")
    @classmethod
    def coerce_position(cls, value: Any) -> Any:
        return _coerce_position(value)


class ScenarioActor(BaseModel):
    id: str
    name: str = Field(default="Qubit")
    kind: ActorKind = Field(default=ActorKind.PLAYER)
    position: Position = Field(default_factory=Position)
    stats: dict[str, Any] = Field(default_factory=dict)
    inventory: list[InventoryItem] = Field(default_factory=list)
    inventory_capacity: int = Field(default=10, ge=0)
    variables: dict[str, Any] = Field(default_factory=dict)
    scripts: dict[str, str] = Field(default_factory=dict)

    @field_validator("position", mode="before")
    @classmethod
    def coerce_position(cls, value: Any) -> Any:
        return _coerce_position(value)

    def to_actor(self) -> Actor:
        stats = dict(self.stats)
        if self.kind == ActorKind.DRONE:
            stats.setdefault("speed", DRONE_DEFAULT_SPEED)
        return Actor(
            id=self.id,
            name=self.name,
            kind=self.kind,
            position=self.position,
            stats=ActorStats(**stats),
            inventory=Inventory(items=list(self.inventory), capacity=self.inventory_capacity),
        )


class Scenario(BaseModel):
    name: str = Field(default="")
    description: str = Field(default="")
    world: ScenarioWorld = Field(default_factory=ScenarioWorld)
    tiles: list[ScenarioTile] = Field(default_factory=list)
    actors: list[ScenarioActor] = Field(default_factory=list)


def parse_scenario(text: str) -> Scenario:
    """Parse scenario YAML text.

    Raises:
        yaml.YAMLError: If the text is not valid YAML
        pydantic.ValidationError: If the document does not describe a scenario
    """
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError("A scenario must be a YAML mapping")
    return Scenario.model_validate(data)


def load_scenario(path: str | Path) -> Scenario:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        scenario = parse_scenario(f.read())
    logger.info(f"Loaded scenario '{scenario.name or path.stem}' from {path}")
    return scenario


def build_runtime(
    scenario: Scenario,
    config: Optional[EngineConfig] = None,
    clock: Optional[Clock] = None,
) -> ScriptRuntime:
    """Create a ScriptRuntime populated with the scenario's world and scripts.

    Raises:
        ValueError: On an unknown tile type, a duplicate id, or anything placed
            outside the world
    """
    config = dataclasses.replace(config or EngineConfig())
    config.world = dataclasses.replace(
        config.world,
        width=scenario.world.width or config.world.width,
        height=scenario.world.height or config.world.height,
    )

    runtime = ScriptRuntime(config, clock=clock)
    if scenario.world.resources:
        runtime.store.update_resources(**scenario.world.resources)

    for tile in scenario.tiles:
        runtime.add_tile(tile.type, tile.position, tile.name, tile.id, tile.state, tile.properties)

    for spec in scenario.actors:
        runtime.add_actor(spec.to_actor(), spec.scripts)
        runtime.interpreter_for(spec.id).context.variables.update(spec.variables)

    logger.debug(
        f"Built runtime: {len(scenario.tiles)} tile(s), {len(scenario.actors)} actor(s), "
        f"world {config.world.width}x{config.world.height}"
    )
    return runtime
