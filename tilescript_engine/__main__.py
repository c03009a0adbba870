"""TileScript CLI.

Usage:
    tilescript run scenario.yaml
    tilescript run scenario.yaml --actor player --real --trace
    tilescript check my_script.ts
    tilescript functions --category movement
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tilescript_core import EventPayload, enhance_error
from tilescript_core.events import TOPIC_EXECUTION_LINE, TOPIC_EXECUTION_OUTPUT

from .capabilities import CapabilityCategory, build_default_registry
from .config import EngineConfig
from .scenario import build_runtime, load_scenario
from .script import ScriptSyntaxError, compile_subroutine
from .tiles import build_default_tile_types
from .utils.logging import setup_logging

app = typer.Typer(
    name="tilescript",
    help="TileScript - run learner scripts in a simulated tile world",
    add_completion=False,
)
console = Console()


def _load_config(config_path: Optional[Path]) -> EngineConfig:
    if config_path is not None:
        return EngineConfig.load(config_path)
    return EngineConfig.from_env()


async def _run_scenario(scenario_path: Path, config: EngineConfig, actors: List[str], settle: bool, trace: bool):
    scenario = load_scenario(scenario_path)
    runtime = build_runtime(scenario, config)

    async def show_output(event: EventPayload) -> None:
        console.print(f"[cyan]{event['actor_name']}[/cyan]: {event['message']}")

    async def show_line(event: EventPayload) -> None:
        console.print(f"[dim]{event['actor_id']} {event['function_name']}:{event['line_number']}  {event['line']}[/dim]")

    await runtime.event_bus.subscribe(TOPIC_EXECUTION_OUTPUT, show_output)
    if trace:
        await runtime.event_bus.subscribe(TOPIC_EXECUTION_LINE, show_line)

    try:
        results = await runtime.run_all(actors or None)
        if settle:
            await runtime.wait_for_tasks()
    except asyncio.CancelledError:
        runtime.stop()
        raise
    await runtime.event_bus.drain()
    return scenario, runtime, results


@app.command("run")
def run_scenario(
    scenario_path: Annotated[Path, typer.Argument(help="Scenario YAML file")],
    actor: Annotated[Optional[List[str]], typer.Option("--actor", "-a", help="Only run these actors")] = None,
    virtual: Annotated[bool, typer.Option("--virtual/--real", help="Deterministic instant clock or wall-clock time")] = True,
    settle: Annotated[bool, typer.Option("--settle/--no-settle", help="Let running tasks finish after the scripts end")] = True,
    trace: Annotated[bool, typer.Option("--trace", "-t", help="Print every executed line")] = False,
    config_path: Annotated[Optional[Path], typer.Option("--config", "-c", help="Engine config JSON")] = None,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="DEBUG, INFO, WARNING or ERROR")] = "WARNING",
) -> None:
    """Run the scripts of a scenario and report the results."""
    if not scenario_path.exists():
        console.print(f"[red]Error:[/red] Scenario not found: {scenario_path}")
        raise typer.Exit(1)

    setup_logging(level=log_level.upper())
    config = _load_config(config_path)
    config.use_virtual_clock = virtual

    try:
        scenario, runtime, results = asyncio.run(_run_scenario(scenario_path, config, actor or [], settle, trace))
    except ValueError as exc:
        console.print(f"[red]Invalid scenario:[/red] {exc}")
        raise typer.Exit(1)

    console.print(Panel(
        f"[bold]Scenario:[/bold] {scenario.name or scenario_path.stem}\n"
        f"[bold]Clock:[/bold] {'virtual' if virtual else 'real'}\n"
        f"[bold]Actors run:[/bold] {', '.join(results) or 'none'}",
        title="TileScript",
        border_style="blue",
    ))

    table = Table(title="Results")
    table.add_column("Actor", style="cyan")
    table.add_column("Status")
    table.add_column("Line", justify="right")
    table.add_column("Message")
    for actor_id, result in results.items():
        status = "[green]success[/green]" if result.success else f"[red]{result.kind.value}[/red]"
        line = "" if result.success or result.line is None else str(result.line)
        table.add_row(actor_id, status, line, result.message)
    console.print(table)

    for actor_id, result in results.items():
        if not result.success:
            feedback = enhance_error(result.message)
            console.print(Panel(
                f"{feedback.user_message}\n\n[bold]Try:[/bold] {feedback.suggestion}",
                title=f"{actor_id}: {feedback.concept}",
                border_style="red",
            ))

    summary = runtime.store.summary()
    world = Table(title="World")
    world.add_column("Actor", style="cyan")
    world.add_column("Position")
    world.add_column("Energy", justify="right")
    world.add_column("Task")
    for entry in summary["actors"]:
        world.add_row(entry["id"], str(tuple(entry["position"])), str(entry["energy"]), entry["task"] or "-")
    console.print(world)
    resources = ", ".join(f"{name}={value}" for name, value in summary["resources"].items())
    console.print(f"[bold]Resources:[/bold] {resources}")

    if any(not result.success for result in results.values()):
        raise typer.Exit(1)


@app.command("check")
def check_script(
    script_path: Annotated[Path, typer.Argument(help="Script file to check")],
    name: Annotated[Optional[str], typer.Option("--name", "-n", help="Subroutine name (defaults to the file stem)")] = None,
) -> None:
    """Parse a script and report syntax errors."""
    if not script_path.exists():
        console.print(f"[red]Error:[/red] File not found: {script_path}")
        raise typer.Exit(1)

    subroutine_name = name or script_path.stem
    try:
        subroutines = compile_subroutine(subroutine_name, script_path.read_text(encoding="utf-8"))
    except ScriptSyntaxError as exc:
        console.print(f"[red]Syntax error[/red] on line {exc.line}: {exc.message}")
        feedback = enhance_error(exc.message)
        console.print(f"[bold]Try:[/bold] {feedback.suggestion}")
        raise typer.Exit(1)

    for subroutine in subroutines:
        params = ", ".join(subroutine.params)
        console.print(f"[green]OK[/green] {subroutine.name}({params}) - {len(subroutine.body)} statement(s)")


@app.command("functions")
def list_functions(
    category: Annotated[Optional[CapabilityCategory], typer.Option("--category", "-c", help="Only this category")] = None,
) -> None:
    """Show the functions scripts can call."""
    registry = build_default_registry()
    capabilities = (
        registry.get_capabilities_by_category(category) if category else registry.get_all_capabilities()
    )

    table = Table(title="Functions")
    table.add_column("Function", style="cyan")
    table.add_column("Category")
    table.add_column("Energy", justify="right")
    table.add_column("Description")
    for capability in capabilities:
        energy = "varies" if callable(capability.energy_cost) else str(capability.energy_cost or "-")
        table.add_row(capability.signature(), capability.category.value, energy, capability.description)
    console.print(table)

    if category is None:
        tile_types = build_default_tile_types()
        tiles = Table(title="Tile functions (stand on the tile to use them)")
        tiles.add_column("Tile", style="cyan")
        tiles.add_column("Function")
        tiles.add_column("Description")
        for tile_type in tile_types.types():
            definition = tile_types.get(tile_type)
            for spec in definition.functions:
                tiles.add_row(definition.name, f"{spec.name}()", spec.description)
        console.print(tiles)


if __name__ == "__main__":
    app()
