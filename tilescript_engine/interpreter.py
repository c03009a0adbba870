"""
Script interpreter for TileScript Engine.

An Interpreter runs the scripts of ONE actor: a "main" script plus any number
of named subroutines. Statements run strictly in order and each one is
awaited before the next begins.

CALL RESOLUTION ORDER
=====================
1. Capability registry (movement, interaction, system, utility)
2. A function bound to the tile the actor stands on
3. A user subroutine

Before any of that, a call made while the actor is busy fails with a
`blocked` result. Inside a script, a statement whose call left the actor
busy holds the script until the task ends, so `plant()` followed by
`move_right()` works without an explicit wait.

ENERGY
======
A capability's declared cost is checked before its executor runs, so an
unaffordable call has no side effects. The cost a successful result reports
is debited afterwards. Tile functions debit their own costs.

Failures are returned, never raised. Control flow (return/break/continue)
uses private exceptions that never leave this module.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Dict, List, Mapping, Optional

from tilescript_core import (
    ExecutionResult,
    Failure,
    FailureKind,
    enhance_error,
    fail,
    not_enough_energy,
    ok,
)
from tilescript_core.events import (
    TOPIC_EXECUTION_CALL,
    TOPIC_EXECUTION_COMPLETED,
    TOPIC_EXECUTION_ERROR,
    TOPIC_EXECUTION_FAILED,
    TOPIC_EXECUTION_LINE,
    TOPIC_EXECUTION_STARTED,
    TOPIC_EXECUTION_STOPPED,
    create_call_event,
    create_error_event,
    create_execution_finished_event,
    create_execution_started_event,
    create_line_event,
)

from .capabilities import Capability, CapabilityRegistry
from .context import ExecutionContext
from .script import ast
from .script.evaluator import CallFailed, EvaluationError, Evaluator, binary_operation, type_name
from .script.lexer import ScriptSyntaxError
from .script.parser import Subroutine, compile_subroutine
from .utils.logging import get_logger, log_error

logger = get_logger("interpreter")

MAIN_FUNCTION = "main"
MAX_CALL_DEPTH = 100


class _Return(Exception):
    def __init__(self, value: Any):
        self.value = value


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


class Interpreter:
    """Executes one actor's scripts against the engine services."""

    def __init__(
        self,
        context: ExecutionContext,
        registry: CapabilityRegistry,
        subroutines: Optional[Mapping[str, str]] = None,
    ):
        self.context = context
        self.registry = registry
        self.is_running = False
        self.variables: Dict[str, Any] = {}
        self._sources: Dict[str, str] = {}
        self._compiled: Optional[Dict[str, Subroutine]] = None
        self._depth = 0
        self._evaluator = Evaluator(self._call_from_expression)
        if subroutines:
            self.set_subroutines(subroutines)

    # ========================================================================
    # Public surface
    # ========================================================================

    def set_subroutines(self, subroutines: Mapping[str, str]) -> None:
        """Replace every user subroutine (name -> source text)."""
        self._sources = dict(subroutines)
        self._compiled = None

    def subroutine_names(self) -> List[str]:
        return list(self._sources)

    def stop(self) -> None:
        """Halt before the next statement; an in-flight call is not aborted."""
        if self.is_running:
            logger.info(f"Stop requested for {self.context.actor.name}")
        self.is_running = False

    async def execute_main(self) -> ExecutionResult:
        """Run the "main" subroutine from the top."""
        actor_id = self.context.actor_id
        if MAIN_FUNCTION not in self._sources:
            result = fail(FailureKind.NOT_FOUND, "No main function found")
            self._emit_error(result)
            self._emit(TOPIC_EXECUTION_FAILED, create_execution_finished_event(actor_id, result))
            return result

        self.is_running = True
        self.variables = dict(self.context.variables)
        self._emit(TOPIC_EXECUTION_STARTED, create_execution_started_event(actor_id, self.subroutine_names()))
        logger.info(f"Executing main for {self.context.actor.name}")

        try:
            result = await self.execute_function(MAIN_FUNCTION, [])
        finally:
            self.is_running = False

        if result.success:
            result = ok("Execution completed successfully", value=result.value)
            topic = TOPIC_EXECUTION_COMPLETED
        elif result.kind == FailureKind.STOPPED:
            topic = TOPIC_EXECUTION_STOPPED
        else:
            topic = TOPIC_EXECUTION_FAILED
        logger.info(f"{self.context.actor.name}: {result.message}")
        self._emit(topic, create_execution_finished_event(actor_id, result))
        return result

    async def execute_function(
        self,
        name: str,
        args: Optional[List[Any]] = None,
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> ExecutionResult:
        """Resolve and run one call; see the module docstring for the order."""
        top_level = self._depth == 0
        owns_run = top_level and not self.is_running
        if owns_run:
            self.is_running = True

        self._depth += 1
        try:
            result = await self._resolve_and_call(name, list(args or []), dict(kwargs or {}))
        except Exception as exc:
            log_error(logger, f"execute_function({name})", exc, {"actor": self.context.actor_id})
            result = fail(FailureKind.RUNTIME, f"Execution error: {exc}")
        finally:
            self._depth -= 1
            if owns_run:
                self.is_running = False

        if top_level and not result.success:
            self._emit_error(result)
        return result

    # ========================================================================
    # Resolution
    # ========================================================================

    async def _resolve_and_call(self, name: str, args: List[Any], kwargs: Dict[str, Any]) -> ExecutionResult:
        context = self.context
        actor = context.refresh_actor()
        if actor.is_blocked:
            return fail(FailureKind.BLOCKED, f"Entity is currently busy: {actor.task_state.describe()}")

        self._emit(TOPIC_EXECUTION_CALL, create_call_event(actor.id, name, args))

        capability = self.registry.get_capability(name)
        if capability is not None:
            logger.debug(f"{actor.id}: {name} -> capability")
            return await self._invoke_capability(capability, args, kwargs)

        tile = context.tiles.find(actor, name)
        if tile is not None:
            logger.debug(f"{actor.id}: {name} -> {tile.type} tile function")
            result = await context.tiles.invoke(actor.id, tile, name, args, kwargs)
            context.refresh_actor()
            await self._pace(result)
            return result

        compile_failure = self._ensure_compiled()
        if compile_failure is not None:
            return compile_failure
        subroutine = self._compiled.get(name)
        if subroutine is not None:
            logger.debug(f"{actor.id}: {name} -> subroutine")
            return await self._run_subroutine(subroutine, args, kwargs)

        return fail(FailureKind.NOT_FOUND, f"Function '{name}' not found")

    async def _invoke_capability(self, capability: Capability, args: List[Any], kwargs: Dict[str, Any]) -> ExecutionResult:
        context = self.context
        try:
            inspect.signature(capability.executor).bind(context, *args, **kwargs)
        except TypeError as exc:
            return fail(FailureKind.PRECONDITION, f"{capability.signature()} called with wrong arguments: {exc}")

        declared = capability.declared_cost(context, *args, **kwargs)
        available = context.refresh_actor().stats.energy
        if declared > available:
            return not_enough_energy(declared, available)

        result = await capability.executor(context, *args, **kwargs)
        actor = context.refresh_actor()

        if result.success and result.energy_cost:
            if not context.store.debit_energy(actor.id, result.energy_cost):
                # Side effects already applied are not rolled back
                logger.warning(f"{capability.name} succeeded but {actor.id} cannot cover {result.energy_cost} energy")
                return not_enough_energy(result.energy_cost, actor.stats.energy)
            context.refresh_actor()

        await self._pace(result)
        return result

    async def _pace(self, result: ExecutionResult) -> None:
        """Short visual pause after a timed action."""
        if result.success and result.duration_ms:
            delay_ms = min(result.duration_ms, self.context.config.execution.pacing_cap_ms)
            await self.context.clock.sleep(delay_ms / 1000.0)

    async def _call_from_expression(self, name: str, args: List[Any], kwargs: Dict[str, Any]) -> ExecutionResult:
        return await self.execute_function(name, args, kwargs)

    # ========================================================================
    # Subroutines
    # ========================================================================

    def _ensure_compiled(self) -> Optional[Failure]:
        if self._compiled is not None:
            return None
        compiled: Dict[str, Subroutine] = {}
        for name, source in self._sources.items():
            try:
                subroutines = compile_subroutine(name, source)
            except ScriptSyntaxError as exc:
                return fail(
                    FailureKind.SYNTAX,
                    f"Syntax error in '{name}' on line {exc.line}: {exc.message}",
                    data={"function": name},
                    line=exc.line,
                )
            compiled[name] = subroutines[0]
            for extra in subroutines[1:]:
                compiled.setdefault(extra.name, extra)
        self._compiled = compiled
        return None

    async def _run_subroutine(self, subroutine: Subroutine, args: List[Any], kwargs: Dict[str, Any]) -> ExecutionResult:
        name = subroutine.name
        if self._depth > MAX_CALL_DEPTH:
            return fail(FailureKind.RUNTIME, f"Maximum call depth ({MAX_CALL_DEPTH}) exceeded in '{name}'")
        if len(args) > len(subroutine.params):
            return fail(
                FailureKind.PRECONDITION,
                f"{name}() takes {len(subroutine.params)} argument(s) but {len(args)} were given",
            )

        scope = dict(self.variables)
        for index, param in enumerate(subroutine.params):
            if index < len(args):
                scope[param] = args[index]
            elif param in kwargs:
                scope[param] = kwargs[param]
            else:
                return fail(FailureKind.PRECONDITION, f"{name}() is missing the argument '{param}'")

        try:
            failure = await self._execute_block(subroutine.body, scope, name)
        except _Return as returned:
            return ok(f"Function '{name}' returned", value=returned.value)
        except (_Break, _Continue) as exc:
            keyword = "break" if isinstance(exc, _Break) else "continue"
            return fail(FailureKind.SYNTAX, f"'{keyword}' outside loop in '{name}'")
        except Exception as exc:
            log_error(logger, f"subroutine {name}", exc, {"actor": self.context.actor_id})
            return fail(FailureKind.RUNTIME, f"Execution error: Function '{name}' error: {exc}")

        if failure is not None:
            return failure
        return ok(f"Function '{name}' completed")

    # ========================================================================
    # Statements
    # ========================================================================

    async def _execute_block(self, body: List[ast.Stmt], scope: Dict[str, Any], function_name: str) -> Optional[Failure]:
        for stmt in body:
            if not self.is_running:
                return fail(FailureKind.STOPPED, "Execution stopped", line=stmt.line)
            self._emit(
                TOPIC_EXECUTION_LINE,
                create_line_event(self.context.actor_id, function_name, stmt.text, stmt.line),
            )
            failure = await self._execute_statement(stmt, scope, function_name)
            if failure is not None:
                if failure.line is None:
                    failure = failure.model_copy(update={"line": stmt.line})
                return failure
            await self._wait_until_unblocked()
        return None

    async def _wait_until_unblocked(self) -> None:
        """Hold the script while a blocking call it made (plant, eat, ...) runs."""
        context = self.context
        timeout = context.config.execution.unblock_timeout_sec
        deadline = context.clock.now() + timeout
        while self.is_running and context.refresh_actor().is_blocked:
            now = context.clock.now()
            if now >= deadline:
                logger.warning(f"{context.actor.name} still busy after {timeout:g}s, continuing")
                return
            remaining_sec = context.scheduler.get_remaining_time(actor_id=context.actor_id) / 1000.0
            await context.clock.sleep(min(max(remaining_sec, 0.01), deadline - now))

    async def _execute_statement(self, stmt: ast.Stmt, scope: Dict[str, Any], function_name: str) -> Optional[Failure]:
        try:
            return await self._dispatch_statement(stmt, scope, function_name)
        except CallFailed as failed:
            return failed.result
        except EvaluationError as exc:
            return fail(FailureKind.RUNTIME, str(exc), line=stmt.line)

    async def _dispatch_statement(self, stmt: ast.Stmt, scope: Dict[str, Any], function_name: str) -> Optional[Failure]:
        if isinstance(stmt, ast.Assign):
            self._assign(stmt.target, await self._assignment_value(stmt, scope), scope)
            return None

        if isinstance(stmt, ast.AugAssign):
            if stmt.target not in scope:
                return fail(FailureKind.RUNTIME, f"Variable '{stmt.target}' is not defined")
            value = await self._evaluator.evaluate(stmt.value, scope)
            self._assign(stmt.target, binary_operation(stmt.op, scope[stmt.target], value), scope)
            return None

        if isinstance(stmt, ast.ExprStatement):
            await self._evaluator.evaluate(stmt.expr, scope)
            return None

        if isinstance(stmt, ast.If):
            for test, body in stmt.branches:
                if await self._evaluator.evaluate(test, scope):
                    return await self._execute_block(body, scope, function_name)
            return await self._execute_block(stmt.orelse, scope, function_name)

        if isinstance(stmt, ast.For):
            return await self._execute_for(stmt, scope, function_name)

        if isinstance(stmt, ast.While):
            return await self._execute_while(stmt, scope, function_name)

        if isinstance(stmt, ast.Return):
            value = None if stmt.value is None else await self._evaluator.evaluate(stmt.value, scope)
            raise _Return(value)
        if isinstance(stmt, ast.Break):
            raise _Break()
        if isinstance(stmt, ast.Continue):
            raise _Continue()

        if isinstance(stmt, ast.Unclassified):
            logger.debug(f"Ignoring unrecognised line {stmt.line}: {stmt.text}")
        # Pass and FunctionDef (registered at compile time) do nothing here
        return None

    async def _assignment_value(self, stmt: ast.Assign, scope: Dict[str, Any]) -> Any:
        if stmt.raw:
            return stmt.value.value
        try:
            return await self._evaluator.evaluate(stmt.value, scope)
        except EvaluationError:
            return stmt.text.split("=", 1)[1].strip()

    def _assign(self, name: str, value: Any, scope: Dict[str, Any]) -> None:
        scope[name] = value
        self.variables[name] = value

    async def _execute_for(self, stmt: ast.For, scope: Dict[str, Any], function_name: str) -> Optional[Failure]:
        iterable = await self._evaluator.evaluate(stmt.iter, scope)
        if isinstance(iterable, float) and iterable.is_integer():
            iterable = int(iterable)
        if isinstance(iterable, bool):
            return fail(FailureKind.RUNTIME, "Cannot loop over True/False")
        if isinstance(iterable, int):
            if iterable < 0:
                return fail(FailureKind.RUNTIME, f"Cannot loop a negative number of times ({iterable})")
            values: Any = range(iterable)
        elif isinstance(iterable, (list, str)):
            values = list(iterable)
        elif isinstance(iterable, dict):
            values = list(iterable.keys())
        else:
            return fail(FailureKind.RUNTIME, f"Cannot loop over {type_name(iterable)}")

        for value in values:
            self._assign(stmt.target, value, scope)
            try:
                failure = await self._execute_block(stmt.body, scope, function_name)
            except _Break:
                break
            except _Continue:
                continue
            if failure is not None:
                return failure
        return None

    async def _execute_while(self, stmt: ast.While, scope: Dict[str, Any], function_name: str) -> Optional[Failure]:
        limit = self.context.config.execution.max_loop_iterations
        iterations = 0
        while await self._evaluator.evaluate(stmt.test, scope):
            iterations += 1
            if iterations > limit:
                return fail(
                    FailureKind.RUNTIME,
                    f"While loop exceeded maximum iterations ({limit}). Possible infinite loop.",
                )
            try:
                failure = await self._execute_block(stmt.body, scope, function_name)
            except _Break:
                break
            except _Continue:
                continue
            if failure is not None:
                return failure
            # Let other actors and stop() run during tight loops
            await asyncio.sleep(0)
        return None

    # ========================================================================
    # Events
    # ========================================================================

    def _emit(self, topic: str, payload: Dict[str, Any]) -> None:
        bus = self.context.event_bus
        if bus is not None:
            bus.emit(topic, payload)

    def _emit_error(self, result: ExecutionResult) -> None:
        if result.success:
            return
        learner_error = enhance_error(result.message)
        self._emit(TOPIC_EXECUTION_ERROR, create_error_event(self.context.actor_id, learner_error, result.line))
