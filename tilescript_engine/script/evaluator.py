"""Expression evaluation for TileScript.

Values are plain Python values. Calls inside expressions go back to the
interpreter through the `call_function` coroutine; a failing call unwinds
the evaluation with CallFailed so the interpreter can report the original
result unchanged.
"""

from __future__ import annotations

import operator
from typing import Any, Awaitable, Callable, Dict, List

from tilescript_core import ExecutionResult

from . import ast

CallFunction = Callable[[str, List[Any], Dict[str, Any]], Awaitable[ExecutionResult]]

_BINARY = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "//": operator.floordiv,
    "%": operator.mod,
}

_COMPARE = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
    "in": lambda left, right: left in right,
    "not in": lambda left, right: left not in right,
}


class EvaluationError(Exception):
    """An operator or index could not be applied to its operands."""


class CallFailed(Exception):
    """A call inside an expression returned a failure."""

    def __init__(self, result: ExecutionResult):
        self.result = result
        super().__init__(result.message)


def display_text(value: Any) -> str:
    """Text form of a value as scripts see it."""
    if value is None:
        return "None"
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return "[" + ", ".join(repr(v) if isinstance(v, str) else display_text(v) for v in value) + "]"
    return str(value)


def type_name(value: Any) -> str:
    if value is None:
        return "nothing"
    if isinstance(value, bool):
        return "True/False"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "text"
    if isinstance(value, list):
        return "list"
    return type(value).__name__


def binary_operation(op: str, left: Any, right: Any) -> Any:
    """Apply an arithmetic operator; text joined with '+' is concatenated."""
    if op == "+" and (isinstance(left, str) or isinstance(right, str)):
        return display_text(left) + display_text(right)
    try:
        return _BINARY[op](left, right)
    except ZeroDivisionError:
        raise EvaluationError("Division by zero") from None
    except TypeError:
        raise EvaluationError(
            f"Cannot use '{op}' with {type_name(left)} and {type_name(right)}"
        ) from None


class Evaluator:
    """Evaluates expression trees against a variable scope."""

    def __init__(self, call_function: CallFunction):
        self.call_function = call_function

    async def evaluate(self, expr: ast.Expr, scope: Dict[str, Any]) -> Any:
        if isinstance(expr, ast.Literal):
            return expr.value

        if isinstance(expr, ast.Name):
            # An unknown bare name stands for its own text
            return scope.get(expr.id, expr.id)

        if isinstance(expr, ast.ListExpr):
            return [await self.evaluate(item, scope) for item in expr.items]

        if isinstance(expr, ast.UnaryOp):
            operand = await self.evaluate(expr.operand, scope)
            if expr.op == "not":
                return not operand
            if isinstance(operand, bool) or not isinstance(operand, (int, float)):
                raise EvaluationError(f"Cannot negate {type_name(operand)}")
            return -operand

        if isinstance(expr, ast.BinOp):
            left = await self.evaluate(expr.left, scope)
            right = await self.evaluate(expr.right, scope)
            return binary_operation(expr.op, left, right)

        if isinstance(expr, ast.BoolOp):
            left = await self.evaluate(expr.left, scope)
            if expr.op == "and":
                return await self.evaluate(expr.right, scope) if left else left
            return left if left else await self.evaluate(expr.right, scope)

        if isinstance(expr, ast.Compare):
            return await self._compare(expr, scope)

        if isinstance(expr, ast.Call):
            args = [await self.evaluate(arg, scope) for arg in expr.args]
            kwargs = {key: await self.evaluate(value, scope) for key, value in expr.kwargs}
            result = await self.call_function(expr.func, args, kwargs)
            if not result.success:
                raise CallFailed(result)
            return result.value

        if isinstance(expr, ast.Index):
            target = await self.evaluate(expr.target, scope)
            index = await self.evaluate(expr.index, scope)
            return self._index(target, index)

        raise EvaluationError(f"Cannot evaluate {type(expr).__name__}")

    async def _compare(self, expr: ast.Compare, scope: Dict[str, Any]) -> bool:
        left = await self.evaluate(expr.left, scope)
        for op, comparator in zip(expr.ops, expr.comparators):
            right = await self.evaluate(comparator, scope)
            try:
                holds = _COMPARE[op](left, right)
            except TypeError:
                raise EvaluationError(
                    f"Cannot compare {type_name(left)} and {type_name(right)} with '{op}'"
                ) from None
            if not holds:
                return False
            left = right
        return True

    @staticmethod
    def _index(target: Any, index: Any) -> Any:
        if isinstance(target, dict):
            if index not in target:
                raise EvaluationError(f"No entry named {index!r}")
            return target[index]
        if not isinstance(target, (list, str)):
            raise EvaluationError(f"Cannot index into {type_name(target)}")
        if isinstance(index, float) and index.is_integer():
            index = int(index)
        if isinstance(index, bool) or not isinstance(index, int):
            raise EvaluationError(f"Index must be a whole number, got {index!r}")
        try:
            return target[index]
        except IndexError:
            raise EvaluationError(f"Index {index} is out of range (length {len(target)})") from None
