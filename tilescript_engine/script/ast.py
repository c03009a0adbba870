"""Syntax tree for TileScript."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union


# ============================================================================
# Expressions
# ============================================================================


@dataclass
class Literal:
    value: Any


@dataclass
class Name:
    id: str


@dataclass
class ListExpr:
    items: List["Expr"]


@dataclass
class UnaryOp:
    op: str  # "-" or "not"
    operand: "Expr"


@dataclass
class BinOp:
    op: str  # + - * / // %
    left: "Expr"
    right: "Expr"


@dataclass
class BoolOp:
    op: str  # "and" or "or"
    left: "Expr"
    right: "Expr"


@dataclass
class Compare:
    """Chained comparison: `a < b <= c` holds ops ["<", "<="]."""
    left: "Expr"
    ops: List[str]
    comparators: List["Expr"]


@dataclass
class Call:
    func: str
    args: List["Expr"] = field(default_factory=list)
    kwargs: List[Tuple[str, "Expr"]] = field(default_factory=list)


@dataclass
class Index:
    target: "Expr"
    index: "Expr"


Expr = Union[Literal, Name, ListExpr, UnaryOp, BinOp, BoolOp, Compare, Call, Index]


# ============================================================================
# Statements
# ============================================================================


@dataclass
class Stmt:
    line: int
    text: str


@dataclass
class Assign(Stmt):
    target: str
    value: Expr
    raw: bool = False  # right-hand side kept as raw text


@dataclass
class AugAssign(Stmt):
    target: str
    op: str
    value: Expr


@dataclass
class ExprStatement(Stmt):
    expr: Expr


@dataclass
class If(Stmt):
    branches: List[Tuple[Expr, List[Stmt]]]
    orelse: List[Stmt] = field(default_factory=list)


@dataclass
class For(Stmt):
    target: str
    iter: Expr
    body: List[Stmt]


@dataclass
class While(Stmt):
    test: Expr
    body: List[Stmt]


@dataclass
class Return(Stmt):
    value: Optional[Expr] = None


@dataclass
class Break(Stmt):
    pass


@dataclass
class Continue(Stmt):
    pass


@dataclass
class Pass(Stmt):
    pass


@dataclass
class FunctionDef(Stmt):
    name: str
    params: List[str]
    body: List[Stmt]


@dataclass
class Unclassified(Stmt):
    """A line that is neither a statement nor an expression; runs as a no-op."""


@dataclass
class Module:
    body: List[Stmt]

    def functions(self) -> List[FunctionDef]:
        return [stmt for stmt in self.body if isinstance(stmt, FunctionDef)]
