"""TileScript language: lexer, parser, syntax tree and expression evaluator."""

from . import ast
from .evaluator import CallFailed, EvaluationError, Evaluator, display_text
from .lexer import ScriptSyntaxError, Token, TokenType, split_lines, tokenize
from .parser import Parser, Subroutine, compile_subroutine, parse, parse_expression

__all__ = [
    "ast",
    "CallFailed",
    "EvaluationError",
    "Evaluator",
    "display_text",
    "ScriptSyntaxError",
    "Token",
    "TokenType",
    "split_lines",
    "tokenize",
    "Parser",
    "Subroutine",
    "compile_subroutine",
    "parse",
    "parse_expression",
]
