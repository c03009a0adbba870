"""
Recursive-descent parser for TileScript.

Statements are read line by line; indentation (4 spaces per level, tabs
count as 4) groups them into blocks. Expressions are parsed from the tokens of
a single line with the usual precedence:

    or -> and -> not -> comparison -> + - -> * / // % -> unary - -> postfix -> atom

Two lenient rules keep beginner scripts running:
- an assignment whose right-hand side is not a valid expression stores the
  raw text instead (`name = hello world` stores "hello world"),
- a line that is neither a statement nor an expression becomes an
  Unclassified no-op.

Malformed `if`/`elif`/`for`/`while`/`def` headers and malformed calls are
always syntax errors.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from . import ast
from .lexer import ScriptSyntaxError, SourceLine, Token, TokenType, split_lines, tokenize

COMPOUND_KEYWORDS = ("if", "elif", "else", "for", "while", "def")
AUGMENTED_OPS = ("+=", "-=", "*=", "/=", "//=", "%=")
COMPARISON_OPS = ("==", "!=", "<", ">", "<=", ">=")
LITERAL_NAMES = {"true": True, "false": False, "null": None}

_HEADER_RE = re.compile(r"^(if|elif|else|for|while|def)\b")
_CALL_RE = re.compile(r"^[A-Za-z_]\w*\s*\(")
_ASSIGN_RE = re.compile(r"^([A-Za-z_]\w*)\s*=(?!=)(.*)$")


class TokenStream:
    """Cursor over the tokens of one line."""

    def __init__(self, tokens: List[Token], line: int):
        self.tokens = tokens
        self.pos = 0
        self.line = line

    def peek(self, offset: int = 0) -> Token:
        index = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def advance(self) -> Token:
        token = self.peek()
        if token.type != TokenType.EOF:
            self.pos += 1
        return token

    def at_end(self) -> bool:
        return self.peek().type == TokenType.EOF

    def accept_op(self, *values: str) -> Optional[Token]:
        if self.peek().is_op(*values):
            return self.advance()
        return None

    def accept_keyword(self, *values: str) -> Optional[Token]:
        if self.peek().is_keyword(*values):
            return self.advance()
        return None

    def expect_op(self, value: str, message: str) -> Token:
        token = self.accept_op(value)
        if token is None:
            raise ScriptSyntaxError(message, self.line)
        return token

    def expect_name(self, message: str) -> str:
        token = self.peek()
        if token.type != TokenType.NAME:
            raise ScriptSyntaxError(message, self.line)
        self.advance()
        return token.value

    def expect_end(self, message: str) -> None:
        if not self.at_end():
            raise ScriptSyntaxError(message, self.line)


# ============================================================================
# Expressions
# ============================================================================


class ExpressionParser:
    """Parses one expression from a TokenStream."""

    def __init__(self, stream: TokenStream):
        self.stream = stream

    def error(self, message: str) -> ScriptSyntaxError:
        return ScriptSyntaxError(message, self.stream.line)

    def parse(self) -> ast.Expr:
        return self.parse_or()

    def parse_or(self) -> ast.Expr:
        left = self.parse_and()
        while self.stream.accept_keyword("or"):
            left = ast.BoolOp("or", left, self.parse_and())
        return left

    def parse_and(self) -> ast.Expr:
        left = self.parse_not()
        while self.stream.accept_keyword("and"):
            left = ast.BoolOp("and", left, self.parse_not())
        return left

    def parse_not(self) -> ast.Expr:
        if self.stream.accept_keyword("not"):
            return ast.UnaryOp("not", self.parse_not())
        return self.parse_comparison()

    def _comparison_op(self) -> Optional[str]:
        token = self.stream.peek()
        if token.is_op(*COMPARISON_OPS):
            self.stream.advance()
            return token.value
        if token.is_keyword("in"):
            self.stream.advance()
            return "in"
        if token.is_keyword("not") and self.stream.peek(1).is_keyword("in"):
            self.stream.advance()
            self.stream.advance()
            return "not in"
        return None

    def parse_comparison(self) -> ast.Expr:
        left = self.parse_additive()
        ops, comparators = [], []
        while (op := self._comparison_op()) is not None:
            ops.append(op)
            comparators.append(self.parse_additive())
        if ops:
            return ast.Compare(left, ops, comparators)
        return left

    def parse_additive(self) -> ast.Expr:
        left = self.parse_multiplicative()
        while (token := self.stream.accept_op("+", "-")) is not None:
            left = ast.BinOp(token.value, left, self.parse_multiplicative())
        return left

    def parse_multiplicative(self) -> ast.Expr:
        left = self.parse_unary()
        while (token := self.stream.accept_op("*", "/", "//", "%")) is not None:
            left = ast.BinOp(token.value, left, self.parse_unary())
        return left

    def parse_unary(self) -> ast.Expr:
        if self.stream.accept_op("-"):
            return ast.UnaryOp("-", self.parse_unary())
        if self.stream.accept_op("+"):
            return self.parse_unary()
        return self.parse_postfix()

    def parse_postfix(self) -> ast.Expr:
        expr = self.parse_atom()
        while self.stream.accept_op("["):
            index = self.parse()
            self.stream.expect_op("]", "Expected ']' to close the index")
            expr = ast.Index(expr, index)
        return expr

    def parse_atom(self) -> ast.Expr:
        token = self.stream.peek()

        if token.type in (TokenType.NUMBER, TokenType.STRING):
            self.stream.advance()
            return ast.Literal(token.value)

        if token.is_keyword("True", "False", "None"):
            self.stream.advance()
            return ast.Literal({"True": True, "False": False, "None": None}[token.value])

        if token.type == TokenType.NAME:
            self.stream.advance()
            if self.stream.peek().is_op("("):
                return self.parse_call(token.value)
            if token.value in LITERAL_NAMES:
                return ast.Literal(LITERAL_NAMES[token.value])
            return ast.Name(token.value)

        if self.stream.accept_op("["):
            items = []
            while not self.stream.peek().is_op("]"):
                items.append(self.parse())
                if not self.stream.accept_op(","):
                    break
            self.stream.expect_op("]", "Expected ']' to close the list")
            return ast.ListExpr(items)

        if self.stream.accept_op("("):
            expr = self.parse()
            self.stream.expect_op(")", "Expected ')' to close the parenthesis")
            return expr

        if token.type == TokenType.EOF:
            raise self.error("Expected a value but the line ended")
        raise self.error(f"Unexpected '{token.value}'")

    def parse_call(self, func: str) -> ast.Call:
        self.stream.expect_op("(", f"Expected '(' after {func}")
        args: List[ast.Expr] = []
        kwargs: List[Tuple[str, ast.Expr]] = []
        while not self.stream.peek().is_op(")"):
            if self.stream.peek().type == TokenType.NAME and self.stream.peek(1).is_op("="):
                key = self.stream.advance().value
                self.stream.advance()
                kwargs.append((key, self.parse()))
            else:
                if kwargs:
                    raise self.error(f"Positional argument after a named argument in {func}()")
                args.append(self.parse())
            if not self.stream.accept_op(","):
                break
        self.stream.expect_op(")", f"Missing closing parenthesis in call to {func}()")
        return ast.Call(func, args, kwargs)


def parse_expression(text: str, line: int = 1) -> ast.Expr:
    """Parse a whole line as a single expression."""
    stream = TokenStream(tokenize(text, line), line)
    expr = ExpressionParser(stream).parse()
    stream.expect_end(f"Unexpected '{stream.peek().value}' after expression")
    return expr


# ============================================================================
# Statements
# ============================================================================


class Parser:
    """Turns script source into an ast.Module."""

    def __init__(self, source: str):
        self.lines: List[SourceLine] = split_lines(source)

    def parse(self) -> ast.Module:
        if not self.lines:
            return ast.Module(body=[])
        body, pos = self._parse_block(0, self.lines[0].indent)
        if pos < len(self.lines):
            raise ScriptSyntaxError("Unindent does not match any outer indentation level", self.lines[pos].number)
        return ast.Module(body=body)

    def _parse_block(self, pos: int, indent: int) -> Tuple[List[ast.Stmt], int]:
        body: List[ast.Stmt] = []
        while pos < len(self.lines):
            line = self.lines[pos]
            if line.indent < indent:
                break
            if line.indent > indent:
                raise ScriptSyntaxError("Unexpected indentation", line.number)
            stmt, pos = self._parse_statement(pos)
            body.append(stmt)
        return body, pos

    def _parse_body(self, pos: int, header: SourceLine, stream: TokenStream, keyword: str) -> Tuple[List[ast.Stmt], int]:
        """Body after a header whose ':' was just consumed."""
        if not stream.at_end():
            colon = stream.tokens[stream.pos - 1]
            inline = header.text[colon.column + 1:].strip()
            return [self._parse_simple(header.number, inline)], pos + 1

        next_pos = pos + 1
        if next_pos >= len(self.lines) or self.lines[next_pos].indent <= header.indent:
            raise ScriptSyntaxError(f"Expected an indented block after '{keyword}'", header.number)
        return self._parse_block(next_pos, self.lines[next_pos].indent)

    def _parse_statement(self, pos: int) -> Tuple[ast.Stmt, int]:
        line = self.lines[pos]
        header = _HEADER_RE.match(line.text)
        if header is None:
            return self._parse_simple(line.number, line.text), pos + 1

        keyword = header.group(1)
        stream = TokenStream(tokenize(line.text, line.number), line.number)
        stream.advance()

        if keyword in ("elif", "else"):
            raise ScriptSyntaxError(f"'{keyword}' without a matching 'if'", line.number)
        if keyword == "if":
            return self._parse_if(pos, line, stream)
        if keyword == "while":
            test = self._header_expression(stream, "while", "while condition:")
            body, next_pos = self._parse_body(pos, line, stream, "while")
            return ast.While(line.number, line.text, test, body), next_pos
        if keyword == "for":
            return self._parse_for(pos, line, stream)
        return self._parse_def(pos, line, stream)

    def _header_expression(self, stream: TokenStream, keyword: str, usage: str) -> ast.Expr:
        try:
            expr = ExpressionParser(stream).parse()
        except ScriptSyntaxError:
            raise ScriptSyntaxError(f"Invalid {keyword} statement - expected '{usage}'", stream.line) from None
        stream.expect_op(":", f"Invalid {keyword} statement - missing ':' (expected '{usage}')")
        return expr

    def _parse_if(self, pos: int, line: SourceLine, stream: TokenStream) -> Tuple[ast.Stmt, int]:
        branches = []
        test = self._header_expression(stream, "if", "if condition:")
        body, pos = self._parse_body(pos, line, stream, "if")
        branches.append((test, body))
        orelse: List[ast.Stmt] = []

        while pos < len(self.lines) and self.lines[pos].indent == line.indent:
            clause = self.lines[pos]
            match = _HEADER_RE.match(clause.text)
            if match is None or match.group(1) not in ("elif", "else"):
                break
            clause_stream = TokenStream(tokenize(clause.text, clause.number), clause.number)
            clause_stream.advance()
            if match.group(1) == "elif":
                test = self._header_expression(clause_stream, "elif", "elif condition:")
                body, pos = self._parse_body(pos, clause, clause_stream, "elif")
                branches.append((test, body))
                continue
            clause_stream.expect_op(":", "Invalid else statement - expected 'else:'")
            orelse, pos = self._parse_body(pos, clause, clause_stream, "else")
            break

        return ast.If(line.number, line.text, branches, orelse), pos

    def _parse_for(self, pos: int, line: SourceLine, stream: TokenStream) -> Tuple[ast.Stmt, int]:
        usage = "Invalid for loop - expected 'for name in values:'"
        target = stream.expect_name(usage)
        if not stream.accept_keyword("in"):
            raise ScriptSyntaxError(usage, line.number)
        iterable = self._header_expression(stream, "for", "for name in values:")
        body, next_pos = self._parse_body(pos, line, stream, "for")
        return ast.For(line.number, line.text, target, iterable, body), next_pos

    def _parse_def(self, pos: int, line: SourceLine, stream: TokenStream) -> Tuple[ast.Stmt, int]:
        usage = "Invalid function definition - expected 'def name(params):'"
        name = stream.expect_name(usage)
        stream.expect_op("(", usage)
        params: List[str] = []
        while not stream.peek().is_op(")"):
            params.append(stream.expect_name(usage))
            if not stream.accept_op(","):
                break
        stream.expect_op(")", usage)
        stream.expect_op(":", usage)
        body, next_pos = self._parse_body(pos, line, stream, "def")
        return ast.FunctionDef(line.number, line.text, name, params, body), next_pos

    def _parse_simple(self, number: int, text: str) -> ast.Stmt:
        """Parse a single-line statement (no block)."""
        if _HEADER_RE.match(text):
            raise ScriptSyntaxError("A block statement cannot follow ':' on the same line", number)

        try:
            tokens = tokenize(text, number)
        except ScriptSyntaxError:
            assign = _ASSIGN_RE.match(text)
            if assign is not None and not _CALL_RE.match(assign.group(2).strip()):
                return ast.Assign(number, text, assign.group(1), ast.Literal(assign.group(2).strip()), raw=True)
            if _CALL_RE.match(text):
                raise
            return ast.Unclassified(number, text)

        stream = TokenStream(tokens, number)
        first = stream.peek()

        if first.is_keyword("return"):
            stream.advance()
            value = None if stream.at_end() else ExpressionParser(stream).parse()
            stream.expect_end("Invalid return statement")
            return ast.Return(number, text, value)
        for keyword, node in (("break", ast.Break), ("continue", ast.Continue), ("pass", ast.Pass)):
            if first.is_keyword(keyword):
                stream.advance()
                stream.expect_end(f"Unexpected text after '{keyword}'")
                return node(number, text)

        if first.type == TokenType.NAME and stream.peek(1).is_op("="):
            return self._parse_assign(number, text, first.value, tokens[2:])
        if first.type == TokenType.NAME and stream.peek(1).is_op(*AUGMENTED_OPS):
            op = stream.peek(1).value[:-1]
            value_stream = TokenStream(tokens[2:], number)
            value = ExpressionParser(value_stream).parse()
            value_stream.expect_end(f"Invalid '{op}=' statement")
            return ast.AugAssign(number, text, first.value, op, value)

        try:
            expr = ExpressionParser(stream).parse()
            stream.expect_end(f"Unexpected '{stream.peek().value}'")
        except ScriptSyntaxError as exc:
            if _CALL_RE.match(text):
                raise ScriptSyntaxError(f"Invalid function call syntax: {exc.message}", number) from None
            return ast.Unclassified(number, text)
        return ast.ExprStatement(number, text, expr)

    def _parse_assign(self, number: int, text: str, target: str, value_tokens: List[Token]) -> ast.Stmt:
        raw_value = text.split("=", 1)[1].strip()
        stream = TokenStream(value_tokens, number)
        try:
            value = ExpressionParser(stream).parse()
            stream.expect_end("Unexpected text after value")
        except ScriptSyntaxError as exc:
            if _CALL_RE.match(raw_value):
                raise ScriptSyntaxError(f"Invalid function call syntax: {exc.message}", number) from None
            return ast.Assign(number, text, target, ast.Literal(raw_value), raw=True)
        return ast.Assign(number, text, target, value)


def parse(source: str) -> ast.Module:
    """Parse script source.

    Raises:
        ScriptSyntaxError: With the offending line number
    """
    return Parser(source).parse()


@dataclass
class Subroutine:
    """Executable form of one named script."""

    name: str
    params: List[str]
    body: List[ast.Stmt]
    source: str = ""


def compile_subroutine(name: str, source: str) -> List[Subroutine]:
    """Parse a named script into the subroutine(s) it defines.

    A script that is exactly one `def <name>(...)` block is unwrapped: its
    parameters bind to call arguments. Any other top-level `def` blocks are
    returned as additional subroutines after the first entry.
    """
    module = parse(source)
    defs = module.functions()
    if len(module.body) == 1 and defs and defs[0].name == name:
        main = Subroutine(name, defs[0].params, defs[0].body, source)
        defs = []
    else:
        main = Subroutine(name, [], module.body, source)
    return [main] + [Subroutine(d.name, d.params, d.body, source) for d in defs]
