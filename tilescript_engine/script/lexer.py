"""Tokenizer for TileScript source lines.

Scripts are line oriented, so the lexer works one logical line at a time;
`split_lines()` turns a source text into those lines with their indentation
width (tabs count as 4 spaces).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List

TAB_WIDTH = 4

KEYWORDS = frozenset(
    {
        "if", "elif", "else", "for", "in", "while", "def", "return",
        "break", "continue", "pass", "and", "or", "not", "True", "False", "None",
    }
)

# Longest operators first so "//" wins over "/"
OPERATORS = (
    "//=", "+=", "-=", "*=", "/=", "%=",
    "==", "!=", "<=", ">=", "//",
    "+", "-", "*", "/", "%", "<", ">", "=",
    "(", ")", "[", "]", ",", ":",
)


class ScriptSyntaxError(Exception):
    """Raised when a script line cannot be tokenized or parsed."""

    def __init__(self, message: str, line: int | None = None):
        self.message = message
        self.line = line
        super().__init__(f"Line {line}: {message}" if line is not None else message)


class TokenType(str, Enum):
    NUMBER = "number"
    STRING = "string"
    NAME = "name"
    KEYWORD = "keyword"
    OP = "op"
    EOF = "eof"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: Any
    line: int
    column: int

    def is_op(self, *values: str) -> bool:
        return self.type == TokenType.OP and self.value in values

    def is_keyword(self, *values: str) -> bool:
        return self.type == TokenType.KEYWORD and self.value in values


@dataclass(frozen=True)
class SourceLine:
    number: int  # 1-based line number in the source
    indent: int  # width in spaces
    text: str  # stripped content


def indent_width(raw: str) -> int:
    width = 0
    for char in raw:
        if char == " ":
            width += 1
        elif char == "\t":
            width += TAB_WIDTH
        else:
            break
    return width


def split_lines(source: str) -> List[SourceLine]:
    """Non-blank, non-comment lines with their indentation."""
    lines = []
    for number, raw in enumerate(source.splitlines(), start=1):
        text = raw.strip()
        if not text or text.startswith("#"):
            continue
        lines.append(SourceLine(number=number, indent=indent_width(raw), text=text))
    return lines


def tokenize(text: str, line: int = 1) -> List[Token]:
    """Split one line of source into tokens, ending with an EOF token.

    Raises:
        ScriptSyntaxError: On an unterminated string or an unknown character
    """
    tokens: List[Token] = []
    pos = 0
    length = len(text)

    while pos < length:
        char = text[pos]

        if char in " \t":
            pos += 1
            continue

        if char == "#":
            break

        if char.isdigit() or (char == "." and pos + 1 < length and text[pos + 1].isdigit()):
            start = pos
            seen_dot = False
            while pos < length and (text[pos].isdigit() or (text[pos] == "." and not seen_dot)):
                seen_dot = seen_dot or text[pos] == "."
                pos += 1
            literal = text[start:pos]
            value = float(literal) if "." in literal else int(literal)
            tokens.append(Token(TokenType.NUMBER, value, line, start))
            continue

        if char in "\"'":
            start = pos
            pos += 1
            chars = []
            while pos < length and text[pos] != char:
                if text[pos] == "\\" and pos + 1 < length:
                    escaped = text[pos + 1]
                    chars.append({"n": "\n", "t": "\t"}.get(escaped, escaped))
                    pos += 2
                    continue
                chars.append(text[pos])
                pos += 1
            if pos >= length:
                raise ScriptSyntaxError("Unterminated string", line)
            pos += 1
            tokens.append(Token(TokenType.STRING, "".join(chars), line, start))
            continue

        if char.isalpha() or char == "_":
            start = pos
            while pos < length and (text[pos].isalnum() or text[pos] == "_"):
                pos += 1
            word = text[start:pos]
            kind = TokenType.KEYWORD if word in KEYWORDS else TokenType.NAME
            tokens.append(Token(kind, word, line, start))
            continue

        for op in OPERATORS:
            if text.startswith(op, pos):
                tokens.append(Token(TokenType.OP, op, line, pos))
                pos += len(op)
                break
        else:
            raise ScriptSyntaxError(f"Unexpected character '{char}'", line)

    tokens.append(Token(TokenType.EOF, None, line, length))
    return tokens
