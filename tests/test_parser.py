"""Lexer and parser tests."""

import pytest

from tilescript_engine.script import ast
from tilescript_engine.script.lexer import ScriptSyntaxError, TokenType, split_lines, tokenize
from tilescript_engine.script.parser import compile_subroutine, parse, parse_expression


# ============================================================================
# Lexer
# ============================================================================


def test_tokenize_mixed_line() -> None:
    tokens = tokenize('total //= 2.5 + "a\\"b"  # note')

    assert [t.type for t in tokens] == [
        TokenType.NAME,
        TokenType.OP,
        TokenType.NUMBER,
        TokenType.OP,
        TokenType.STRING,
        TokenType.EOF,
    ]
    assert tokens[1].value == "//="
    assert tokens[2].value == 2.5
    assert tokens[4].value == 'a"b'


def test_keywords_are_marked() -> None:
    tokens = tokenize("if not done and True:")
    assert [t.type for t in tokens[:-1]] == [
        TokenType.KEYWORD,
        TokenType.KEYWORD,
        TokenType.NAME,
        TokenType.KEYWORD,
        TokenType.KEYWORD,
        TokenType.OP,
    ]


def test_unterminated_string() -> None:
    with pytest.raises(ScriptSyntaxError) as info:
        tokenize('print("hello)', line=7)
    assert info.value.line == 7
    assert info.value.message == "Unterminated string"


def test_split_lines_skips_comments_and_measures_tabs() -> None:
    lines = split_lines("# header\n\nif x:\n\tmove_up()\n")

    assert [(line.number, line.indent, line.text) for line in lines] == [
        (3, 0, "if x:"),
        (4, 4, "move_up()"),
    ]


# ============================================================================
# Expressions
# ============================================================================


def test_precedence() -> None:
    expr = parse_expression("1 + 2 * 3 > 6 and not done")

    assert isinstance(expr, ast.BoolOp) and expr.op == "and"
    compare = expr.left
    assert isinstance(compare, ast.Compare) and compare.ops == [">"]
    assert compare.left == ast.BinOp("+", ast.Literal(1), ast.BinOp("*", ast.Literal(2), ast.Literal(3)))
    assert expr.right == ast.UnaryOp("not", ast.Name("done"))


def test_call_with_keyword_arguments_and_index() -> None:
    expr = parse_expression('store(2, resource="wheat")[0]')

    assert isinstance(expr, ast.Index)
    assert expr.target == ast.Call("store", [ast.Literal(2)], [("resource", ast.Literal("wheat"))])


def test_lowercase_literals_and_not_in() -> None:
    expr = parse_expression("x not in [true, null]")

    assert expr == ast.Compare(
        ast.Name("x"), ["not in"], [ast.ListExpr([ast.Literal(True), ast.Literal(None)])]
    )


def test_trailing_tokens_rejected() -> None:
    with pytest.raises(ScriptSyntaxError):
        parse_expression("1 2")


# ============================================================================
# Statements
# ============================================================================


def test_if_elif_else_blocks() -> None:
    module = parse(
        "if energy < 20:\n"
        "    eat()\n"
        "elif energy < 50:\n"
        "    wait(1)\n"
        "else:\n"
        "    move_right()\n"
        "print('done')\n"
    )

    stmt, after = module.body
    assert isinstance(stmt, ast.If)
    assert len(stmt.branches) == 2
    assert isinstance(stmt.orelse[0], ast.ExprStatement)
    assert stmt.orelse[0].line == 6
    assert after.line == 7


def test_for_and_while_with_inline_body() -> None:
    module = parse("for i in range(3): move_right()\nwhile busy: wait(1)")

    loop, spin = module.body
    assert isinstance(loop, ast.For) and loop.target == "i"
    assert loop.iter == ast.Call("range", [ast.Literal(3)])
    assert isinstance(loop.body[0], ast.ExprStatement)
    assert isinstance(spin, ast.While)


def test_nested_blocks_and_control_statements() -> None:
    module = parse(
        "for i in range(10):\n"
        "    if i == 3:\n"
        "        continue\n"
        "    if i > 5:\n"
        "        break\n"
        "    count += 1\n"
    )

    loop = module.body[0]
    assert isinstance(loop.body[0].branches[0][1][0], ast.Continue)
    assert isinstance(loop.body[1].branches[0][1][0], ast.Break)
    assert loop.body[2] == ast.AugAssign(6, "count += 1", "count", "+", ast.Literal(1))


def test_def_with_return() -> None:
    module = parse("def double(n):\n    return n * 2\n")

    definition = module.functions()[0]
    assert definition.name == "double"
    assert definition.params == ["n"]
    assert isinstance(definition.body[0], ast.Return)


def test_assignment_keeps_raw_text_when_not_an_expression() -> None:
    module = parse("greeting = hello world\nmood = :)")

    first, second = module.body
    assert first.raw and first.value == ast.Literal("hello world")
    assert second.raw and second.value == ast.Literal(":)")


def test_unrecognised_line_is_unclassified() -> None:
    module = parse("hello world")

    assert isinstance(module.body[0], ast.Unclassified)


@pytest.mark.parametrize(
    "source, line, fragment",
    [
        ("if energy > 5\n    eat()", 1, "Invalid if statement"),
        ("wait(1)\nfor in range(3):\n    wait(1)", 2, "Invalid for loop"),
        ("def (x):\n    pass", 1, "Invalid function definition"),
        ("move_right(", 1, "Invalid function call syntax"),
        ("x = move_to(1,", 1, "Invalid function call syntax"),
        ("if ready:\nmove_up()", 1, "Expected an indented block"),
        ("else:\n    pass", 1, "without a matching 'if'"),
        ("move_up()\n    move_down()", 2, "Unexpected indentation"),
    ],
)
def test_malformed_scripts(source, line, fragment) -> None:
    with pytest.raises(ScriptSyntaxError) as info:
        parse(source)
    assert info.value.line == line
    assert fragment in info.value.message


# ============================================================================
# Subroutines
# ============================================================================


def test_single_def_is_unwrapped() -> None:
    subroutines = compile_subroutine("walk", "def walk(steps):\n    for i in range(steps):\n        move_right()")

    assert len(subroutines) == 1
    assert subroutines[0].params == ["steps"]
    assert isinstance(subroutines[0].body[0], ast.For)


def test_extra_defs_become_subroutines() -> None:
    source = "def helper():\n    return 1\nx = helper()\n"

    main, helper = compile_subroutine("main", source)

    assert main.name == "main" and main.params == []
    assert len(main.body) == 2
    assert helper.name == "helper"
