"""Unit tests for the generation driver: chaining, comments and the session lifecycle."""

from __future__ import annotations

import pytest

from Blocksmith.transpile.ast import (
    Arithmetic,
    Block,
    BooleanLiteral,
    Compare,
    ConditionalBranch,
    IfBlock,
    NumberLiteral,
    Program,
    TextLength,
    TextLiteral,
    TextPrint,
    VariableGet,
    VariableSet,
    WhileUntil,
)
from Blocksmith.transpile.emitter import PhpEmitter
from Blocksmith.transpile.errors import (
    GenerationError,
    SessionClosedError,
    UnsupportedConstructError,
)
from Blocksmith.transpile.generator import Generator, GeneratorOptions
from Blocksmith.transpile.precedence import Order


def test_missing_value_renders_empty(emitter) -> None:
    assert emitter.value_to_code(None, Order.NONE) == ""


def test_value_is_grouped_for_outer_context(emitter) -> None:
    total = Arithmetic(op="ADD", a=VariableGet(var="a"), b=NumberLiteral(value=1))
    assert emitter.value_to_code(total, Order.MULTIPLICATION) == "($a + 1)"
    assert emitter.value_to_code(total, Order.NONE) == "$a + 1"


def test_statements_chain_through_next(emitter) -> None:
    stmt = VariableSet(
        var="x",
        value=NumberLiteral(value=1),
        next=TextPrint(text=TextLiteral(text="hi")),
    )
    assert emitter.block_to_code(stmt) == "$x = 1;\nprint('hi');\n"
    assert emitter.block_to_code(stmt, this_only=True) == "$x = 1;\n"


def test_disabled_block_passes_to_next(emitter) -> None:
    stmt = VariableSet(
        var="x",
        value=NumberLiteral(value=1),
        disabled=True,
        next=TextPrint(text=TextLiteral(text="hi")),
    )
    assert emitter.block_to_code(stmt) == "print('hi');\n"
    assert emitter.block_to_code(stmt, this_only=True) == ""


def test_disabled_value_is_missing(emitter) -> None:
    value = NumberLiteral(value=3, disabled=True)
    assert emitter.value_to_code(value, Order.NONE) == ""


def test_statement_comment_is_prefixed(emitter) -> None:
    stmt = VariableSet(var="x", value=NumberLiteral(value=1), comment="Set x")
    assert emitter.block_to_code(stmt) == "// Set x\n$x = 1;\n"


def test_value_comments_hoist_to_statement(emitter) -> None:
    value = Arithmetic(
        op="ADD",
        a=NumberLiteral(value=1, comment="one"),
        b=NumberLiteral(value=2, comment="two"),
    )
    stmt = VariableSet(var="x", value=value)
    assert emitter.block_to_code(stmt) == "// one\n// two\n$x = 1 + 2;\n"


def test_nested_statement_comments_stay_in_place(emitter) -> None:
    stmt = IfBlock(
        branches=[
            ConditionalBranch(
                condition=BooleanLiteral(value=True),
                body=TextPrint(text=TextLiteral(text="a"), comment="inside"),
            )
        ]
    )
    assert emitter.block_to_code(stmt) == "if (true) {\n  // inside\n  print('a');\n}\n"


def test_long_comments_wrap(emitter) -> None:
    stmt = TextPrint(text=TextLiteral(text="a"), comment="word " * 30)
    lines = emitter.block_to_code(stmt).splitlines()
    comment_lines = [line for line in lines if line.startswith("// ")]
    assert len(comment_lines) > 1
    assert all(len(line) <= 60 for line in comment_lines)


def test_all_nested_comments_order() -> None:
    value = Arithmetic(
        op="ADD",
        a=NumberLiteral(value=1, comment="one"),
        b=NumberLiteral(value=2, comment="two"),
        comment="sum",
    )
    assert Generator.all_nested_comments(value) == "sum\none\ntwo\n"
    assert Generator.all_nested_comments(NumberLiteral(value=1)) == ""


def test_prefix_lines_keeps_trailing_newline() -> None:
    assert Generator.prefix_lines("a\nb\n", "  ") == "  a\n  b\n"
    assert Generator.prefix_lines("a\nb", "> ") == "> a\n> b"


def test_naked_value_is_terminated() -> None:
    program = Program(
        blocks=[Arithmetic(op="ADD", a=NumberLiteral(value=1), b=NumberLiteral(value=2))]
    )
    assert PhpEmitter().workspace_to_code(program) == "1 + 2;\n"


def test_statement_used_as_value_is_rejected(emitter) -> None:
    with pytest.raises(GenerationError):
        emitter.value_to_code(TextPrint(text=TextLiteral(text="a")), Order.NONE)


def test_unknown_construct_is_rejected(emitter) -> None:
    with pytest.raises(UnsupportedConstructError):
        emitter.block_to_code(Block())


def test_bad_mode_names_construct(emitter) -> None:
    with pytest.raises(UnsupportedConstructError, match="Compare"):
        emitter.value_to_code(Compare(op="XOR"), Order.NONE)


def test_session_required_outside_pass() -> None:
    gen = PhpEmitter()
    with pytest.raises(SessionClosedError):
        gen.session
    gen.workspace_to_code(Program())
    with pytest.raises(SessionClosedError):
        gen.provide_function("x", ["{__blocksmith_function_name__}"])


def test_init_discards_previous_session() -> None:
    gen = PhpEmitter()
    gen.init(Program())
    gen.session.add_definition("stale", "// stale")
    gen.init(Program())
    assert gen.finish("done\n") == "\n\n\ndone\n"


def test_get_adjusted_one_based(emitter) -> None:
    assert emitter.get_adjusted(NumberLiteral(value=3)) == "2"
    assert emitter.get_adjusted(None) == "0"
    assert emitter.get_adjusted(VariableGet(var="i")) == "$i - 1"
    assert emitter.get_adjusted(VariableGet(var="i"), order=Order.MULTIPLICATION) == "($i - 1)"


def test_get_adjusted_groups_compound_base(emitter) -> None:
    total = Arithmetic(op="ADD", a=VariableGet(var="i"), b=VariableGet(var="j"))
    assert emitter.get_adjusted(total) == "($i + $j) - 1"


def test_get_adjusted_zero_based(zero_based) -> None:
    assert zero_based.get_adjusted(VariableGet(var="i")) == "$i"
    assert zero_based.get_adjusted(NumberLiteral(value=3)) == "3"
    assert zero_based.get_adjusted(VariableGet(var="i"), 1, True) == "-($i + 1)"


def test_loop_trap_is_injected() -> None:
    gen = PhpEmitter(GeneratorOptions(infinite_loop_trap="trap(%1);\n"))
    program = Program(blocks=[WhileUntil(condition=BooleanLiteral(value=True), id="abc")])
    assert gen.workspace_to_code(program) == "while (true) {\n  trap('abc');\n}\n"


@pytest.mark.parametrize(
    "options",
    [
        {"indent": "ab"},
        {"indent": ""},
        {"comment_wrap": 5},
        {"max_name_suffix": 0},
    ],
)
def test_invalid_options_are_rejected(options) -> None:
    with pytest.raises(ValueError):
        GeneratorOptions(**options).validate()
    with pytest.raises(ValueError):
        PhpEmitter(GeneratorOptions(**options))


def test_helpers_are_redefined_in_each_pass() -> None:
    gen = PhpEmitter()
    program = Program(blocks=[TextPrint(text=TextLength(value=TextLiteral(text="a")))])
    for _ in range(2):
        code = gen.workspace_to_code(program)
        assert code.count("function length($value) {") == 1
        assert "length2" not in code
        assert "print(length('a'));" in code


def test_statement_prefix_and_suffix() -> None:
    gen = PhpEmitter(
        GeneratorOptions(statement_prefix="trace(%1);\n", statement_suffix="done(%1);\n")
    )
    program = Program(blocks=[TextPrint(text=TextLiteral(text="a"), id="p")])
    assert gen.workspace_to_code(program) == "trace('p');\nprint('a');\ndone('p');\n"
