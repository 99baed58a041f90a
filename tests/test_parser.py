"""Unit tests for the Blockly workspace loader."""

import pytest

from Blocksmith.transpile.ast import (
    IfBlock,
    ListRemoveIndex,
    NumberLiteral,
    ProcedureDef,
    ProcedureIfReturn,
    Repeat,
    TextJoin,
    TextLiteral,
    TextPrint,
    Variable,
    VariableGet,
    VariableSet,
)
from Blocksmith.transpile.emitter import emit
from Blocksmith.transpile.errors import WorkspaceParseError
from Blocksmith.transpile.parser import parse, parse_workspace


def number(value):
    return {"type": "math_number", "fields": {"NUM": value}}


def text(value):
    return {"type": "text", "fields": {"TEXT": value}}


def workspace(*blocks, variables=None):
    return {"blocks": {"languageVersion": 0, "blocks": list(blocks)}, "variables": variables or []}


def test_parser_reads_inputs_and_next_chain():
    doc = workspace(
        {
            "type": "variables_set",
            "fields": {"VAR": {"id": "v1"}},
            "inputs": {"VALUE": {"shadow": number(0), "block": number(5)}},
            "next": {
                "block": {"type": "text_print", "inputs": {"TEXT": {"shadow": text("hi")}}}
            },
        },
        variables=[{"id": "v1", "name": "score"}],
    )
    prog = parse_workspace(doc)

    assert len(prog.blocks) == 1
    stmt = prog.blocks[0]
    assert isinstance(stmt, VariableSet)
    assert stmt.var == "v1"
    assert stmt.value == NumberLiteral(value=5)
    assert isinstance(stmt.next, TextPrint)
    assert stmt.next.text == TextLiteral(text="hi")
    assert emit(prog) == "$score;\n\n\n$score = 5;\nprint('hi');\n"


def test_parser_reads_comments_and_enabled_flag():
    doc = workspace(
        {"type": "text_print", "icons": {"comment": {"text": "new style"}}, "enabled": False},
        {"type": "text_print", "comment": {"text": "old style"}},
        {"type": "text_print", "comment": "plain"},
    )
    first, second, third = parse_workspace(doc).blocks

    assert first.comment == "new style"
    assert first.disabled
    assert second.comment == "old style"
    assert not second.disabled
    assert third.comment == "plain"


def test_parser_keeps_ids():
    prog = parse_workspace(workspace({"type": "text_print", "id": "abc"}))
    assert prog.blocks[0].id == "abc"


def test_parser_sorts_top_level_blocks_by_position():
    doc = workspace(
        {"type": "text_print", "x": 0, "y": 100, "inputs": {"TEXT": {"block": text("second")}}},
        {"type": "text_print", "x": 50, "y": 10, "inputs": {"TEXT": {"block": text("first")}}},
    )
    prog = parse_workspace(doc)
    assert [b.text.text for b in prog.blocks] == ["first", "second"]


def test_parser_if_with_mutation():
    doc = workspace(
        {
            "type": "controls_if",
            "extraState": {"elseIfCount": 1, "hasElse": True},
            "inputs": {
                "IF0": {"block": {"type": "logic_boolean", "fields": {"BOOL": "TRUE"}}},
                "DO0": {"block": {"type": "text_print"}},
                "ELSE": {"block": {"type": "text_print"}},
            },
        }
    )
    block = parse_workspace(doc).blocks[0]

    assert isinstance(block, IfBlock)
    assert len(block.branches) == 2
    assert block.branches[0].condition.value is True
    assert block.branches[1].condition is None
    assert block.branches[1].body is None
    assert block.has_else
    assert isinstance(block.else_body, TextPrint)


def test_parser_text_join_keeps_empty_slots():
    doc = workspace(
        {
            "type": "text_print",
            "inputs": {
                "TEXT": {
                    "block": {
                        "type": "text_join",
                        "extraState": {"itemCount": 3},
                        "inputs": {"ADD0": {"block": text("a")}, "ADD2": {"block": text("c")}},
                    }
                }
            },
        }
    )
    join = parse_workspace(doc).blocks[0].text

    assert isinstance(join, TextJoin)
    assert join.items == [TextLiteral(text="a"), None, TextLiteral(text="c")]


def test_parser_registers_legacy_variable_names():
    doc = workspace(
        {
            "type": "text_print",
            "inputs": {"TEXT": {"block": {"type": "variables_get", "fields": {"VAR": "x"}}}},
        }
    )
    prog = parse_workspace(doc)

    assert prog.blocks[0].text == VariableGet(var="x")
    assert prog.variables == [Variable(id="x", name="x")]


def test_parser_procedure_definition():
    doc = workspace(
        {
            "type": "procedures_defreturn",
            "fields": {"NAME": "double"},
            "extraState": {"params": [{"name": "n", "id": "p1"}]},
            "inputs": {
                "STACK": {
                    "block": {
                        "type": "procedures_ifreturn",
                        "extraState": '<mutation value="0"></mutation>',
                    }
                },
                "RETURN": {"block": number(2)},
            },
        },
        variables=[{"id": "p1", "name": "n"}],
    )
    proc = parse_workspace(doc).blocks[0]

    assert isinstance(proc, ProcedureDef)
    assert proc.name == "double"
    assert proc.params == ["p1"]
    assert proc.has_return
    assert proc.return_value == NumberLiteral(value=2)
    assert isinstance(proc.body, ProcedureIfReturn)
    assert not proc.body.has_return_value


def test_parser_list_remove_is_a_statement():
    doc = workspace(
        {
            "type": "lists_getIndex",
            "fields": {"MODE": "REMOVE", "WHERE": "FIRST"},
            "inputs": {"VALUE": {"block": {"type": "variables_get", "fields": {"VAR": "l"}}}},
        }
    )
    block = parse_workspace(doc).blocks[0]

    assert isinstance(block, ListRemoveIndex)
    assert block.where == "FIRST"
    assert "array_shift($l);" in emit(parse_workspace(doc))


def test_parser_repeat_field_form():
    prog = parse_workspace(workspace({"type": "controls_repeat", "fields": {"TIMES": "3"}}))
    block = prog.blocks[0]

    assert isinstance(block, Repeat)
    assert block.times == NumberLiteral(value=3)
    assert isinstance(block.times.value, int)


def test_parser_parses_json_text():
    prog = parse('{"blocks": {"blocks": [{"type": "text_print"}]}}')
    assert isinstance(prog.blocks[0], TextPrint)


@pytest.mark.parametrize(
    "doc",
    [
        workspace({"type": "robot_dance"}),
        workspace({"type": "text_print", "inputs": {"TEXT": {"block": number("abc")}}}),
        workspace({"type": "controls_repeat_ext", "inputs": {"DO": {"block": number(1)}}}),
        workspace({"type": "text_print", "inputs": {"TEXT": {"block": {"type": "text_print"}}}}),
        workspace({"type": "math_number", "next": {"block": {"type": "text_print"}}}),
        {"blocks": {"blocks": [{"type": "text_print"}]}, "variables": [{"name": "no id"}]},
        [],
    ],
)
def test_parser_rejects_malformed_workspaces(doc):
    with pytest.raises(WorkspaceParseError):
        parse_workspace(doc)


def test_parser_rejects_invalid_json():
    with pytest.raises(WorkspaceParseError):
        parse("{not json")
    with pytest.raises(ValueError):
        parse("")


def test_parser_treats_null_position_as_origin():
    doc = workspace(
        {"type": "text_print", "y": 5, "inputs": {"TEXT": {"block": text("second")}}},
        {"type": "text_print", "y": None, "x": None, "inputs": {"TEXT": {"block": text("first")}}},
    )
    prog = parse_workspace(doc)
    assert [b.text.text for b in prog.blocks] == ["first", "second"]


def test_parser_rejects_non_numeric_positions():
    doc = workspace({"type": "text_print", "y": "top"}, {"type": "text_print", "y": 5})
    with pytest.raises(WorkspaceParseError):
        parse_workspace(doc)
