"""Unit tests for the helper registry and the session lifecycle."""

from __future__ import annotations

import pytest

from Blocksmith.transpile.errors import HelperTemplateError, SessionClosedError
from Blocksmith.transpile.names import PROCEDURE, NameDB
from Blocksmith.transpile.session import FUNCTION_NAME_PLACEHOLDER, Session

IDENTITY = [
    "function " + FUNCTION_NAME_PLACEHOLDER + "($v) {",
    "  return $v;",
    "}",
]


def test_helper_is_defined_once() -> None:
    session = Session(NameDB())
    first = session.provide_function("identity", IDENTITY)
    second = session.provide_function("identity", ["ignored " + FUNCTION_NAME_PLACEHOLDER])
    assert first == second == "identity"
    assert list(session.definitions) == ["identity"]
    assert session.definitions["identity"] == "function identity($v) {\n  return $v;\n}"


def test_helper_avoids_user_names() -> None:
    db = NameDB()
    db.get_name("identity", PROCEDURE)
    session = Session(db)
    assert session.provide_function("identity", IDENTITY) == "identity2"
    assert session.definitions["identity"].startswith("function identity2(")


def test_helper_without_placeholder_is_rejected() -> None:
    session = Session(NameDB())
    with pytest.raises(HelperTemplateError):
        session.provide_function("broken", ["function broken() {}"])


def test_helper_body_follows_indent() -> None:
    session = Session(NameDB(), indent="\t")
    session.provide_function(
        "nested",
        [
            "function " + FUNCTION_NAME_PLACEHOLDER + "() {",
            "  if (true) {",
            "    return 1;",
            "  }",
            "}",
        ],
    )
    assert session.definitions["nested"] == "function nested() {\n\tif (true) {\n\t\treturn 1;\n\t}\n}"


def test_finish_layout_and_close() -> None:
    db = NameDB()
    session = Session(db)
    session.add_definition("variables", "$x;")
    session.provide_function("identity", IDENTITY)
    code = session.finish("print($x);\n")
    assert code == (
        "$x;\n\n"
        "function identity($v) {\n  return $v;\n}"
        "\n\n\n"
        "print($x);\n"
    )
    assert session.closed
    assert db.get_distinct_name("identity", PROCEDURE) == "identity"


def test_closed_session_rejects_use() -> None:
    session = Session(NameDB())
    session.finish("")
    with pytest.raises(SessionClosedError):
        session.add_definition("x", "y")
    with pytest.raises(SessionClosedError):
        session.provide_function("identity", IDENTITY)
    with pytest.raises(SessionClosedError):
        session.finish("")
