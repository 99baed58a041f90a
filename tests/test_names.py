"""Unit tests for identifier sanitising and the naming database."""

from __future__ import annotations

import pytest

from Blocksmith.transpile.errors import NameExhaustedError
from Blocksmith.transpile.names import PROCEDURE, VARIABLE, NameDB, safe_name


def test_safe_name_rules() -> None:
    assert safe_name("") == "unnamed"
    assert safe_name("my var") == "my_var"
    assert safe_name("2d") == "my_2d"
    assert safe_name("a-b") == "a_b"
    assert safe_name("héllo") == "h_C3_A9llo"


def test_variables_get_prefix_and_stay_stable() -> None:
    db = NameDB()
    assert db.get_name("foo", VARIABLE) == "$foo"
    assert db.get_name("foo", VARIABLE) == "$foo"
    assert db.get_name("Foo", VARIABLE) == "$foo"


def test_procedures_have_no_prefix() -> None:
    db = NameDB()
    assert db.get_name("doIt", PROCEDURE) == "doIt"


def test_variable_ids_resolve_through_map() -> None:
    db = NameDB()
    db.set_variable_map({"id-1": "count"})
    assert db.get_name("id-1", VARIABLE) == "$count"


def test_distinct_names_get_numeric_suffixes() -> None:
    db = NameDB()
    assert db.get_distinct_name("x", VARIABLE) == "$x"
    assert db.get_distinct_name("x", VARIABLE) == "$x2"
    assert db.get_distinct_name("x", PROCEDURE) == "x3"


def test_reserved_words_are_never_produced() -> None:
    db = NameDB()
    assert db.get_distinct_name("for", PROCEDURE) == "for2"
    assert db.get_name("echo", VARIABLE) == "$echo2"


def test_reset_forgets_names() -> None:
    db = NameDB()
    db.get_distinct_name("x", VARIABLE)
    db.reset()
    assert db.get_distinct_name("x", VARIABLE) == "$x"


def test_exhausted_suffixes_raise() -> None:
    db = NameDB(max_suffix=3)
    for _ in range(3):
        db.get_distinct_name("x", VARIABLE)
    with pytest.raises(NameExhaustedError):
        db.get_distinct_name("x", VARIABLE)


def test_unknown_category_raises() -> None:
    with pytest.raises(NameExhaustedError):
        NameDB().get_name("x", "MACRO")
