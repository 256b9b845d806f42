"""Tests for kdeploy.core.structured module."""

from __future__ import annotations

from kdeploy.core.structured import (
    as_obj_list,
    as_str_dict,
    get_bool,
    get_int,
    get_str,
    get_str_list,
    get_table,
)


def test_as_str_dict() -> None:
    assert as_str_dict({"a": 1}) == {"a": 1}
    assert as_str_dict({1: "a"}) is None
    assert as_str_dict([1]) is None


def test_as_obj_list() -> None:
    assert as_obj_list([1, "a"]) == [1, "a"]
    assert as_obj_list("abc") is None


def test_get_str_strips_and_rejects_empty() -> None:
    table = {"a": "  x ", "b": "   ", "c": 3}
    assert get_str(table, "a") == "x"
    assert get_str(table, "b") is None
    assert get_str(table, "c") is None


def test_get_int_rejects_bool() -> None:
    assert get_int({"n": 4}, "n") == 4
    assert get_int({"n": True}, "n") is None


def test_get_bool() -> None:
    assert get_bool({"f": False}, "f") is False
    assert get_bool({"f": "false"}, "f") is None


def test_get_table() -> None:
    assert get_table({"t": {"k": 1}}, "t") == {"k": 1}
    assert get_table({"t": 1}, "t") is None


def test_get_str_list() -> None:
    assert get_str_list({"l": ["a", "b"]}, "l") == ["a", "b"]
    assert get_str_list({"l": ["a", 1]}, "l") is None
    assert get_str_list({}, "l") is None
