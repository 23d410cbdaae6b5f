"""Tests for relkit.core.result module."""

from __future__ import annotations

import pytest

from relkit.core.result import Err, Ok, Result, is_err, is_ok


class TestOk:
    def test_accessors(self) -> None:
        result = Ok(3)
        assert result.is_ok()
        assert not result.is_err()
        assert result.unwrap() == 3
        assert result.unwrap_or(0) == 3

    def test_map_transforms_value(self) -> None:
        assert Ok(2).map(lambda v: v * 10) == Ok(20)

    def test_map_err_is_noop(self) -> None:
        ok: Ok[int] = Ok(1)
        assert ok.map_err(lambda e: f"wrapped {e}") is ok

    def test_frozen(self) -> None:
        result = Ok(1)
        with pytest.raises(AttributeError):
            result.value = 2  # type: ignore[misc]


class TestErr:
    def test_accessors(self) -> None:
        result = Err("boom")
        assert result.is_err()
        assert not result.is_ok()
        assert result.unwrap_or(7) == 7

    def test_unwrap_raises(self) -> None:
        with pytest.raises(ValueError, match="boom"):
            Err("boom").unwrap()

    def test_map_is_noop(self) -> None:
        err: Err[str] = Err("x")
        assert err.map(lambda v: v) is err

    def test_map_err_transforms_error(self) -> None:
        assert Err("x").map_err(str.upper) == Err("X")


def _divide(a: int, b: int) -> Result[int, str]:
    if b == 0:
        return Err("division by zero")
    return Ok(a // b)


def test_pattern_matching() -> None:
    match _divide(6, 3):
        case Ok(value):
            assert value == 2
        case Err(_):
            pytest.fail("expected Ok")

    match _divide(1, 0):
        case Ok(_):
            pytest.fail("expected Err")
        case Err(error):
            assert error == "division by zero"


def test_type_guards() -> None:
    assert is_ok(_divide(4, 2))
    assert is_err(_divide(4, 0))
