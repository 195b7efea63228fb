from __future__ import annotations

import importlib.util

import pytest

if importlib.util.find_spec("hypothesis") is None:  # pragma: no cover
    pytest.skip("hypothesis not installed", allow_module_level=True)

from hypothesis import given, strategies as st

from shadowfuzz.state.arithmetic import (
    MAX_UINT256,
    UINT256_MOD,
    MirrorArithmeticError,
    UnderflowMode,
    add_u256,
    sub_u256,
)

u256 = st.integers(min_value=0, max_value=MAX_UINT256)


class TestUnderflowModeParse:
    def test_accepts_enum_and_strings(self):
        assert UnderflowMode.parse(UnderflowMode.WRAP) is UnderflowMode.WRAP
        assert UnderflowMode.parse("panic") is UnderflowMode.PANIC
        assert UnderflowMode.parse("  Saturate ") is UnderflowMode.SATURATE

    def test_rejects_unknown(self):
        with pytest.raises(ValueError, match="underflow mode"):
            UnderflowMode.parse("clamp")


class TestSub:
    def test_in_range(self):
        assert sub_u256(10, 3) == 7
        assert sub_u256(3, 3) == 0

    def test_panic(self):
        with pytest.raises(MirrorArithmeticError):
            sub_u256(3, 4, UnderflowMode.PANIC)

    def test_saturate(self):
        assert sub_u256(3, 4, UnderflowMode.SATURATE) == 0

    def test_wrap(self):
        assert sub_u256(3, 4, UnderflowMode.WRAP) == MAX_UINT256

    def test_negative_operand_rejected(self):
        with pytest.raises(ValueError):
            sub_u256(-1, 0)

    def test_bool_operand_rejected(self):
        with pytest.raises(TypeError):
            sub_u256(True, 0)


class TestAdd:
    def test_top_of_range(self):
        assert add_u256(MAX_UINT256 - 1, 1) == MAX_UINT256

    def test_panic(self):
        with pytest.raises(MirrorArithmeticError):
            add_u256(MAX_UINT256, 1)

    def test_saturate(self):
        assert add_u256(MAX_UINT256, 5, UnderflowMode.SATURATE) == MAX_UINT256

    def test_wrap(self):
        assert add_u256(MAX_UINT256, 2, UnderflowMode.WRAP) == 1


@given(a=u256, b=u256)
def test_wrap_matches_modular_arithmetic(a: int, b: int) -> None:
    assert add_u256(a, b, UnderflowMode.WRAP) == (a + b) % UINT256_MOD
    assert sub_u256(a, b, UnderflowMode.WRAP) == (a - b) % UINT256_MOD


@given(a=u256, b=u256)
def test_saturate_stays_in_range_and_is_monotone(a: int, b: int) -> None:
    s = add_u256(a, b, UnderflowMode.SATURATE)
    d = sub_u256(a, b, UnderflowMode.SATURATE)
    assert max(a, b) <= s <= MAX_UINT256
    assert 0 <= d <= a


@given(a=u256, b=u256)
def test_modes_agree_when_no_boundary_is_crossed(a: int, b: int) -> None:
    lo, hi = min(a, b), max(a, b)
    for mode in UnderflowMode:
        assert sub_u256(hi, lo, mode) == hi - lo
