"""
Explicit 256-bit arithmetic for mirror updates.

The mirror tracks amounts that the ledger stores as uint256. When a policy
applies an update without screening its inputs first, the mirror can be asked
to subtract more than a cell holds (or add past the top of the range). What
happens then is a choice, not an accident of the host platform:

- PANIC: raise `MirrorArithmeticError` (default),
- SATURATE: clamp to 0 / MAX_UINT256,
- WRAP: reduce modulo 2**256 (unchecked uint256 semantics).
"""

from __future__ import annotations

from enum import Enum, unique


UINT256_MOD = 1 << 256
MAX_UINT256 = UINT256_MOD - 1


class MirrorArithmeticError(ArithmeticError):
    """Raised when a PANIC-mode mirror update leaves the uint256 range."""


@unique
class UnderflowMode(Enum):
    PANIC = "panic"
    SATURATE = "saturate"
    WRAP = "wrap"

    @classmethod
    def parse(cls, value: "UnderflowMode | str") -> "UnderflowMode":
        if isinstance(value, UnderflowMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(m.value for m in cls)
            raise ValueError(f"underflow mode must be one of: {choices} (got {value!r})") from exc


def _require_amount(value: int, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    return int(value)


def add_u256(a: int, b: int, mode: UnderflowMode = UnderflowMode.PANIC) -> int:
    """Return a + b under `mode`."""
    a = _require_amount(a, name="a")
    b = _require_amount(b, name="b")
    out = a + b
    if out <= MAX_UINT256:
        return out
    if mode is UnderflowMode.PANIC:
        raise MirrorArithmeticError(f"uint256 overflow: {a} + {b}")
    if mode is UnderflowMode.SATURATE:
        return MAX_UINT256
    return out % UINT256_MOD


def sub_u256(a: int, b: int, mode: UnderflowMode = UnderflowMode.PANIC) -> int:
    """Return a - b under `mode`."""
    a = _require_amount(a, name="a")
    b = _require_amount(b, name="b")
    if b <= a:
        return a - b
    if mode is UnderflowMode.PANIC:
        raise MirrorArithmeticError(f"uint256 underflow: {a} - {b}")
    if mode is UnderflowMode.SATURATE:
        return 0
    return (a - b) % UINT256_MOD
