"""Integer arithmetic with overflow detection at fixed C integer widths.

Each operation returns the wrapped result of the fixed-width operation.
When the source rules flag an overflow, the operation raises
:class:`CheckIntOverflowError` instead. The wrapped result is kept on
the exception. The 64-bit operations and all divisions take the
signedness of each operand, because the overflow rules depend on it.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Tuple


class Signedness(enum.Enum):
    """Whether an operand is a signed or an unsigned integer."""

    SIGNED = "signed"
    UNSIGNED = "unsigned"


class CheckIntOverflowError(ArithmeticError):
    """Raised when a checked operation overflows; ``result`` holds the wrapped value."""

    def __init__(self, result: int) -> None:
        super().__init__(f"integer overflow (wrapped result {result})")
        self.result = result


@dataclass(frozen=True)
class _Width:
    bits: int

    @property
    def smin(self) -> int:
        return -(1 << (self.bits - 1))

    @property
    def smax(self) -> int:
        return (1 << (self.bits - 1)) - 1

    @property
    def umax(self) -> int:
        return (1 << self.bits) - 1

    def signed(self, value: int) -> int:
        value &= self.umax
        return value - (1 << self.bits) if value > self.smax else value

    def unsigned(self, value: int) -> int:
        return value & self.umax

    def bounds(self, kind: Signedness) -> Tuple[int, int]:
        if kind is Signedness.SIGNED:
            return self.smin, self.smax
        return 0, self.umax


_W32 = _Width(32)
_W64 = _Width(64)

_S = Signedness.SIGNED
_U = Signedness.UNSIGNED

_HIGH_WORD = 0xFFFFFFFF00000000

_Result = Tuple[int, bool]
_Op = Callable[[int, int], _Result]


def _s64(value: int) -> int:
    return _W64.signed(value)


def _u64(value: int) -> int:
    return _W64.unsigned(value)


def _cdiv(a: int, b: int) -> int:
    """Divide truncating toward zero, as C does."""
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def _finish(value: int, overflow: bool) -> int:
    if overflow:
        raise CheckIntOverflowError(value)
    return value


def _kind(kind) -> Signedness:
    try:
        return Signedness(kind)
    except ValueError:
        raise TypeError(f"unsupported operand kind: {kind!r}") from None


def _check_operand(value, width: _Width, kind: Signedness, name: str) -> None:
    if not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, not {type(value).__name__}")
    low, high = width.bounds(kind)
    if not low <= value <= high:
        raise ValueError(f"{name}={value} does not fit a {width.bits}-bit {kind.value} integer")


def _out_of_int32(value: int) -> bool:
    return not _W32.smin <= value <= _W32.smax


# --- 64-bit addition -------------------------------------------------------

def _i64_add_ss(x: int, y: int) -> _Result:
    return _s64(x + y), not _W64.smin <= x + y <= _W64.smax


def _i64_add_su(x: int, y: int) -> _Result:
    return _s64(x + y), _s64(_W64.smax - y) < x


def _i64_add_us(x: int, y: int) -> _Result:
    return _i64_add_su(y, x)


def _i64_add_uu(x: int, y: int) -> _Result:
    diff = _s64(_W64.smax - y)
    return _s64(x + y), diff < 0 or diff < x


def _u64_add_uu(x: int, y: int) -> _Result:
    return _u64(x + y), _W64.umax - y < x


def _u64_add_ss(x: int, y: int) -> _Result:
    total = x + y
    mixed = (x < 0 <= y) or (y < 0 <= x)
    overflow = (mixed and _s64(total) < 0) or (x < 0 and y < 0)
    return _u64(total), overflow


def _u64_add_su(x: int, y: int) -> _Result:
    if x > 0:
        return _u64_add_uu(x, y)
    return _u64(x + y), y < _W64.smax + 1 and _s64(x + y) < 0


def _u64_add_us(x: int, y: int) -> _Result:
    return _u64_add_su(y, x)


# --- 64-bit subtraction ----------------------------------------------------

def _i64_sub_ss(x: int, y: int) -> _Result:
    return _s64(x - y), not _W64.smin <= x - y <= _W64.smax


def _i64_sub_su(x: int, y: int) -> _Result:
    return _s64(x - y), x < _s64(_W64.smin + y)


def _i64_sub_us(x: int, y: int) -> _Result:
    return _s64(x - y), x > _u64(_W64.smax + y) or y == _W64.smin


def _i64_sub_uu(x: int, y: int) -> _Result:
    return _s64(x - y), not _W64.smin <= x - y <= _W64.smax


def _u64_sub_ss(x: int, y: int) -> _Result:
    diff = x - y
    same_direction = (x < 0 and y <= 0) or (x >= 0 and y > 0)
    overflow = (same_direction and _s64(diff) < 0) or (x < 0 < y)
    return _u64(diff), overflow


def _u64_sub_su(x: int, y: int) -> _Result:
    return _u64(x - y), y > _W64.smax + 1 or _s64(y) > x


def _u64_sub_us(x: int, y: int) -> _Result:
    if x <= _W64.smax:
        return _u64_sub_ss(x, y)
    overflow = y == _W64.smin or _u64(-y) > _W64.umax - x
    return _u64(x - y), overflow


def _u64_sub_uu(x: int, y: int) -> _Result:
    return _u64(x - y), x < y


# --- 64-bit multiplication -------------------------------------------------

def _i64_mul_ss(x: int, y: int) -> _Result:
    if x == 0 or y == 0:
        return 0, False
    if (x < 0) == (y < 0):
        if x > 0:
            overflow = _W64.smax // x < y
        else:
            overflow = (
                x == _W64.smin
                or y == _W64.smin
                or _cdiv(_W64.smax, _s64(-x)) < _s64(-y)
            )
    elif x < 0:
        overflow = x < _cdiv(_W64.smin, y)
    else:
        overflow = y < _cdiv(_W64.smin, x)
    return _s64(x * y), overflow


def _u64_mul_uu(x: int, y: int) -> _Result:
    if x == 0:
        return 0, False
    return _u64(x * y), _W64.umax // x < y


def _i64_mul_uu(x: int, y: int) -> _Result:
    if x == 0:
        return 0, False
    return _s64(x * y), _W64.smax // x < y


def _i64_mul_su(x: int, y: int) -> _Result:
    if y == 0:
        return 0, False
    if x >= 0:
        return _i64_mul_uu(x, y)
    # The bounds are computed unsigned, so a negative x always trips them.
    ux = _u64(x)
    overflow = ux < (_W64.smax + 1) // y or ux > _W64.smax // y
    return _s64(x * y), overflow


def _i64_mul_us(x: int, y: int) -> _Result:
    return _i64_mul_su(y, x)


def _u64_mul_ss(x: int, y: int) -> _Result:
    if (x < 0 < y) or (y < 0 < x):
        return _u64(x * y), True
    if x > 0 and y > 0:
        return _u64_mul_uu(x, y)
    return _u64_mul_uu(_u64(-x), _u64(-y))


def _u64_mul_su(x: int, y: int) -> _Result:
    if x >= 0:
        return _u64_mul_uu(x, y)
    return _u64(x * y), True


def _u64_mul_us(x: int, y: int) -> _Result:
    return _u64_mul_su(y, x)


# --- division, shared by both widths ---------------------------------------

def _sdiv_ss(w: _Width, x: int, y: int) -> _Result:
    if x == w.smin and y == -1:
        return 0, True
    return _cdiv(x, y), False


def _sdiv_su(w: _Width, x: int, y: int) -> _Result:
    if y <= w.smax:
        return _cdiv(x, y), False
    return 0, False


def _sdiv_us(w: _Width, x: int, y: int) -> _Result:
    if x == w.smax + 1 and y == -1:
        return w.smin, False
    overflow = (x > w.smax + 1 and y == -1) or (x > w.smax and y == 1)
    if x <= w.smax:
        return _cdiv(x, y), overflow
    if y > 0:
        return w.signed(x // y), overflow
    return w.signed(-(x // w.unsigned(-y))), overflow


def _sdiv_uu(w: _Width, x: int, y: int) -> _Result:
    quotient = x // y
    return w.signed(quotient), quotient > w.smax


def _udiv_ss(w: _Width, x: int, y: int) -> _Result:
    quotient = _cdiv(x, y)
    if x == w.smin and y == -1:
        return w.smax + 1, False
    overflow = quotient < 0
    if x >= 0 and y > 0:
        value = x // y
    elif x < 0 < y:
        value = -(w.unsigned(-x) // y)
    elif y < 0 < x:
        value = -(x // w.unsigned(-y))
    else:
        value = w.unsigned(-x) // w.unsigned(-y)
    return w.unsigned(value), overflow


def _udiv_su(w: _Width, x: int, y: int) -> _Result:
    overflow = x < 0 and w.unsigned(-x) >= y
    value = x // y if x >= 0 else -(w.unsigned(-x) // y)
    return w.unsigned(value), overflow


def _udiv_us(w: _Width, x: int, y: int) -> _Result:
    overflow = y < 0 and w.unsigned(-y) <= x
    value = x // y if y > 0 else -(x // w.unsigned(-y))
    return w.unsigned(value), overflow


def _udiv_uu(w: _Width, x: int, y: int) -> _Result:
    return x // y, False


_Table = Dict[Tuple[Signedness, Signedness], _Op]


def _table(ss: _Op, su: _Op, us: _Op, uu: _Op) -> _Table:
    return {(_S, _S): ss, (_S, _U): su, (_U, _S): us, (_U, _U): uu}


def _div_table(w: _Width, ss, su, us, uu) -> _Table:
    return _table(partial(ss, w), partial(su, w), partial(us, w), partial(uu, w))


_INT64_ADD = _table(_i64_add_ss, _i64_add_su, _i64_add_us, _i64_add_uu)
_UINT64_ADD = _table(_u64_add_ss, _u64_add_su, _u64_add_us, _u64_add_uu)
_INT64_SUB = _table(_i64_sub_ss, _i64_sub_su, _i64_sub_us, _i64_sub_uu)
_UINT64_SUB = _table(_u64_sub_ss, _u64_sub_su, _u64_sub_us, _u64_sub_uu)
_INT64_MUL = _table(_i64_mul_ss, _i64_mul_su, _i64_mul_us, _i64_mul_uu)
_UINT64_MUL = _table(_u64_mul_ss, _u64_mul_su, _u64_mul_us, _u64_mul_uu)
_INT32_DIV = _div_table(_W32, _sdiv_ss, _sdiv_su, _sdiv_us, _sdiv_uu)
_UINT32_DIV = _div_table(_W32, _udiv_ss, _udiv_su, _udiv_us, _udiv_uu)
_INT64_DIV = _div_table(_W64, _sdiv_ss, _sdiv_su, _sdiv_us, _sdiv_uu)
_UINT64_DIV = _div_table(_W64, _udiv_ss, _udiv_su, _udiv_us, _udiv_uu)


def _apply(table: _Table, width: _Width, x, y, x_kind, y_kind) -> int:
    xk, yk = _kind(x_kind), _kind(y_kind)
    _check_operand(x, width, xk, "x")
    _check_operand(y, width, yk, "y")
    value, overflow = table[(xk, yk)](x, y)
    return _finish(value, overflow)


def _narrow_operands(x, y) -> None:
    _check_operand(x, _W64, _S, "x")
    _check_operand(y, _W64, _S, "y")


def _narrow_signed(x: int, y: int, z: int) -> int:
    overflow = _out_of_int32(x) or _out_of_int32(y) or _out_of_int32(z)
    return _finish(_W32.signed(z), overflow)


def _narrow_unsigned(x: int, y: int, z: int) -> int:
    overflow = bool(x & _HIGH_WORD) or bool(y & _HIGH_WORD) or not 0 <= z <= _W32.umax
    return _finish(_W32.unsigned(z), overflow)


def check_int32_add(x: int, y: int) -> int:
    """Add two values as a 32-bit signed result."""
    _narrow_operands(x, y)
    return _narrow_signed(x, y, _s64(x + y))


def check_uint32_add(x: int, y: int) -> int:
    """Add two values as a 32-bit unsigned result."""
    _narrow_operands(x, y)
    return _narrow_unsigned(x, y, _s64(x + y))


def check_int32_sub(x: int, y: int) -> int:
    """Subtract two values as a 32-bit signed result."""
    _narrow_operands(x, y)
    return _narrow_signed(x, y, _s64(x - y))


def check_uint32_sub(x: int, y: int) -> int:
    """Subtract two values as a 32-bit unsigned result."""
    _narrow_operands(x, y)
    return _narrow_unsigned(x, y, _s64(x - y))


def check_int32_mul(x: int, y: int) -> int:
    """Multiply two values as a 32-bit signed result."""
    _narrow_operands(x, y)
    return _narrow_signed(x, y, _s64(x * y))


def check_uint32_mul(x: int, y: int) -> int:
    """Multiply two values as a 32-bit unsigned result."""
    _narrow_operands(x, y)
    return _narrow_unsigned(x, y, _s64(x * y))


def check_int64_add(x: int, y: int, x_kind=_S, y_kind=_S) -> int:
    """Add two 64-bit operands to a 64-bit signed result."""
    return _apply(_INT64_ADD, _W64, x, y, x_kind, y_kind)


def check_uint64_add(x: int, y: int, x_kind=_S, y_kind=_S) -> int:
    """Add two 64-bit operands to a 64-bit unsigned result."""
    return _apply(_UINT64_ADD, _W64, x, y, x_kind, y_kind)


def check_int64_sub(x: int, y: int, x_kind=_S, y_kind=_S) -> int:
    """Subtract two 64-bit operands to a 64-bit signed result."""
    return _apply(_INT64_SUB, _W64, x, y, x_kind, y_kind)


def check_uint64_sub(x: int, y: int, x_kind=_S, y_kind=_S) -> int:
    """Subtract two 64-bit operands to a 64-bit unsigned result."""
    return _apply(_UINT64_SUB, _W64, x, y, x_kind, y_kind)


def check_int64_mul(x: int, y: int, x_kind=_S, y_kind=_S) -> int:
    """Multiply two 64-bit operands to a 64-bit signed result."""
    return _apply(_INT64_MUL, _W64, x, y, x_kind, y_kind)


def check_uint64_mul(x: int, y: int, x_kind=_S, y_kind=_S) -> int:
    """Multiply two 64-bit operands to a 64-bit unsigned result."""
    return _apply(_UINT64_MUL, _W64, x, y, x_kind, y_kind)


def check_int32_div(x: int, y: int, x_kind=_S, y_kind=_S) -> int:
    """Divide two 32-bit operands, truncating, to a 32-bit signed result."""
    return _apply(_INT32_DIV, _W32, x, y, x_kind, y_kind)


def check_uint32_div(x: int, y: int, x_kind=_S, y_kind=_S) -> int:
    """Divide two 32-bit operands, truncating, to a 32-bit unsigned result."""
    return _apply(_UINT32_DIV, _W32, x, y, x_kind, y_kind)


def check_int64_div(x: int, y: int, x_kind=_S, y_kind=_S) -> int:
    """Divide two 64-bit operands, truncating, to a 64-bit signed result."""
    return _apply(_INT64_DIV, _W64, x, y, x_kind, y_kind)


def check_uint64_div(x: int, y: int, x_kind=_S, y_kind=_S) -> int:
    """Divide two 64-bit operands, truncating, to a 64-bit unsigned result."""
    return _apply(_UINT64_DIV, _W64, x, y, x_kind, y_kind)