"""Fixed-width integer domains used by ledger values."""

from ..errors.exceptions import ArithmeticOverflowError

I128_MIN = -(2**127)
I128_MAX = 2**127 - 1
U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1


def in_range(value: int, lower: int, upper: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and lower <= value <= upper


def checked_add(value: int, delta: int, lower: int, upper: int, operand: str) -> int:
    """Add ``delta`` to ``value`` or raise if the sum leaves [lower, upper]."""
    result = value + delta
    if not lower <= result <= upper:
        raise ArithmeticOverflowError(
            f"{operand} overflow: {value} + {delta} is outside [{lower}, {upper}]",
            operand=operand,
        )
    return result
