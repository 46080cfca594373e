"""
Checked integer arithmetic.

Amounts, reserves, balances and share supplies are u64. Products that feed a
division are computed in u128. Nothing wraps: leaving the range raises
ArithmeticOverflow.
"""
import math

from amm_ledger.errors import ArithmeticOverflow

U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1

BPS_DENOMINATOR = 10_000


def _require_int(name: str, value) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")


def to_u64(value: int, name: str = "value") -> int:
    """Validate that value fits in a u64."""
    _require_int(name, value)
    if value < 0 or value > U64_MAX:
        raise ArithmeticOverflow(f"{name} out of u64 range: {value}")
    return value


def to_u128(value: int, name: str = "value") -> int:
    _require_int(name, value)
    if value < 0 or value > U128_MAX:
        raise ArithmeticOverflow(f"{name} out of u128 range: {value}")
    return value


def checked_add(a: int, b: int) -> int:
    return to_u64(a + b, "sum")


def checked_sub(a: int, b: int) -> int:
    if b > a:
        raise ArithmeticOverflow(f"Subtraction underflow: {a} - {b}")
    return a - b


def checked_mul(a: int, b: int) -> int:
    """u64 * u64 -> u128."""
    return to_u128(a * b, "product")


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator), result must fit in u64."""
    if denominator == 0:
        raise ArithmeticOverflow("Division by zero")
    return to_u64(checked_mul(a, b) // denominator, "quotient")


def mul_div_ceil(a: int, b: int, denominator: int) -> int:
    """ceil(a * b / denominator), result must fit in u64."""
    if denominator == 0:
        raise ArithmeticOverflow("Division by zero")
    return to_u64(-(-checked_mul(a, b) // denominator), "quotient")


def isqrt(value: int) -> int:
    """floor(sqrt(value)) for a u128."""
    return math.isqrt(to_u128(value, "radicand"))


def apply_fee(amount: int, fee_bps: int) -> int:
    """Amount left after deducting fee_bps basis points (floor)."""
    if not 0 <= fee_bps < BPS_DENOMINATOR:
        raise ValueError(f"fee_bps must be in [0, {BPS_DENOMINATOR}): {fee_bps}")
    return mul_div(amount, BPS_DENOMINATOR - fee_bps, BPS_DENOMINATOR)
