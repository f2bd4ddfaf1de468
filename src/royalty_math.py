"""
Collab Royalty - Percentage & Payout Calculator

Pure integer arithmetic for basis-point royalty splits.

Key Concepts:
- All percentages are basis points (10000 = 100%)
- payout(amount, bps) = floor(amount * bps / 10000)
- Platform fees use the same formula with a configurable rate
- Amounts are unbounded Python ints, capped at MAX_AMOUNT (uint128)

Floor rounding means the sum of individual payouts can fall short of the
split amount by up to (recipients - 1) minimal units. The residual is not
carried forward; it stays in the platform pool.
"""

from collections.abc import Iterable

# =============================================================================
# Constants
# =============================================================================

BPS_DENOMINATOR = 10_000  # 100% in basis points
DEFAULT_PLATFORM_FEE_BPS = 250  # 2.5%

# Amounts are kept within the unsigned 128-bit range of the settlement layer.
MAX_AMOUNT = 2**128 - 1


# =============================================================================
# Validation
# =============================================================================


def _is_int(value) -> bool:
    # bool is an int subclass but never a valid amount
    return isinstance(value, int) and not isinstance(value, bool)


def validate_amount(amount: int) -> int:
    """Check that an amount is a non-negative int within MAX_AMOUNT."""
    if not _is_int(amount):
        raise ValueError(f"Amount must be an integer, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError("Amount must be non-negative")
    if amount > MAX_AMOUNT:
        raise ValueError("Amount exceeds the 128-bit settlement range")
    return amount


def validate_bps(percentage_bps: int) -> int:
    """Check that a percentage is an int in [0, 10000]."""
    if not _is_int(percentage_bps):
        raise ValueError(
            f"Percentage must be an integer number of basis points, got {type(percentage_bps).__name__}"
        )
    if percentage_bps < 0 or percentage_bps > BPS_DENOMINATOR:
        raise ValueError(f"Percentage must be between 0 and {BPS_DENOMINATOR} bps")
    return percentage_bps


# =============================================================================
# Calculations
# =============================================================================


def payout(amount: int, percentage_bps: int) -> int:
    """
    Compute a floor-rounded basis-point share of an amount.

    Args:
        amount: Amount in minimal units
        percentage_bps: Share in basis points (0-10000)

    Returns:
        floor(amount * percentage_bps / 10000)
    """
    validate_amount(amount)
    validate_bps(percentage_bps)
    return amount * percentage_bps // BPS_DENOMINATOR


def platform_fee(amount: int, fee_bps: int = DEFAULT_PLATFORM_FEE_BPS) -> int:
    """Platform fee retained from a gross payment."""
    return payout(amount, fee_bps)


def net_amount(amount: int, fee_bps: int = DEFAULT_PLATFORM_FEE_BPS) -> int:
    """Amount left for collaborators after the platform fee."""
    return amount - platform_fee(amount, fee_bps)


def split(amount: int, percentages: Iterable[int]) -> list[int]:
    """Payout for each percentage, in order."""
    return [payout(amount, pct) for pct in percentages]


def rounding_residual(amount: int, percentages: Iterable[int]) -> int:
    """
    Units left over after splitting an amount by floor division.

    When the percentages sum to 10000 the residual is at most
    len(percentages) - 1.
    """
    return amount - sum(split(amount, percentages))


def percentage_total(percentages: Iterable[int]) -> int:
    """Sum of a set of basis-point percentages."""
    return sum(percentages)
