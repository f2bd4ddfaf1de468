"""
Tests for the percentage & payout calculator (src/royalty_math.py)

Tests cover:
- Floor-rounded basis-point payouts
- Platform fee and net amount
- Input validation
- Rounding residual bounds
"""

import sys

import pytest

sys.path.insert(0, "src")

from royalty_math import (
    BPS_DENOMINATOR,
    DEFAULT_PLATFORM_FEE_BPS,
    MAX_AMOUNT,
    net_amount,
    payout,
    percentage_total,
    platform_fee,
    rounding_residual,
    split,
    validate_amount,
    validate_bps,
)


# ============================================================
# Payout Tests
# ============================================================

class TestPayout:
    """Tests for payout(amount, bps)."""

    def test_exact_share(self):
        """A 40% share of 97,500,000 is 39,000,000."""
        assert payout(97_500_000, 4000) == 39_000_000

    def test_floors_fractional_result(self):
        """1000 * 3333 / 10000 = 333.3 floors to 333."""
        assert payout(1000, 3333) == 333

    def test_zero_percentage(self):
        assert payout(1_000_000, 0) == 0

    def test_full_percentage(self):
        assert payout(1_000_000, BPS_DENOMINATOR) == 1_000_000

    def test_zero_amount(self):
        assert payout(0, 5000) == 0

    def test_max_amount_does_not_overflow(self):
        """Integer arithmetic stays exact at the top of the range."""
        assert payout(MAX_AMOUNT, BPS_DENOMINATOR) == MAX_AMOUNT
        assert payout(MAX_AMOUNT, 5000) == MAX_AMOUNT // 2

    def test_rejects_percentage_above_denominator(self):
        with pytest.raises(ValueError):
            payout(100, 10_001)

    def test_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            payout(-1, 100)


# ============================================================
# Fee Tests
# ============================================================

class TestPlatformFee:
    """Tests for platform fee helpers."""

    def test_default_fee_rate(self):
        assert DEFAULT_PLATFORM_FEE_BPS == 250

    def test_fee_on_hundred_million(self):
        """2.5% of 100,000,000 is 2,500,000."""
        assert platform_fee(100_000_000) == 2_500_000
        assert net_amount(100_000_000) == 97_500_000

    def test_small_payment_pays_no_fee(self):
        """Fees floor to zero on amounts below 40 units."""
        assert platform_fee(39) == 0
        assert net_amount(39) == 39

    def test_custom_rate(self):
        assert platform_fee(10_000, fee_bps=100) == 100

    def test_fee_plus_net_is_amount(self):
        for amount in (1, 7, 41, 999, 123_456_789):
            assert platform_fee(amount) + net_amount(amount) == amount


# ============================================================
# Validation Tests
# ============================================================

class TestValidation:
    """Tests for amount and percentage validation."""

    def test_bool_is_not_an_amount(self):
        with pytest.raises(ValueError):
            validate_amount(True)

    def test_float_is_not_an_amount(self):
        with pytest.raises(ValueError):
            validate_amount(10.0)

    def test_amount_above_max(self):
        with pytest.raises(ValueError):
            validate_amount(MAX_AMOUNT + 1)

    def test_valid_bps_returned(self):
        assert validate_bps(2500) == 2500

    def test_bps_must_be_int(self):
        with pytest.raises(ValueError):
            validate_bps("2500")

    def test_negative_bps(self):
        with pytest.raises(ValueError):
            validate_bps(-1)


# ============================================================
# Split & Residual Tests
# ============================================================

class TestSplit:
    """Tests for multi-recipient splits."""

    def test_split_in_order(self):
        assert split(97_500_000, [4000, 3500, 2500]) == [39_000_000, 34_125_000, 24_375_000]

    def test_three_way_residual(self):
        """100 split three ways at 3334/3333/3333 leaves 1 unit."""
        assert split(100, [3334, 3333, 3333]) == [33, 33, 33]
        assert rounding_residual(100, [3334, 3333, 3333]) == 1

    def test_residual_bounded_by_recipients(self):
        """Residual never exceeds recipients - 1 when shares total 10000."""
        percentages = [1111] * 8 + [556, 556]
        assert percentage_total(percentages) == BPS_DENOMINATOR
        for amount in (1, 9, 10, 99, 1001, 77_777, 10**9 + 7):
            residual = rounding_residual(amount, percentages)
            assert 0 <= residual <= len(percentages) - 1

    def test_percentage_total(self):
        assert percentage_total([4000, 3500, 2500]) == 10_000
