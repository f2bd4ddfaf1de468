"""
Tests for the distribution engine (src/distribution.py)

Tests cover:
- Payout amounts and ledger updates
- All-or-nothing behaviour when a transfer fails
- Rounding residual bounds
- Shares that no longer sum to 100%
"""

import sys

import pytest

sys.path.insert(0, "src")

from royalty_errors import InsufficientFundsError, NoPendingRevenueError, WorkNotFoundError


# ============================================================
# Distribution Tests
# ============================================================

class TestDistributeRevenue:
    """Tests for successful distributions."""

    def test_reference_scenario(self, platform, transfers, clock, work_id):
        """97,500,000 pending splits 40/35/25."""
        platform.receive_payment("fan", work_id, 100_000_000)
        clock.advance(3)

        assert platform.distribute_revenue(work_id) == 97_500_000

        assert transfers.balance("alice") == 39_000_000
        assert transfers.balance("bob") == 34_125_000
        assert transfers.balance("carol") == 24_375_000

        ledger = platform.get_work_revenue(work_id)
        assert ledger.pending_distribution == 0
        assert ledger.total_distributed == 97_500_000
        assert ledger.last_distribution == 3
        assert ledger.is_balanced()

        share = platform.get_royalty_share(work_id, "bob")
        assert share.total_earned == 34_125_000
        assert share.last_withdrawal == 3

    def test_result_records_payouts(self, platform, work_id):
        platform.receive_payment("fan", work_id, 100_000_000)
        platform.distribute_revenue(work_id)

        result = platform.last_distribution(work_id)
        assert [p.collaborator for p in result.payouts] == ["alice", "bob", "carol"]
        assert result.total_paid == 97_500_000
        assert result.residual == 0

    def test_residual_stays_in_pool(self, platform, transfers):
        """1001 units three ways at 3334/3333/3333 pays 999."""
        work_id = platform.create_work("a", "Trio", ["a", "b", "c"], [3334, 3333, 3333])
        platform.receive_payment("fan", work_id, 1_026)  # fee 25, net 1001

        platform.distribute_revenue(work_id)
        result = platform.last_distribution(work_id)

        assert result.distributed == 1_001
        assert result.total_paid <= result.distributed
        assert 0 <= result.residual <= 2
        assert result.residual == result.distributed - result.total_paid
        assert platform.get_work_revenue(work_id).total_distributed == 1_001
        assert transfers.balance("platform-pool") == 25 + result.residual

    def test_earned_accumulates(self, platform, work_id):
        platform.receive_payment("fan", work_id, 10_000)
        platform.distribute_revenue(work_id)
        platform.receive_payment("fan", work_id, 10_000)
        platform.distribute_revenue(work_id)

        assert platform.get_royalty_share(work_id, "alice").total_earned == 2 * (9_750 * 4000 // 10_000)

    def test_zero_share_receives_nothing(self, platform, transfers, clock):
        """A zero payout makes no transfer but is still recorded at the distribution block."""
        work_id = platform.create_work("alice", "Guest", ["alice", "guest"], [10000, 0])
        platform.receive_payment("fan", work_id, 10_000)
        clock.advance(7)
        transfers_before = len(transfers.history)
        platform.distribute_revenue(work_id)

        assert transfers.balance("guest") == 0
        assert len(transfers.history) == transfers_before + 1
        share = platform.get_royalty_share(work_id, "guest")
        assert share.total_earned == 0
        assert share.last_withdrawal == 7


# ============================================================
# Failure Tests
# ============================================================

class TestDistributionFailures:
    """Failed distributions change nothing."""

    def test_unknown_work(self, platform):
        with pytest.raises(WorkNotFoundError):
            platform.distribute_revenue(42)

    def test_nothing_pending(self, platform, work_id):
        with pytest.raises(NoPendingRevenueError):
            platform.distribute_revenue(work_id)

    def test_second_distribution_has_nothing_pending(self, platform, work_id):
        platform.receive_payment("fan", work_id, 10_000)
        platform.distribute_revenue(work_id)
        with pytest.raises(NoPendingRevenueError):
            platform.distribute_revenue(work_id)

    def test_failed_transfer_rolls_back_everything(self, platform, transfers, work_id):
        """A refused payout to the last collaborator undoes the earlier ones."""
        platform.receive_payment("fan", work_id, 100_000_000)
        transfers.blocked_accounts.add("carol")
        pool_before = transfers.balance("platform-pool")

        with pytest.raises(InsufficientFundsError):
            platform.distribute_revenue(work_id)

        assert transfers.balance("alice") == 0
        assert transfers.balance("bob") == 0
        assert transfers.balance("platform-pool") == pool_before

        ledger = platform.get_work_revenue(work_id)
        assert ledger.pending_distribution == 97_500_000
        assert ledger.total_distributed == 0
        assert ledger.last_distribution is None
        for member in ("alice", "bob", "carol"):
            share = platform.get_royalty_share(work_id, member)
            assert share.total_earned == 0
            assert share.last_withdrawal is None
        assert platform.last_distribution(work_id) is None

    def test_retry_after_failure(self, platform, transfers, work_id):
        platform.receive_payment("fan", work_id, 10_000)
        transfers.blocked_accounts.add("bob")
        with pytest.raises(InsufficientFundsError):
            platform.distribute_revenue(work_id)

        transfers.blocked_accounts.clear()
        assert platform.distribute_revenue(work_id) == 9_750


# ============================================================
# Share Total Gap Tests
# ============================================================

class TestOverAllocatedShares:
    """Distribution after governance pushed shares above 100%."""

    def _raise_carol(self, platform, work_id):
        proposal_id = platform.create_proposal(
            "alice", work_id, "royalty-update", target="carol", new_percentage=4500
        )
        platform.vote_on_proposal("alice", proposal_id, True)
        platform.vote_on_proposal("bob", proposal_id, True)
        platform.execute_proposal("alice", proposal_id)

    def test_planned_payouts_exceed_pending(self, platform, work_id):
        self._raise_carol(platform, work_id)
        assert platform.registry.share_total(work_id) == 12000

        plan = platform.distribution.plan_payouts(work_id, 10_000)
        assert sum(p.amount for p in plan) == 12_000

    def test_pool_balance_decides(self, platform, transfers, work_id):
        """Payouts draw on the shared pool; an empty pool aborts the batch."""
        self._raise_carol(platform, work_id)
        platform.receive_payment("fan", work_id, 10_000)  # pool holds 10,000

        with pytest.raises(InsufficientFundsError):
            platform.distribute_revenue(work_id)  # needs 11,699
        assert transfers.balance("platform-pool") == 10_000
        assert platform.get_work_revenue(work_id).pending_distribution == 9_750
