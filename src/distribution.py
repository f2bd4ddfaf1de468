"""
Collab Royalty - Distribution Engine

Pays a work's pending revenue out to its collaborators.

Algorithm:
1. Snapshot the collaborator list and current share percentages
2. Plan payout(pending, percentage) for each collaborator, in list order
3. Inside one atomic transfer scope, pay each collaborator from the pool;
   the first failed transfer aborts the scope and every transfer made so
   far is rolled back
4. Only after all transfers succeed, credit earned totals and move the
   whole pending amount into total_distributed

Rounding: floor division leaves up to (collaborators - 1) units unpaid when
shares sum to 10000. The residual stays in the platform pool; it is
reported on the DistributionResult and not carried forward.
"""

from dataclasses import dataclass, field
from typing import Any

from block_clock import BlockClock
from monitoring import get_logger, metrics
from royalty_errors import InsufficientFundsError, NoPendingRevenueError
from royalty_math import rounding_residual, split
from scaling import LockManager, work_lock_name
from settlement import ValueTransfer
from work_registry import WorkRegistry

logger = get_logger(__name__)


@dataclass
class PlannedPayout:
    """One collaborator's payout in a distribution."""

    collaborator: str
    percentage: int
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "collaborator": self.collaborator,
            "percentage": self.percentage,
            "amount": self.amount,
        }


@dataclass
class DistributionResult:
    """Outcome of a committed distribution."""

    work_id: int
    distributed: int
    block: int
    payouts: list[PlannedPayout] = field(default_factory=list)
    # units retained in the pool by floor rounding (negative if shares exceed 100%)
    residual: int = 0

    @property
    def total_paid(self) -> int:
        return sum(p.amount for p in self.payouts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_id": self.work_id,
            "distributed": self.distributed,
            "total_paid": self.total_paid,
            "residual": self.residual,
            "block": self.block,
            "payouts": [p.to_dict() for p in self.payouts],
        }


class DistributionEngine:
    """All-or-nothing payout of pending revenue."""

    def __init__(
        self,
        registry: WorkRegistry,
        transfers: ValueTransfer,
        lock_manager: LockManager,
        clock: BlockClock,
        pool_account: str,
    ):
        self.registry = registry
        self.transfers = transfers
        self.lock_manager = lock_manager
        self.clock = clock
        self.pool_account = pool_account
        self.last_results: dict[int, DistributionResult] = {}

    def distribute_revenue(self, work_id: int) -> int:
        """
        Distribute a work's pending revenue to every collaborator.

        Returns:
            The amount moved from pending to distributed

        Raises:
            WorkNotFoundError: Unknown work
            NoPendingRevenueError: Nothing pending
            InsufficientFundsError: A payout transfer failed; nothing changed
        """
        return self.distribute(work_id).distributed

    def distribute(self, work_id: int) -> DistributionResult:
        """Same as distribute_revenue, returning the full result."""
        with self.lock_manager.lock(work_lock_name(work_id)):
            self.registry.require_work(work_id, action="distribute_revenue")
            ledger = self.registry.require_ledger(work_id, action="distribute_revenue")

            pending = ledger.pending_distribution
            if pending <= 0:
                raise NoPendingRevenueError(work_id)

            plan = self.plan_payouts(work_id, pending)
            now = self.clock.now()

            with self.transfers.atomic():
                for item in plan:
                    self._pay(work_id, item)

            for item in plan:
                share = self.registry.shares[(work_id, item.collaborator)]
                share.total_earned += item.amount
                share.last_withdrawal = now

            ledger.total_distributed += pending
            ledger.pending_distribution = 0
            ledger.last_distribution = now

        result = DistributionResult(
            work_id=work_id,
            distributed=pending,
            block=now,
            payouts=plan,
            residual=rounding_residual(pending, [p.percentage for p in plan]),
        )
        self.last_results[work_id] = result

        self.registry.audit.emit(
            "revenue_distributed",
            now,
            work_id=work_id,
            distributed=pending,
            residual=result.residual,
            payouts={p.collaborator: p.amount for p in plan},
        )
        metrics.increment("royalty_distributions_total")
        metrics.increment("royalty_distributed_volume", pending)
        logger.info(
            "Revenue distributed",
            extra={
                "work_id": work_id,
                "distributed": pending,
                "collaborators": len(plan),
                "residual": result.residual,
            },
        )
        return result

    def plan_payouts(self, work_id: int, amount: int) -> list[PlannedPayout]:
        """Payout for each collaborator of a work, in collaborator-list order."""
        shares = self.registry.get_shares(work_id)
        amounts = split(amount, [share.percentage for share in shares])
        return [
            PlannedPayout(collaborator=share.collaborator, percentage=share.percentage, amount=paid)
            for share, paid in zip(shares, amounts)
        ]

    def _pay(self, work_id: int, item: PlannedPayout) -> None:
        # zero payouts are recorded without touching the transfer primitive
        if item.amount == 0:
            return
        if not self.transfers.transfer(item.amount, self.pool_account, item.collaborator):
            logger.warning(
                "Payout transfer failed, aborting distribution",
                extra={"work_id": work_id, "collaborator": item.collaborator, "amount": item.amount},
            )
            metrics.increment("royalty_distribution_failures_total")
            raise InsufficientFundsError(
                f"Payout of {item.amount} to {item.collaborator} failed",
                component="distribution",
                action="distribute_revenue",
                details={
                    "work_id": work_id,
                    "collaborator": item.collaborator,
                    "amount": item.amount,
                },
            )
