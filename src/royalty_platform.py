"""
Collab Royalty - Platform

Wires the work registry, revenue ledger, distribution engine and governance
engine to one transfer primitive, one block clock and one lock manager, and
exposes the complete operation surface.

Usage:
    from royalty_platform import CollaborativeRoyaltyPlatform
    from settlement import LocalTransferLedger

    transfers = LocalTransferLedger({"fan": 100_000_000})
    platform = CollaborativeRoyaltyPlatform(transfers=transfers)

    work_id = platform.create_work(
        "alice", "Night Drive", ["alice", "bob", "carol"], [4000, 3500, 2500]
    )
    platform.receive_payment("fan", work_id, 100_000_000)  # 97_500_000 pending
    platform.distribute_revenue(work_id)
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from audit_trail import AuditTrail, LedgerEvent
from block_clock import DEFAULT_BLOCK_SECONDS, BlockClock, WallBlockClock
from distribution import DistributionEngine, DistributionResult
from governance import (
    VOTING_PERIOD_BLOCKS,
    GovernanceEngine,
    GovernanceProposal,
    ProposalStatus,
    ProposalType,
    VoteRecord,
)
from monitoring import get_logger, metrics
from revenue_ledger import DEFAULT_POOL_ACCOUNT, RevenueService
from royalty_errors import RoyaltyLedgerError
from royalty_math import DEFAULT_PLATFORM_FEE_BPS
from scaling import LockManager, get_lock_manager
from settlement import LocalTransferLedger, ValueTransfer
from work_registry import CollaborativeWork, RevenueLedger, RoyaltyShare, WorkRegistry

logger = get_logger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PlatformConfig:
    """Tunable platform parameters."""

    fee_bps: int = DEFAULT_PLATFORM_FEE_BPS
    voting_period: int = VOTING_PERIOD_BLOCKS
    pool_account: str = DEFAULT_POOL_ACCOUNT
    lock_works_during_governance: bool = False
    block_seconds: float = DEFAULT_BLOCK_SECONDS

    @classmethod
    def from_env(cls) -> "PlatformConfig":
        """
        Read configuration from the environment.

        ROYALTY_PLATFORM_FEE_BPS, ROYALTY_VOTING_PERIOD_BLOCKS,
        ROYALTY_POOL_ACCOUNT, ROYALTY_LOCK_DURING_GOVERNANCE,
        ROYALTY_BLOCK_SECONDS
        """
        return cls(
            fee_bps=int(os.getenv("ROYALTY_PLATFORM_FEE_BPS", DEFAULT_PLATFORM_FEE_BPS)),
            voting_period=int(os.getenv("ROYALTY_VOTING_PERIOD_BLOCKS", VOTING_PERIOD_BLOCKS)),
            pool_account=os.getenv("ROYALTY_POOL_ACCOUNT", DEFAULT_POOL_ACCOUNT),
            lock_works_during_governance=_env_bool("ROYALTY_LOCK_DURING_GOVERNANCE"),
            block_seconds=float(os.getenv("ROYALTY_BLOCK_SECONDS", DEFAULT_BLOCK_SECONDS)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "fee_bps": self.fee_bps,
            "voting_period": self.voting_period,
            "pool_account": self.pool_account,
            "lock_works_during_governance": self.lock_works_during_governance,
            "block_seconds": self.block_seconds,
        }


class CollaborativeRoyaltyPlatform:
    """Facade over the ledger and governance components."""

    def __init__(
        self,
        transfers: ValueTransfer | None = None,
        clock: BlockClock | None = None,
        lock_manager: LockManager | None = None,
        config: PlatformConfig | None = None,
    ):
        """
        Args:
            transfers: Value-transfer primitive (in-memory ledger by default)
            clock: Block clock (wall clock at config.block_seconds per block
                by default)
            lock_manager: Named lock manager (configured default otherwise)
            config: Platform parameters (PlatformConfig() by default)
        """
        self.config = config or PlatformConfig()
        self.transfers = transfers if transfers is not None else LocalTransferLedger()
        self.clock = clock if clock is not None else WallBlockClock(self.config.block_seconds)
        self.lock_manager = lock_manager if lock_manager is not None else get_lock_manager()
        self.audit = AuditTrail()

        self.registry = WorkRegistry(self.clock, self.audit)
        self.revenue = RevenueService(
            self.registry,
            self.transfers,
            self.lock_manager,
            self.clock,
            fee_bps=self.config.fee_bps,
            pool_account=self.config.pool_account,
        )
        self.distribution = DistributionEngine(
            self.registry,
            self.transfers,
            self.lock_manager,
            self.clock,
            pool_account=self.config.pool_account,
        )
        self.governance = GovernanceEngine(
            self.registry,
            self.lock_manager,
            self.clock,
            voting_period=self.config.voting_period,
            lock_works=self.config.lock_works_during_governance,
        )

    # =========================================================================
    # Operations
    # =========================================================================

    def create_work(
        self,
        caller: str,
        title: str,
        collaborators: list[str],
        percentages: list[int],
        governance_enabled: bool = False,
    ) -> int:
        with _tracked("create_work"):
            return self.registry.create_work(caller, title, collaborators, percentages, governance_enabled)

    def register_work(
        self,
        caller: str,
        work_id: int,
        title: str,
        collaborators: list[str],
        percentages: list[int],
        governance_enabled: bool = False,
    ) -> int:
        """Register a work under an existing id from another ledger."""
        with _tracked("register_work"):
            work = self.registry.register_work(
                work_id, caller, title, collaborators, percentages, governance_enabled
            )
            return work.work_id

    def receive_payment(self, caller: str, work_id: int, amount: int) -> int:
        """Take a payment from ``caller`` for a work; returns the net credited."""
        with _tracked("receive_payment"):
            self.governance.refresh_work_lock(work_id)
            return self.revenue.receive_payment(work_id, caller, amount)

    def distribute_revenue(self, work_id: int) -> int:
        with _tracked("distribute_revenue"):
            return self.distribution.distribute_revenue(work_id)

    def create_proposal(
        self,
        caller: str,
        work_id: int,
        proposal_type: ProposalType | str,
        target: str | None = None,
        new_percentage: int | None = None,
        description: str = "",
    ) -> int:
        with _tracked("create_proposal"):
            return self.governance.create_proposal(
                caller, work_id, proposal_type, target, new_percentage, description
            )

    def vote_on_proposal(self, caller: str, proposal_id: int, choice: bool) -> bool:
        with _tracked("vote_on_proposal"):
            return self.governance.vote_on_proposal(caller, proposal_id, choice)

    def execute_proposal(self, caller: str, proposal_id: int) -> bool:
        with _tracked("execute_proposal"):
            return self.governance.execute_proposal(caller, proposal_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_work(self, work_id: int) -> CollaborativeWork | None:
        return self.registry.get_work(work_id)

    def get_royalty_share(self, work_id: int, collaborator: str) -> RoyaltyShare | None:
        return self.registry.get_royalty_share(work_id, collaborator)

    def get_work_revenue(self, work_id: int) -> RevenueLedger | None:
        return self.registry.get_ledger(work_id)

    def get_work_collaborators(self, work_id: int) -> list[str] | None:
        members = self.registry.get_collaborators(work_id)
        return list(members) if members is not None else None

    def get_proposal(self, proposal_id: int) -> GovernanceProposal | None:
        return self.governance.get_proposal(proposal_id)

    def get_vote(self, proposal_id: int, voter: str) -> VoteRecord | None:
        return self.governance.get_vote(proposal_id, voter)

    def get_platform_fee(self) -> int:
        return self.revenue.get_platform_fee()

    def get_proposal_status(self, proposal_id: int) -> ProposalStatus | None:
        return self.governance.get_proposal_status(proposal_id)

    def list_works(self, collaborator: str | None = None) -> list[CollaborativeWork]:
        return self.registry.list_works(collaborator)

    def list_proposals(
        self, work_id: int | None = None, status: ProposalStatus | None = None
    ) -> list[GovernanceProposal]:
        return self.governance.list_proposals(work_id, status)

    def last_distribution(self, work_id: int) -> DistributionResult | None:
        return self.distribution.last_results.get(work_id)

    def get_events(
        self, event_type: str | None = None, work_id: int | None = None, limit: int | None = None
    ) -> list[LedgerEvent]:
        return self.audit.events(event_type=event_type, work_id=work_id, limit=limit)

    def work_summary(self, work_id: int) -> dict[str, Any] | None:
        """Work, collaborators, shares and ledger in one dictionary."""
        work = self.registry.get_work(work_id)
        if work is None:
            return None
        return {
            **work.to_dict(),
            "collaborators": self.get_work_collaborators(work_id),
            "shares": [s.to_dict() for s in self.registry.get_shares(work_id)],
            "share_total": self.registry.share_total(work_id),
            "revenue": self.registry.get_ledger(work_id).to_dict(),
        }

    def get_statistics(self) -> dict[str, Any]:
        """Platform-wide totals."""
        ledgers = list(self.registry.ledgers.values())
        now = self.clock.now()
        status_counts: dict[str, int] = {}
        for proposal in self.governance.proposals.values():
            status = proposal.current_status(now).value
            status_counts[status] = status_counts.get(status, 0) + 1

        return {
            "block": now,
            "config": self.config.to_dict(),
            "works": {
                "total": self.registry.work_count,
                "governance_enabled": sum(1 for w in self.registry.works.values() if w.governance_enabled),
            },
            "revenue": {
                "total_received": sum(l.total_received for l in ledgers),
                "total_fees": sum(l.total_fees for l in ledgers),
                "total_distributed": sum(l.total_distributed for l in ledgers),
                "pending_distribution": sum(l.pending_distribution for l in ledgers),
            },
            "proposals": {
                "total": len(self.governance.proposals),
                "by_status": status_counts,
                "votes": len(self.governance.votes),
            },
            "events": len(self.audit),
        }


@contextmanager
def _tracked(operation: str):
    """Count and time an operation; ledger errors are counted by kind and re-raised."""
    labels = {"operation": operation}
    with metrics.timer("operation_duration_ms", labels=labels):
        try:
            yield
        except RoyaltyLedgerError as e:
            metrics.increment("royalty_errors_total", labels={"kind": e.kind})
            logger.warning(
                "Operation rejected",
                extra={"operation": operation, "error_kind": e.kind, "detail": e.message},
            )
            raise
    metrics.increment("operations_total", labels=labels)
