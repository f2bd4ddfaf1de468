"""
Collab Royalty - Work Registry

Creates and stores collaborative works together with their collaborator
lists, royalty shares and revenue ledgers.

Key Concepts:
- A work has 1-10 unique collaborators whose shares sum to exactly 10000 bps
- Work ids come from a monotonic counter starting at 1; register_work
  accepts an external id and moves the counter past it
- All records of a work are built first and inserted in one step, so a
  rejected creation leaves nothing behind
- Collaborator lists are fixed at creation

Storage keys:
- works / collaborators / ledgers: work_id
- shares: (work_id, collaborator)
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any

from audit_trail import AuditTrail
from block_clock import BlockClock
from monitoring import get_logger, metrics
from royalty_errors import (
    InvalidCollaboratorSetError,
    InvalidPercentageSetError,
    InvalidWorkError,
    WorkAlreadyExistsError,
    WorkNotFoundError,
)
from royalty_math import BPS_DENOMINATOR, percentage_total, validate_bps

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

MIN_COLLABORATORS = 1
MAX_COLLABORATORS = 10
MAX_TITLE_LENGTH = 256


# =============================================================================
# Enums
# =============================================================================


class WorkStatus(Enum):
    """Lifecycle status of a work."""

    ACTIVE = "active"  # Accepting payments
    LOCKED = "locked"  # Held by governance (only with governance locking enabled)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class CollaborativeWork:
    """A registered collaborative work."""

    work_id: int
    title: str
    creator: str
    collaborator_count: int
    created_at: int
    governance_enabled: bool = False
    # Gross revenue received, before platform fees
    total_revenue: int = 0
    status: WorkStatus = WorkStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_id": self.work_id,
            "title": self.title,
            "creator": self.creator,
            "collaborator_count": self.collaborator_count,
            "total_revenue": self.total_revenue,
            "status": self.status.value,
            "created_at": self.created_at,
            "governance_enabled": self.governance_enabled,
        }


@dataclass
class RoyaltyShare:
    """One collaborator's share of a work's revenue."""

    work_id: int
    collaborator: str
    percentage: int  # basis points
    # Stored for compatibility; distribution treats every share as fixed
    is_dynamic: bool = False
    total_earned: int = 0
    last_withdrawal: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_id": self.work_id,
            "collaborator": self.collaborator,
            "percentage": self.percentage,
            "is_dynamic": self.is_dynamic,
            "total_earned": self.total_earned,
            "last_withdrawal": self.last_withdrawal,
        }


@dataclass
class RevenueLedger:
    """
    Revenue totals of one work.

    Invariant: total_received - total_fees == total_distributed + pending_distribution
    """

    work_id: int
    total_received: int = 0
    total_fees: int = 0
    total_distributed: int = 0
    pending_distribution: int = 0
    last_distribution: int | None = None

    def is_balanced(self) -> bool:
        return (
            self.total_received - self.total_fees
            == self.total_distributed + self.pending_distribution
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_id": self.work_id,
            "total_received": self.total_received,
            "total_fees": self.total_fees,
            "total_distributed": self.total_distributed,
            "pending_distribution": self.pending_distribution,
            "last_distribution": self.last_distribution,
        }


# =============================================================================
# Registry
# =============================================================================


class WorkRegistry:
    """Owner of works, collaborator lists, shares and ledgers."""

    def __init__(self, clock: BlockClock, audit: AuditTrail | None = None):
        self.clock = clock
        self.audit = audit if audit is not None else AuditTrail()

        self.works: dict[int, CollaborativeWork] = {}
        self.collaborators: dict[int, tuple[str, ...]] = {}
        self.shares: dict[tuple[int, str], RoyaltyShare] = {}
        self.ledgers: dict[int, RevenueLedger] = {}

        self._next_work_id = 1
        self._id_lock = threading.Lock()

    # =========================================================================
    # Creation
    # =========================================================================

    def create_work(
        self,
        creator: str,
        title: str,
        collaborators: list[str],
        percentages: list[int],
        governance_enabled: bool = False,
    ) -> int:
        """
        Register a new collaborative work.

        Args:
            creator: Identity of the caller registering the work
            title: Non-empty title
            collaborators: 1-10 unique collaborator identities, in payout order
            percentages: Basis-point share per collaborator, summing to 10000
            governance_enabled: Whether collaborators may raise proposals

        Returns:
            The new work id

        Raises:
            InvalidWorkError: Blank title
            InvalidCollaboratorSetError: Length mismatch, bad count or duplicates
            InvalidPercentageSetError: Out-of-range value or sum != 10000
        """
        title = self._validate_title(title)
        members = self._validate_collaborators(collaborators, percentages)
        self._validate_percentages(percentages)

        with self._id_lock:
            work_id = self._next_work_id
            work = self._insert(work_id, creator, title, members, percentages, governance_enabled, self.clock.now())

        self._record_created(work, members, percentages)
        return work_id

    def register_work(
        self,
        work_id: int,
        creator: str,
        title: str,
        collaborators: list[str],
        percentages: list[int],
        governance_enabled: bool = False,
        created_at: int | None = None,
    ) -> CollaborativeWork:
        """
        Register a work under an externally assigned id, e.g. when importing
        works from another ledger.

        The id counter is moved past ``work_id`` so later creations never
        reuse it. Validation is the same as create_work.

        Raises:
            WorkAlreadyExistsError: A work with this id is already registered
        """
        if not isinstance(work_id, int) or isinstance(work_id, bool) or work_id < 1:
            raise InvalidWorkError(
                "Work id must be a positive integer",
                component="work_registry",
                action="register_work",
                details={"work_id": repr(work_id)},
            )
        title = self._validate_title(title)
        members = self._validate_collaborators(collaborators, percentages)
        self._validate_percentages(percentages)

        with self._id_lock:
            if work_id in self.works:
                raise WorkAlreadyExistsError(work_id)
            created = self.clock.now() if created_at is None else created_at
            work = self._insert(work_id, creator, title, members, percentages, governance_enabled, created)

        self._record_created(work, members, percentages)
        return work

    def _insert(
        self,
        work_id: int,
        creator: str,
        title: str,
        members: tuple[str, ...],
        percentages: list[int],
        governance_enabled: bool,
        created_at: int,
    ) -> CollaborativeWork:
        # caller holds _id_lock
        work = CollaborativeWork(
            work_id=work_id,
            title=title,
            creator=creator,
            collaborator_count=len(members),
            created_at=created_at,
            governance_enabled=bool(governance_enabled),
        )
        shares = {
            (work_id, member): RoyaltyShare(work_id=work_id, collaborator=member, percentage=pct)
            for member, pct in zip(members, percentages)
        }

        self.shares.update(shares)
        self.collaborators[work_id] = members
        self.ledgers[work_id] = RevenueLedger(work_id=work_id)
        self.works[work_id] = work
        self._next_work_id = max(self._next_work_id, work_id + 1)
        return work

    def _record_created(self, work: CollaborativeWork, members: tuple[str, ...], percentages: list[int]) -> None:
        self.audit.emit(
            "work_created",
            work.created_at,
            work_id=work.work_id,
            creator=work.creator,
            collaborators=list(members),
            percentages=list(percentages),
            governance_enabled=work.governance_enabled,
        )
        metrics.increment("works_created_total")
        logger.info(
            "Work created",
            extra={"work_id": work.work_id, "creator": work.creator, "collaborator_count": len(members)},
        )

    def _validate_title(self, title: str) -> str:
        if not isinstance(title, str) or not title.strip():
            raise InvalidWorkError("Title must not be empty", component="work_registry", action="create_work")
        if len(title) > MAX_TITLE_LENGTH:
            raise InvalidWorkError(
                f"Title exceeds {MAX_TITLE_LENGTH} characters",
                component="work_registry",
                action="create_work",
                details={"length": len(title)},
            )
        return title

    def _validate_collaborators(self, collaborators: list[str], percentages: list[int]) -> tuple[str, ...]:
        def reject(message: str, **details: Any) -> InvalidCollaboratorSetError:
            return InvalidCollaboratorSetError(
                message, component="work_registry", action="create_work", details=details
            )

        if len(collaborators) != len(percentages):
            raise reject(
                "Collaborator and percentage lists differ in length",
                collaborators=len(collaborators),
                percentages=len(percentages),
            )
        if not MIN_COLLABORATORS <= len(collaborators) <= MAX_COLLABORATORS:
            raise reject(
                f"A work needs between {MIN_COLLABORATORS} and {MAX_COLLABORATORS} collaborators",
                count=len(collaborators),
            )

        seen: set[str] = set()
        for member in collaborators:
            if not isinstance(member, str) or not member.strip():
                raise reject("Collaborator identities must be non-empty strings")
            if member in seen:
                raise reject(f"Collaborator {member} is listed more than once", collaborator=member)
            seen.add(member)
        return tuple(collaborators)

    def _validate_percentages(self, percentages: list[int]) -> None:
        total = 0
        for index, pct in enumerate(percentages):
            try:
                total += validate_bps(pct)
            except ValueError as exc:
                raise InvalidPercentageSetError(
                    str(exc),
                    component="work_registry",
                    action="create_work",
                    details={"index": index, "value": repr(pct)},
                    cause=exc,
                ) from exc
        if total != BPS_DENOMINATOR:
            raise InvalidPercentageSetError(
                f"Percentages must sum to exactly {BPS_DENOMINATOR} bps, got {total}",
                component="work_registry",
                action="create_work",
                details={"total": total},
            )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_work(self, work_id: int) -> CollaborativeWork | None:
        return self.works.get(work_id)

    def require_work(self, work_id: int, action: str = "lookup") -> CollaborativeWork:
        """Get a work or raise WorkNotFoundError."""
        work = self.works.get(work_id)
        if work is None:
            raise WorkNotFoundError(work_id, action=action)
        return work

    def get_collaborators(self, work_id: int) -> tuple[str, ...] | None:
        return self.collaborators.get(work_id)

    def is_collaborator(self, work_id: int, identity: str) -> bool:
        return (work_id, identity) in self.shares

    def get_royalty_share(self, work_id: int, collaborator: str) -> RoyaltyShare | None:
        return self.shares.get((work_id, collaborator))

    def get_shares(self, work_id: int) -> list[RoyaltyShare]:
        """Shares of a work in collaborator-list order."""
        members = self.collaborators.get(work_id, ())
        return [self.shares[(work_id, member)] for member in members]

    def share_total(self, work_id: int) -> int:
        """
        Current sum of a work's share percentages.

        10000 at creation; governance updates can move it away from 10000.
        """
        return percentage_total(share.percentage for share in self.get_shares(work_id))

    def get_ledger(self, work_id: int) -> RevenueLedger | None:
        return self.ledgers.get(work_id)

    def require_ledger(self, work_id: int, action: str = "lookup") -> RevenueLedger:
        ledger = self.ledgers.get(work_id)
        if ledger is None:
            raise WorkNotFoundError(work_id, action=action)
        return ledger

    def list_works(self, collaborator: str | None = None) -> list[CollaborativeWork]:
        """All works in id order, optionally only those a collaborator belongs to."""
        works = [self.works[work_id] for work_id in sorted(self.works)]
        if collaborator is None:
            return works
        return [w for w in works if self.is_collaborator(w.work_id, collaborator)]

    def set_status(self, work_id: int, status: WorkStatus) -> None:
        work = self.require_work(work_id, action="set_status")
        if work.status != status:
            work.status = status
            logger.info("Work status changed", extra={"work_id": work_id, "status": status.value})

    @property
    def work_count(self) -> int:
        return len(self.works)
