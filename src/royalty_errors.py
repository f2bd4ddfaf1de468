"""
Collab Royalty - Error Hierarchy

Every failure of the ledger and governance operations is a distinct,
inspectable exception. Each carries a stable ``kind`` string and structured
details so callers, logs and the HTTP layer can report it without parsing
messages.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass
class ErrorContext:
    """Structured context for error tracking and debugging."""
    component: str
    action: str
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "component": self.component,
            "action": self.action,
            "timestamp": self.timestamp,
            "details": self.details,
        }


class RoyaltyLedgerError(Exception):
    """
    Base exception for all ledger and governance errors.

    Subclasses set ``kind`` to the error identifier reported to callers.
    """

    kind = "royalty_ledger_error"

    def __init__(
        self,
        message: str,
        component: str = "unknown",
        action: str = "unknown",
        details: dict[str, Any] | None = None,
        cause: Exception | None = None
    ):
        super().__init__(message)
        self.message = message
        self.context = ErrorContext(
            component=component,
            action=action,
            details=details or {}
        )
        self.cause = cause

        if cause:
            self.__cause__ = cause

    @property
    def details(self) -> dict[str, Any]:
        return self.context.details

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        result = {
            "error": self.kind,
            "message": self.message,
            **self.context.to_dict()
        }
        if self.cause:
            result["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause)
            }
        return result

    def __str__(self) -> str:
        base = f"[{self.context.component}:{self.context.action}] {self.message}"
        if self.cause:
            base += f" (caused by: {self.cause})"
        return base


# =============================================================================
# Authorization
# =============================================================================

class UnauthorizedError(RoyaltyLedgerError):
    """Caller is not allowed to perform the operation."""
    kind = "unauthorized"


# =============================================================================
# Work Registry Errors
# =============================================================================

class WorkNotFoundError(RoyaltyLedgerError):
    """No work exists for the given id."""
    kind = "work_not_found"

    def __init__(self, work_id: int, action: str = "lookup"):
        super().__init__(
            f"Work {work_id} not found",
            component="work_registry",
            action=action,
            details={"work_id": work_id},
        )
        self.work_id = work_id


class WorkAlreadyExistsError(RoyaltyLedgerError):
    """A work with the given id is already registered."""
    kind = "work_already_exists"

    def __init__(self, work_id: int):
        super().__init__(
            f"Work {work_id} already exists",
            component="work_registry",
            action="register_work",
            details={"work_id": work_id},
        )
        self.work_id = work_id


class InvalidWorkError(RoyaltyLedgerError):
    """Work attributes (e.g. title) are invalid."""
    kind = "invalid_work"


class InvalidCollaboratorSetError(RoyaltyLedgerError):
    """
    Collaborator list is unusable.

    Examples:
    - collaborator and percentage lists differ in length
    - fewer than 1 or more than 10 collaborators
    - the same identity listed twice
    """
    kind = "invalid_collaborator_set"


class InvalidPercentageSetError(RoyaltyLedgerError):
    """Percentages do not sum to 10000 bps, or a single value is out of range."""
    kind = "invalid_percentage_set"


class WorkLockedError(RoyaltyLedgerError):
    """Work is not accepting payments while governance holds it."""
    kind = "work_locked"


# =============================================================================
# Revenue Errors
# =============================================================================

class InvalidAmountError(RoyaltyLedgerError):
    """Payment amount is not a positive integer."""
    kind = "invalid_amount"


class InsufficientFundsError(RoyaltyLedgerError):
    """The external value transfer failed."""
    kind = "insufficient_funds"


class NoPendingRevenueError(RoyaltyLedgerError):
    """Distribution requested with nothing pending."""
    kind = "no_pending_revenue"

    def __init__(self, work_id: int):
        super().__init__(
            f"Work {work_id} has no pending revenue to distribute",
            component="distribution",
            action="distribute_revenue",
            details={"work_id": work_id},
        )
        self.work_id = work_id


# =============================================================================
# Governance Errors
# =============================================================================

class ProposalNotFoundError(RoyaltyLedgerError):
    """No proposal exists for the given id."""
    kind = "proposal_not_found"

    def __init__(self, proposal_id: int, action: str = "lookup"):
        super().__init__(
            f"Proposal {proposal_id} not found",
            component="governance",
            action=action,
            details={"proposal_id": proposal_id},
        )
        self.proposal_id = proposal_id


class InvalidProposalError(RoyaltyLedgerError):
    """Proposal is malformed or not in a state that allows the operation."""
    kind = "invalid_proposal"


class AlreadyVotedError(RoyaltyLedgerError):
    """The voter already cast a vote on this proposal."""
    kind = "already_voted"

    def __init__(self, proposal_id: int, voter: str):
        super().__init__(
            f"{voter} has already voted on proposal {proposal_id}",
            component="governance",
            action="vote_on_proposal",
            details={"proposal_id": proposal_id, "voter": voter},
        )
        self.proposal_id = proposal_id
        self.voter = voter


class ProposalExpiredError(RoyaltyLedgerError):
    """The proposal's voting window has closed."""
    kind = "proposal_expired"


class ProposalNotPassedError(RoyaltyLedgerError):
    """The proposal has not reached the pass threshold."""
    kind = "proposal_not_passed"


ALL_ERRORS = (
    UnauthorizedError,
    WorkNotFoundError,
    WorkAlreadyExistsError,
    InvalidWorkError,
    InvalidCollaboratorSetError,
    InvalidPercentageSetError,
    WorkLockedError,
    InvalidAmountError,
    InsufficientFundsError,
    NoPendingRevenueError,
    ProposalNotFoundError,
    InvalidProposalError,
    AlreadyVotedError,
    ProposalExpiredError,
    ProposalNotPassedError,
)
