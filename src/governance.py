"""
Collab Royalty - Governance Engine

Collaborators of a governance-enabled work can propose changes to its
royalty configuration, vote on them, and execute passing proposals.

Lifecycle:
    active --(threshold met, unexpired)--> executed

Only ``active`` and ``executed`` are stored. The remaining statuses are
derived from the tallies and the block clock whenever a proposal is read:
- passed:   votes_for * 100 >= eligible_voters * 51
- rejected: enough votes against that the threshold can no longer be met
- expired:  the clock is past expires_at and the proposal was never executed

Expiry bars both voting and execution. Each collaborator votes at most once
per proposal and cannot change the vote.

Only ``royalty-update`` proposals change state on execution. They overwrite
one collaborator's percentage without re-checking that the work's shares
still sum to 10000; ``WorkRegistry.share_total`` reports the resulting sum.
``add-collaborator`` and ``remove-collaborator`` proposals are recorded and
can be voted on, but executing them has no effect beyond marking them
executed.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from block_clock import BlockClock
from monitoring import get_logger, metrics
from royalty_errors import (
    AlreadyVotedError,
    InvalidPercentageSetError,
    InvalidProposalError,
    ProposalExpiredError,
    ProposalNotFoundError,
    ProposalNotPassedError,
    UnauthorizedError,
)
from royalty_math import BPS_DENOMINATOR
from scaling import LockManager, proposal_lock_name, work_lock_name
from work_registry import RoyaltyShare, WorkRegistry, WorkStatus

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

# About 10 days at 600 seconds per block
VOTING_PERIOD_BLOCKS = 1440
PASS_THRESHOLD_PERCENT = 51
MAX_DESCRIPTION_LENGTH = 2000


def passes(votes_for: int, eligible_voters: int) -> bool:
    """Integer pass check: votes_for * 100 >= eligible_voters * 51."""
    return votes_for * 100 >= eligible_voters * PASS_THRESHOLD_PERCENT


# =============================================================================
# Enums
# =============================================================================


class ProposalType(Enum):
    """Kinds of governance proposals."""

    ROYALTY_UPDATE = "royalty-update"
    ADD_COLLABORATOR = "add-collaborator"  # recorded only
    REMOVE_COLLABORATOR = "remove-collaborator"  # recorded only


class ProposalStatus(Enum):
    """Stored (ACTIVE, EXECUTED) and derived proposal statuses."""

    ACTIVE = "active"
    PASSED = "passed"
    REJECTED = "rejected"
    EXPIRED = "expired"
    EXECUTED = "executed"


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class VoteRecord:
    """A collaborator's vote on a proposal. Immutable once recorded."""

    proposal_id: int
    voter: str
    choice: bool
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "voter": self.voter,
            "choice": self.choice,
            "timestamp": self.timestamp,
        }


@dataclass
class GovernanceProposal:
    """A proposal to change a work's royalty configuration."""

    proposal_id: int
    work_id: int
    proposer: str
    proposal_type: ProposalType
    eligible_voters: int
    created_at: int
    expires_at: int
    target: str | None = None
    new_percentage: int | None = None
    description: str = ""
    votes_for: int = 0
    votes_against: int = 0
    status: ProposalStatus = ProposalStatus.ACTIVE
    executed_at: int | None = None
    executed_by: str | None = None

    def is_expired(self, now: int) -> bool:
        return now > self.expires_at

    def has_passed(self) -> bool:
        return passes(self.votes_for, self.eligible_voters)

    def is_defeated(self) -> bool:
        """True once the remaining uncast votes cannot reach the threshold."""
        return not passes(self.eligible_voters - self.votes_against, self.eligible_voters)

    def current_status(self, now: int) -> ProposalStatus:
        """Status derived from tallies and the clock."""
        if self.status == ProposalStatus.EXECUTED:
            return ProposalStatus.EXECUTED
        if self.is_expired(now):
            return ProposalStatus.EXPIRED
        if self.has_passed():
            return ProposalStatus.PASSED
        if self.is_defeated():
            return ProposalStatus.REJECTED
        return ProposalStatus.ACTIVE

    def is_live(self, now: int) -> bool:
        """Still open for voting or execution."""
        return self.status == ProposalStatus.ACTIVE and not self.is_expired(now)

    def to_dict(self, now: int | None = None) -> dict[str, Any]:
        data = {
            "proposal_id": self.proposal_id,
            "work_id": self.work_id,
            "proposer": self.proposer,
            "proposal_type": self.proposal_type.value,
            "target": self.target,
            "new_percentage": self.new_percentage,
            "description": self.description,
            "votes_for": self.votes_for,
            "votes_against": self.votes_against,
            "eligible_voters": self.eligible_voters,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "status": self.status.value,
            "executed_at": self.executed_at,
            "executed_by": self.executed_by,
        }
        if now is not None:
            data["current_status"] = self.current_status(now).value
        return data


# =============================================================================
# Engine
# =============================================================================


class GovernanceEngine:
    """Proposal creation, voting, threshold evaluation and execution."""

    def __init__(
        self,
        registry: WorkRegistry,
        lock_manager: LockManager,
        clock: BlockClock,
        voting_period: int = VOTING_PERIOD_BLOCKS,
        lock_works: bool = False,
    ):
        """
        Args:
            registry: Work registry for eligibility and share records
            lock_manager: Named locks for proposals and works
            clock: Block clock for expiry
            voting_period: Blocks a proposal stays open
            lock_works: Lock a work against payments while it has a live proposal
        """
        if voting_period < 0:
            raise ValueError("voting_period must be non-negative")
        self.registry = registry
        self.lock_manager = lock_manager
        self.clock = clock
        self.voting_period = voting_period
        self.lock_works = lock_works

        self.proposals: dict[int, GovernanceProposal] = {}
        self.votes: dict[tuple[int, str], VoteRecord] = {}
        self.work_proposals: dict[int, list[int]] = {}

        self._next_proposal_id = 1
        self._id_lock = threading.Lock()

    # =========================================================================
    # Proposal Creation
    # =========================================================================

    def create_proposal(
        self,
        caller: str,
        work_id: int,
        proposal_type: ProposalType | str,
        target: str | None = None,
        new_percentage: int | None = None,
        description: str = "",
    ) -> int:
        """
        Open a proposal on a work.

        Raises:
            WorkNotFoundError: Unknown work
            UnauthorizedError: Governance disabled, or caller not a collaborator
            InvalidProposalError: Unknown type or malformed fields
            InvalidPercentageSetError: With work locking on, a royalty update
                whose percentage is outside (0, 10000]
        """
        work = self.registry.require_work(work_id, action="create_proposal")

        if not work.governance_enabled:
            raise UnauthorizedError(
                f"Governance is not enabled for work {work_id}",
                component="governance",
                action="create_proposal",
                details={"work_id": work_id},
            )
        if not self.registry.is_collaborator(work_id, caller):
            raise UnauthorizedError(
                f"{caller} is not a collaborator of work {work_id}",
                component="governance",
                action="create_proposal",
                details={"work_id": work_id, "caller": caller},
            )

        kind = self._parse_type(proposal_type)
        if new_percentage is not None and (
            not isinstance(new_percentage, int) or isinstance(new_percentage, bool)
        ):
            raise InvalidProposalError(
                "new_percentage must be an integer number of basis points",
                component="governance",
                action="create_proposal",
                details={"new_percentage": repr(new_percentage)},
            )
        if not isinstance(description, str) or len(description) > MAX_DESCRIPTION_LENGTH:
            raise InvalidProposalError(
                f"Description must be a string of at most {MAX_DESCRIPTION_LENGTH} characters",
                component="governance",
                action="create_proposal",
            )
        if self.lock_works and kind == ProposalType.ROYALTY_UPDATE:
            # a proposal that can never execute would hold the work locked until expiry
            self._check_royalty_update(
                work_id, target, new_percentage, action="create_proposal", details={"work_id": work_id}
            )

        now = self.clock.now()
        with self._id_lock:
            proposal_id = self._next_proposal_id
            self._next_proposal_id += 1
            proposal = GovernanceProposal(
                proposal_id=proposal_id,
                work_id=work_id,
                proposer=caller,
                proposal_type=kind,
                eligible_voters=work.collaborator_count,
                created_at=now,
                expires_at=now + self.voting_period,
                target=target,
                new_percentage=new_percentage,
                description=description,
            )
            self.proposals[proposal_id] = proposal
            self.work_proposals.setdefault(work_id, []).append(proposal_id)

        if self.lock_works:
            with self.lock_manager.lock(work_lock_name(work_id)):
                self.registry.set_status(work_id, WorkStatus.LOCKED)

        self.registry.audit.emit(
            "proposal_created",
            now,
            work_id=work_id,
            proposal_id=proposal_id,
            proposer=caller,
            proposal_type=kind.value,
            target=target,
            new_percentage=new_percentage,
        )
        metrics.increment("proposals_created_total", labels={"type": kind.value})
        logger.info(
            "Proposal created",
            extra={
                "proposal_id": proposal_id,
                "work_id": work_id,
                "proposal_type": kind.value,
                "expires_at": proposal.expires_at,
            },
        )
        return proposal_id

    @staticmethod
    def _parse_type(proposal_type: ProposalType | str) -> ProposalType:
        if isinstance(proposal_type, ProposalType):
            return proposal_type
        try:
            return ProposalType(proposal_type)
        except ValueError:
            raise InvalidProposalError(
                f"Unknown proposal type: {proposal_type!r}",
                component="governance",
                action="create_proposal",
                details={"allowed": [t.value for t in ProposalType]},
            ) from None

    # =========================================================================
    # Voting
    # =========================================================================

    def vote_on_proposal(self, caller: str, proposal_id: int, choice: bool) -> bool:
        """
        Cast the caller's single vote on a proposal.

        Raises:
            ProposalNotFoundError: Unknown proposal
            InvalidProposalError: Proposal already executed, or choice not a bool
            ProposalExpiredError: Voting window closed
            UnauthorizedError: Caller is not a collaborator of the work
            AlreadyVotedError: Caller voted before
        """
        if not isinstance(choice, bool):
            raise InvalidProposalError(
                "Vote choice must be true or false",
                component="governance",
                action="vote_on_proposal",
                details={"choice": repr(choice)},
            )

        with self.lock_manager.lock(proposal_lock_name(proposal_id)):
            proposal = self.require_proposal(proposal_id, action="vote_on_proposal")
            now = self.clock.now()

            if proposal.status != ProposalStatus.ACTIVE:
                raise InvalidProposalError(
                    f"Proposal {proposal_id} is {proposal.status.value}",
                    component="governance",
                    action="vote_on_proposal",
                    details={"proposal_id": proposal_id},
                )
            self._check_not_expired(proposal, now, action="vote_on_proposal")
            if not self.registry.is_collaborator(proposal.work_id, caller):
                raise UnauthorizedError(
                    f"{caller} is not a collaborator of work {proposal.work_id}",
                    component="governance",
                    action="vote_on_proposal",
                    details={"proposal_id": proposal_id, "caller": caller},
                )
            if (proposal_id, caller) in self.votes:
                raise AlreadyVotedError(proposal_id, caller)

            self.votes[(proposal_id, caller)] = VoteRecord(
                proposal_id=proposal_id,
                voter=caller,
                choice=choice,
                timestamp=now,
            )
            if choice:
                proposal.votes_for += 1
            else:
                proposal.votes_against += 1

        self.registry.audit.emit(
            "vote_cast",
            now,
            work_id=proposal.work_id,
            proposal_id=proposal_id,
            voter=caller,
            choice=choice,
        )
        metrics.increment("royalty_votes_total", labels={"choice": "for" if choice else "against"})
        logger.info(
            "Vote recorded",
            extra={
                "proposal_id": proposal_id,
                "voter": caller,
                "choice": choice,
                "votes_for": proposal.votes_for,
                "votes_against": proposal.votes_against,
            },
        )
        return True

    # =========================================================================
    # Execution
    # =========================================================================

    def execute_proposal(self, caller: str, proposal_id: int) -> bool:
        """
        Apply a passing, unexpired proposal. Anyone may trigger execution.

        Raises:
            ProposalNotFoundError: Unknown proposal
            InvalidProposalError: Already executed, or royalty update lacks a
                target/percentage or targets a non-collaborator
            ProposalExpiredError: Voting window closed
            ProposalNotPassedError: Threshold not reached
            InvalidPercentageSetError: New percentage outside (0, 10000]
        """
        proposal = self.require_proposal(proposal_id, action="execute_proposal")

        with self.lock_manager.lock(proposal_lock_name(proposal_id)):
            with self.lock_manager.lock(work_lock_name(proposal.work_id)):
                now = self.clock.now()

                if proposal.status == ProposalStatus.EXECUTED:
                    raise InvalidProposalError(
                        f"Proposal {proposal_id} has already been executed",
                        component="governance",
                        action="execute_proposal",
                        details={"proposal_id": proposal_id},
                    )
                self._check_not_expired(proposal, now, action="execute_proposal")
                if not proposal.has_passed():
                    raise ProposalNotPassedError(
                        f"Proposal {proposal_id} has {proposal.votes_for} of "
                        f"{proposal.eligible_voters} votes, below the {PASS_THRESHOLD_PERCENT}% threshold",
                        component="governance",
                        action="execute_proposal",
                        details={
                            "proposal_id": proposal_id,
                            "votes_for": proposal.votes_for,
                            "eligible_voters": proposal.eligible_voters,
                        },
                    )

                effect = self._apply(proposal)

                proposal.status = ProposalStatus.EXECUTED
                proposal.executed_at = now
                proposal.executed_by = caller

                if self.lock_works:
                    self._release_work_if_idle(proposal.work_id, now)

        self.registry.audit.emit(
            "proposal_executed",
            now,
            work_id=proposal.work_id,
            proposal_id=proposal_id,
            executed_by=caller,
            **effect,
        )
        metrics.increment("proposals_executed_total", labels={"type": proposal.proposal_type.value})
        logger.info(
            "Proposal executed",
            extra={"proposal_id": proposal_id, "work_id": proposal.work_id, "executed_by": caller, **effect},
        )
        return True

    def _apply(self, proposal: GovernanceProposal) -> dict[str, Any]:
        if proposal.proposal_type != ProposalType.ROYALTY_UPDATE:
            logger.warning(
                "Proposal type has no execution effect",
                extra={"proposal_id": proposal.proposal_id, "proposal_type": proposal.proposal_type.value},
            )
            return {}

        share = self._check_royalty_update(
            proposal.work_id,
            proposal.target,
            proposal.new_percentage,
            action="execute_proposal",
            details={"proposal_id": proposal.proposal_id},
        )

        previous = share.percentage
        share.percentage = proposal.new_percentage

        share_total = self.registry.share_total(proposal.work_id)
        if share_total != BPS_DENOMINATOR:
            logger.warning(
                "Work shares no longer sum to 100%",
                extra={"work_id": proposal.work_id, "share_total": share_total},
            )
        return {
            "target": proposal.target,
            "previous_percentage": previous,
            "new_percentage": proposal.new_percentage,
            "share_total": share_total,
        }

    def _check_royalty_update(
        self,
        work_id: int,
        target: str | None,
        new_percentage: int | None,
        action: str,
        details: dict[str, Any],
    ) -> RoyaltyShare:
        """Validate a royalty update's fields and return the share it changes."""
        if target is None or new_percentage is None:
            raise InvalidProposalError(
                "Royalty update requires a target collaborator and a new percentage",
                component="governance",
                action=action,
                details=details,
            )
        if not 0 < new_percentage <= BPS_DENOMINATOR:
            raise InvalidPercentageSetError(
                f"New percentage must be in (0, {BPS_DENOMINATOR}] bps",
                component="governance",
                action=action,
                details={**details, "new_percentage": new_percentage},
            )

        share = self.registry.get_royalty_share(work_id, target)
        if share is None:
            raise InvalidProposalError(
                f"{target} holds no share in work {work_id}",
                component="governance",
                action=action,
                details={**details, "target": target},
            )
        return share

    @staticmethod
    def _check_not_expired(proposal: GovernanceProposal, now: int, action: str) -> None:
        if proposal.is_expired(now):
            raise ProposalExpiredError(
                f"Proposal {proposal.proposal_id} expired at block {proposal.expires_at}",
                component="governance",
                action=action,
                details={"proposal_id": proposal.proposal_id, "expires_at": proposal.expires_at, "now": now},
            )

    # =========================================================================
    # Governance Locking
    # =========================================================================

    def refresh_work_lock(self, work_id: int) -> None:
        """Unlock a locked work once none of its proposals is live."""
        if not self.lock_works:
            return
        with self.lock_manager.lock(work_lock_name(work_id)):
            self._release_work_if_idle(work_id, self.clock.now())

    def _release_work_if_idle(self, work_id: int, now: int) -> None:
        work = self.registry.get_work(work_id)
        if work is None or work.status != WorkStatus.LOCKED:
            return
        if not any(p.is_live(now) for p in self.get_work_proposals(work_id)):
            self.registry.set_status(work_id, WorkStatus.ACTIVE)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_proposal(self, proposal_id: int) -> GovernanceProposal | None:
        return self.proposals.get(proposal_id)

    def require_proposal(self, proposal_id: int, action: str = "lookup") -> GovernanceProposal:
        proposal = self.proposals.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(proposal_id, action=action)
        return proposal

    def get_vote(self, proposal_id: int, voter: str) -> VoteRecord | None:
        return self.votes.get((proposal_id, voter))

    def get_proposal_status(self, proposal_id: int) -> ProposalStatus | None:
        proposal = self.proposals.get(proposal_id)
        if proposal is None:
            return None
        return proposal.current_status(self.clock.now())

    def get_work_proposals(self, work_id: int) -> list[GovernanceProposal]:
        return [self.proposals[pid] for pid in self.work_proposals.get(work_id, [])]

    def list_proposals(
        self,
        work_id: int | None = None,
        status: ProposalStatus | None = None,
    ) -> list[GovernanceProposal]:
        """Proposals in id order, optionally filtered by work and derived status."""
        if work_id is not None:
            proposals = self.get_work_proposals(work_id)
        else:
            proposals = [self.proposals[pid] for pid in sorted(self.proposals)]
        if status is None:
            return proposals
        now = self.clock.now()
        return [p for p in proposals if p.current_status(now) == status]
