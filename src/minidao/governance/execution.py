"""
Proposal execution.

This module decides whether a proposal may be finalized at the current
ledger time, applies the simple-majority rule and dispatches the external
action of passing proposals.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

from ..errors.exceptions import AlreadyFinalizedError, VotingClosedError, VotingStillOpenError
from ..host.dispatch import ExternalDispatcher
from ..logging import get_logger
from .core import ExecutionWindow, Proposal, ProposalStatus

logger = get_logger(__name__)


@dataclass
class ExecutionResult:
    """Result of proposal execution."""

    proposal_id: int
    status: ProposalStatus
    executed_at: int
    return_value: Any = None
    votes_for: int = 0
    votes_against: int = 0

    def is_successful(self) -> bool:
        """Check if the proposal passed and its action ran."""
        return self.status == ProposalStatus.EXECUTED

    def is_rejected(self) -> bool:
        return self.status == ProposalStatus.REJECTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "status": self.status.value,
            "executed_at": self.executed_at,
            "return_value": self.return_value,
            "votes_for": self.votes_for,
            "votes_against": self.votes_against,
        }


class ExecutionEngine:
    """Finalizes proposals and dispatches their actions."""

    def __init__(
        self,
        dispatcher: ExternalDispatcher,
        window: ExecutionWindow = ExecutionWindow.AFTER_DEADLINE,
    ):
        self.dispatcher = dispatcher
        self.window = window

    def check_window(self, proposal: Proposal, now: int) -> None:
        """Raise unless ``proposal`` may be finalized at ``now``."""
        if not proposal.is_active:
            raise AlreadyFinalizedError(
                f"Proposal {proposal.id} is already {proposal.status.value}",
                proposal_id=proposal.id,
            )

        if self.window is ExecutionWindow.AFTER_DEADLINE:
            if proposal.voting_open(now):
                raise VotingStillOpenError(
                    f"Voting on proposal {proposal.id} is open until {proposal.deadline}",
                    proposal_id=proposal.id,
                )
        elif not proposal.voting_open(now):
            raise VotingClosedError(
                f"Proposal {proposal.id} could only be executed until {proposal.deadline}",
                proposal_id=proposal.id,
            )

    def execute(
        self,
        proposal: Proposal,
        now: int,
        persist: Optional[Callable[[Proposal], None]] = None,
    ) -> ExecutionResult:
        """Finalize ``proposal``, dispatching its action if it passed.

        ``persist`` receives the executed proposal before the dispatch, so a
        target calling back into the engine already sees it finalized. A
        failing dispatch propagates and ``proposal`` stays active; the
        caller's call frame discards everything else done so far, including
        the persisted status.
        """
        self.check_window(proposal, now)

        return_value: Optional[Any] = None
        if proposal.passes():
            if persist is not None:
                persist(replace(proposal, status=ProposalStatus.EXECUTED))
            return_value = self.dispatcher.invoke(
                proposal.target, proposal.function, list(proposal.parameters)
            )
            proposal.transition(ProposalStatus.EXECUTED)
        else:
            proposal.transition(ProposalStatus.REJECTED)

        result = ExecutionResult(
            proposal_id=proposal.id,
            status=proposal.status,
            executed_at=now,
            return_value=return_value,
            votes_for=proposal.votes_for,
            votes_against=proposal.votes_against,
        )
        logger.debug(
            f"Proposal {proposal.id} finalized as {proposal.status.value} "
            f"({proposal.votes_for} for, {proposal.votes_against} against)"
        )
        return result
