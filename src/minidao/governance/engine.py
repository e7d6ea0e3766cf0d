"""
Governance engine contract.

``GovernanceEngine`` is the DAO itself: it admits members with a token
allotment, records proposals, tallies weighted votes and finalizes
proposals, dispatching the action of those that pass. Every public
operation is a contract function, so it runs in its own call frame and
either commits completely or leaves no trace.
"""

import json
from typing import Any, List, Optional, Sequence

from ..errors.exceptions import (
    AlreadyFinalizedError,
    AlreadyInitializedError,
    AlreadyVotedError,
    DuplicateMemberError,
    MiniDaoError,
    NotAMemberError,
    ProposalNotFoundError,
    ValidationError,
    VotingClosedError,
)
from ..host.contract import Contract, contract_function
from ..host.numeric import U64_MAX, checked_add, in_range
from ..host.token import TokenClient
from ..logging import get_logger
from .core import (
    GovernanceConfig,
    Member,
    Proposal,
    ProposalStatus,
    normalize_description,
    validate_symbol,
)
from .execution import ExecutionEngine, ExecutionResult
from .observability import EventType
from .state import GovernanceState

logger = get_logger(__name__)


def _is_proposal_id(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _serializable_parameters(parameters: Sequence[Any]) -> List[Any]:
    parameters = list(parameters)
    try:
        json.dumps(parameters)
    except (TypeError, ValueError) as e:
        raise ValidationError(
            f"Proposal parameters must be JSON serializable: {e}",
            field="parameters",
            cause=e,
        ) from e
    return parameters


class GovernanceEngine(Contract):
    """Token-weighted, simple-majority DAO."""

    def __init__(self, env, contract_id: Optional[str] = None, config: Optional[GovernanceConfig] = None):
        super().__init__(env, contract_id)
        self.config = config or GovernanceConfig()
        self.state = GovernanceState(self.storage)
        self.execution_engine = ExecutionEngine(env.dispatcher, self.config.execution_window)

    def _reject(self, error: MiniDaoError) -> MiniDaoError:
        logger.warning(f"Rejected: {error.message}", context=self.env.log_context())
        return error

    def _require_member(self, address: str) -> Member:
        member = self.state.get_member(address)
        if member is None:
            raise self._reject(NotAMemberError(f"{address} is not a member"))
        return member

    def _require_proposal(self, proposal_id: int) -> Proposal:
        if not _is_proposal_id(proposal_id):
            raise self._reject(
                ValidationError("Proposal id must be an integer", field="proposal_id", value=proposal_id)
            )
        proposal = self.state.get_proposal(proposal_id)
        if proposal is None:
            raise self._reject(
                ProposalNotFoundError(f"Proposal {proposal_id} does not exist", proposal_id=proposal_id)
            )
        return proposal

    def _require_initialized(self) -> None:
        try:
            self.state.require_initialized()
        except MiniDaoError as e:
            raise self._reject(e)

    # Lifecycle

    @contract_function
    def initialize(self, admin: str, token_address: str) -> None:
        """Bind the engine to its token; may only happen once."""
        self.env.require_auth(admin)

        if self.state.initialized:
            raise self._reject(
                AlreadyInitializedError(f"Engine {self.contract_id} is already initialized")
            )
        if not token_address:
            raise self._reject(ValidationError("Token address is required", field="token_address"))

        self.state.token_address = token_address
        self.state.proposal_count = 0
        self.state.member_count = 0

        self.env.publish((EventType.INITIALIZED.value, admin), {"token_address": token_address})
        logger.info(f"Initialized with token {token_address}", context=self.env.log_context())

    @contract_function
    def add_member(self, admin: str, new_member: str) -> Member:
        """Admit ``new_member`` and fund their allotment from ``admin``."""
        self.env.require_auth(admin)
        self._require_initialized()

        if self.state.has_member(new_member):
            raise self._reject(DuplicateMemberError(f"{new_member} is already a member"))

        allotment = self.config.member_allotment
        TokenClient(self.env, self.state.token_address).transfer(admin, new_member, allotment)

        member = Member(
            address=new_member,
            token_balance=allotment,
            joined_timestamp=self.env.now(),
        )
        self.state.add_member(member)

        self.env.publish(
            (EventType.MEMBER_ADDED.value, new_member),
            {"admin": admin, "token_balance": allotment, "joined_timestamp": member.joined_timestamp},
        )
        logger.info(f"Added member {new_member} with weight {allotment}", context=self.env.log_context())
        return member

    @contract_function
    def create_proposal(
        self,
        proposer: str,
        description: Any,
        target: str,
        function: str,
        parameters: Sequence[Any],
        deadline_in_seconds: int,
    ) -> int:
        """Record a new active proposal and return its id."""
        self.env.require_auth(proposer)
        self._require_initialized()
        self._require_member(proposer)

        if not in_range(deadline_in_seconds, self.config.min_voting_period, U64_MAX):
            raise self._reject(
                ValidationError(
                    f"Voting period must be at least {self.config.min_voting_period} seconds",
                    field="deadline_in_seconds",
                    value=deadline_in_seconds,
                )
            )

        try:
            description = normalize_description(description)
            validate_symbol(function)
            parameters = _serializable_parameters(parameters)
            deadline = checked_add(self.env.now(), deadline_in_seconds, 0, U64_MAX, "deadline")
            proposal_id = self.state.next_proposal_id()
        except MiniDaoError as e:
            raise self._reject(e)

        proposal = Proposal(
            id=proposal_id,
            proposer=proposer,
            description=description,
            target=target,
            function=function,
            parameters=parameters,
            deadline=deadline,
        )
        self.state.put_proposal(proposal)

        self.env.publish(
            (EventType.PROPOSAL_CREATED.value, proposer),
            {
                "proposal_id": proposal_id,
                "target": target,
                "function": function,
                "deadline": deadline,
            },
        )
        logger.info(f"Created proposal {proposal_id} by {proposer}", context=self.env.log_context())
        return proposal_id

    @contract_function
    def vote(self, voter: str, proposal_id: int, vote_for: bool) -> None:
        """Cast ``voter``'s join-time weight for or against a proposal."""
        self.env.require_auth(voter)
        self._require_initialized()
        member = self._require_member(voter)
        proposal = self._require_proposal(proposal_id)

        if member.has_voted(proposal_id):
            raise self._reject(
                AlreadyVotedError(f"{voter} already voted on proposal {proposal_id}", proposal_id=proposal_id)
            )

        if proposal.status.is_terminal:
            raise self._reject(
                AlreadyFinalizedError(
                    f"Proposal {proposal_id} is already {proposal.status.value}",
                    proposal_id=proposal_id,
                )
            )

        if not proposal.voting_open(self.env.now()):
            raise self._reject(
                VotingClosedError(
                    f"Voting on proposal {proposal_id} closed at {proposal.deadline}",
                    proposal_id=proposal_id,
                )
            )

        proposal.add_votes(member.voting_weight, bool(vote_for))
        member.record_vote(proposal_id)
        self.state.put_proposal(proposal)
        self.state.put_member(member)

        self.env.publish(
            (EventType.VOTE_CAST.value, voter),
            {"proposal_id": proposal_id, "vote_for": bool(vote_for), "weight": member.voting_weight},
        )
        logger.debug(
            f"{voter} voted {'for' if vote_for else 'against'} proposal {proposal_id}",
            context=self.env.log_context(),
        )

    @contract_function
    def execute_proposal(self, caller: str, proposal_id: int) -> ExecutionResult:
        """Finalize a proposal; passing proposals dispatch their action."""
        self.env.require_auth(caller)
        self._require_initialized()
        proposal = self._require_proposal(proposal_id)

        try:
            result = self.execution_engine.execute(
                proposal, self.env.now(), persist=self.state.put_proposal
            )
        except MiniDaoError as e:
            raise self._reject(e)

        self.state.put_proposal(proposal)

        event_type = (
            EventType.PROPOSAL_EXECUTED if result.is_successful() else EventType.PROPOSAL_REJECTED
        )
        self.env.publish(
            (event_type.value, caller),
            {
                "proposal_id": proposal_id,
                "votes_for": proposal.votes_for,
                "votes_against": proposal.votes_against,
            },
        )
        logger.info(
            f"Proposal {proposal_id} {proposal.status.value}", context=self.env.log_context()
        )
        return result

    # Reads

    def get_member(self, address: str) -> Optional[Member]:
        if not self.state.initialized:
            return None
        return self.state.get_member(address)

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        if not self.state.initialized or not _is_proposal_id(proposal_id):
            return None
        return self.state.get_proposal(proposal_id)

    def get_token_address(self) -> Optional[str]:
        return self.state.token_address

    def get_proposal_count(self) -> int:
        return self.state.proposal_count

    def get_member_count(self) -> int:
        return self.state.member_count

    def has_voted(self, address: str, proposal_id: int) -> bool:
        member = self.get_member(address)
        return member is not None and member.has_voted(proposal_id)

    def list_members(self) -> List[Member]:
        if not self.state.initialized:
            return []
        return list(self.state.iter_members())

    def list_proposals(self, status: Optional[ProposalStatus] = None) -> List[Proposal]:
        """Proposals in id order, optionally filtered by status."""
        if not self.state.initialized:
            return []
        return [p for p in self.state.iter_proposals() if status is None or p.status == status]
