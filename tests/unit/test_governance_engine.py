"""
Unit tests for the governance engine contract.

This module tests initialization, membership, proposal creation, voting and
execution through the engine's public contract functions.
"""

import logging

logger = logging.getLogger(__name__)
import pytest

from minidao.crypto.hashing import SHA256Hasher
from minidao.errors.exceptions import (
    AlreadyFinalizedError,
    AlreadyInitializedError,
    AlreadyVotedError,
    ArithmeticOverflowError,
    DuplicateMemberError,
    ExternalCallFailedError,
    InsufficientBalanceError,
    NotAMemberError,
    NotInitializedError,
    ProposalNotFoundError,
    ReentrantCallError,
    ValidationError,
    VotingClosedError,
    VotingStillOpenError,
)
from minidao.governance import (
    ExecutionWindow,
    GovernanceConfig,
    GovernanceEngine,
    ProposalStatus,
)
from minidao.host import Contract, Environment, ManualClock, Token, contract_function
from minidao.host.numeric import U64_MAX
from minidao.logging import LogConfig, LogLevel, setup_logging, shutdown_logging
from minidao.storage.store import StorageScope

ADMIN = "admin"
START = 1_000
DESCRIPTION = SHA256Hasher.hash("proposal text").value


class Target(Contract):
    """Contract acted on by proposals."""

    def __init__(self, env, contract_id=None):
        super().__init__(env, contract_id)
        self.calls = []

    @contract_function
    def set_value(self, value):
        self.storage.set(StorageScope.PERSISTENT, "value", value)
        self.calls.append(value)
        return value * 2

    @contract_function
    def fail(self, reason):
        self.storage.set(StorageScope.PERSISTENT, "value", "partial")
        raise ValidationError(reason)

    def value(self):
        return self.storage.get(StorageScope.PERSISTENT, "value")


class Reentrant(Contract):
    """Proposal target that tries to execute the proposal again."""

    def __init__(self, env, contract_id=None):
        super().__init__(env, contract_id)
        self.payouts = 0
        self.callback_errors = []

    @contract_function
    def payout(self, proposal_id):
        self.payouts += 1
        try:
            self.env.invoke_contract("CDAO", "execute_proposal", [self.contract_id, proposal_id])
        except ExternalCallFailedError as e:
            self.callback_errors.append(e.cause)
        return self.payouts


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def env(clock):
    return Environment(clock=clock)


@pytest.fixture
def token(env):
    token = Token(env, contract_id="CTOKEN")
    token.initialize(ADMIN)
    token.mint(ADMIN, 10_000)
    return token


@pytest.fixture
def target(env):
    return Target(env, contract_id="CTARGET")


@pytest.fixture
def engine(env, token):
    engine = GovernanceEngine(env, contract_id="CDAO")
    engine.initialize(ADMIN, token.contract_id)
    return engine


@pytest.fixture
def members(engine):
    for name in ("alice", "bob", "carol"):
        engine.add_member(ADMIN, name)
    return ["alice", "bob", "carol"]


def propose(engine, proposer="alice", function="set_value", parameters=(7,), seconds=100):
    return engine.create_proposal(proposer, DESCRIPTION, "CTARGET", function, list(parameters), seconds)


class TestInitialize:
    """Test engine initialization."""

    def test_initialize(self, env, engine):
        assert engine.get_token_address() == "CTOKEN"
        assert engine.get_proposal_count() == 0
        assert engine.get_member_count() == 0
        assert [e.name for e in env.events_for("CDAO")] == ["initialized"]

    def test_initialize_requires_admin_auth(self, env, engine):
        calls = env.authorizer.authorized_by(ADMIN)

        assert any(inv.contract_id == "CDAO" and inv.function == "initialize" for inv in calls)

    def test_second_initialize_rejected(self, engine, members):
        propose(engine)

        with pytest.raises(AlreadyInitializedError) as exc_info:
            engine.initialize(ADMIN, "COTHER")

        assert exc_info.value.error_code == "AlreadyInitialized"
        assert engine.get_token_address() == "CTOKEN"
        assert engine.get_proposal_count() == 1
        assert engine.get_member("alice") is not None

    def test_uninitialized_engine(self, env):
        engine = GovernanceEngine(env, contract_id="CFRESH")

        with pytest.raises(NotInitializedError):
            engine.add_member(ADMIN, "alice")
        with pytest.raises(NotInitializedError):
            engine.vote("alice", 1, True)
        assert engine.get_member("alice") is None
        assert engine.get_proposal(1) is None
        assert engine.list_proposals() == []


class TestAddMember:
    """Test member admission."""

    def test_new_member(self, clock, token, engine):
        member = engine.add_member(ADMIN, "alice")

        assert member.token_balance == 100
        assert member.voted_proposals == []
        assert member.joined_timestamp == START
        assert engine.get_member("alice") == member
        assert engine.get_member_count() == 1
        assert token.balance("alice") == 100
        assert token.balance(ADMIN) == 9_900

    def test_custom_allotment(self, env, token):
        engine = GovernanceEngine(env, contract_id="CBIG", config=GovernanceConfig(member_allotment=250))
        engine.initialize(ADMIN, token.contract_id)

        assert engine.add_member(ADMIN, "alice").token_balance == 250
        assert token.balance("alice") == 250

    def test_duplicate_member_rejected(self, token, engine):
        engine.add_member(ADMIN, "alice")

        with pytest.raises(DuplicateMemberError):
            engine.add_member(ADMIN, "alice")

        assert token.balance("alice") == 100
        assert engine.get_member_count() == 1

    def test_failed_transfer_commits_nothing(self, env, engine):
        events_before = len(env.events)

        with pytest.raises(ExternalCallFailedError) as exc_info:
            engine.add_member("pauper", "alice")

        assert isinstance(exc_info.value.cause, InsufficientBalanceError)
        assert engine.get_member("alice") is None
        assert engine.get_member_count() == 0
        assert len(env.events) == events_before

    def test_member_added_event(self, env, engine):
        engine.add_member(ADMIN, "alice")

        names = [e.name for e in env.events]
        assert "transfer" in names
        event = env.events_for("CDAO", "member_added")[0]
        assert event.topics == ("member_added", "alice")
        assert event.data["token_balance"] == 100


class TestCreateProposal:
    """Test proposal creation."""

    def test_ids_are_dense(self, engine, members):
        ids = [propose(engine, proposer=m) for m in members]

        assert ids == [1, 2, 3]
        assert engine.get_proposal_count() == 3

    def test_proposal_fields(self, engine, members):
        proposal_id = propose(engine, parameters=(1, "two"), seconds=60)
        proposal = engine.get_proposal(proposal_id)

        assert proposal.proposer == "alice"
        assert proposal.description == DESCRIPTION
        assert proposal.target == "CTARGET"
        assert proposal.function == "set_value"
        assert proposal.parameters == [1, "two"]
        assert proposal.deadline == START + 60
        assert proposal.status == ProposalStatus.ACTIVE
        assert (proposal.votes_for, proposal.votes_against) == (0, 0)

    def test_non_member_rejected(self, engine, members):
        with pytest.raises(NotAMemberError):
            propose(engine, proposer="mallory")
        assert engine.get_proposal_count() == 0

    @pytest.mark.parametrize("seconds", [0, -5])
    def test_non_positive_period_rejected(self, engine, members, seconds):
        with pytest.raises(ValidationError):
            propose(engine, seconds=seconds)
        assert engine.get_proposal_count() == 0

    def test_min_voting_period(self, env, token):
        engine = GovernanceEngine(env, contract_id="CSLOW", config=GovernanceConfig(min_voting_period=3600))
        engine.initialize(ADMIN, token.contract_id)
        engine.add_member(ADMIN, "alice")

        with pytest.raises(ValidationError):
            propose(engine, seconds=60)
        assert propose(engine, seconds=3600) == 1

    def test_deadline_overflow(self, clock, engine, members):
        clock.set(U64_MAX - 5)

        with pytest.raises(ArithmeticOverflowError) as exc_info:
            propose(engine, seconds=10)

        assert exc_info.value.error_code == "Overflow"
        assert engine.get_proposal_count() == 0

    def test_parameters_must_serialize(self, engine, members):
        with pytest.raises(ValidationError):
            propose(engine, parameters=(object(),))

    def test_duplicate_descriptions_allowed(self, engine, members):
        assert propose(engine) == 1
        assert propose(engine) == 2


class TestVote:
    """Test voting."""

    def test_vote_weights(self, engine, members):
        proposal_id = propose(engine)

        engine.vote("alice", proposal_id, True)
        engine.vote("bob", proposal_id, True)
        engine.vote("carol", proposal_id, False)

        proposal = engine.get_proposal(proposal_id)
        assert proposal.votes_for == 200
        assert proposal.votes_against == 100
        assert engine.has_voted("alice", proposal_id) is True
        assert engine.get_member("carol").voted_proposals == [proposal_id]

    def test_second_vote_rejected(self, engine, members):
        proposal_id = propose(engine)
        engine.vote("alice", proposal_id, True)

        with pytest.raises(AlreadyVotedError):
            engine.vote("alice", proposal_id, False)

        proposal = engine.get_proposal(proposal_id)
        assert (proposal.votes_for, proposal.votes_against) == (100, 0)

    def test_missing_proposal(self, env, engine, members):
        propose(engine)
        events_before = len(env.events)

        with pytest.raises(ProposalNotFoundError) as exc_info:
            engine.vote("alice", 99, True)

        assert exc_info.value.proposal_id == 99
        assert engine.get_member("alice").voted_proposals == []
        assert len(env.events) == events_before

    def test_string_proposal_id_rejected(self, engine, members):
        proposal_id = propose(engine)

        with pytest.raises(ValidationError):
            engine.vote("alice", str(proposal_id), True)

        assert engine.get_proposal(str(proposal_id)) is None
        assert engine.get_proposal(proposal_id).votes_for == 0

    def test_non_member_cannot_vote(self, engine, members):
        proposal_id = propose(engine)

        with pytest.raises(NotAMemberError):
            engine.vote("mallory", proposal_id, True)

    def test_vote_at_deadline_is_open(self, clock, engine, members):
        proposal_id = propose(engine, seconds=100)
        clock.set(START + 100)

        engine.vote("alice", proposal_id, True)

        assert engine.get_proposal(proposal_id).votes_for == 100

    def test_vote_after_deadline_closed(self, clock, engine, members):
        proposal_id = propose(engine, seconds=100)
        clock.set(START + 101)

        with pytest.raises(VotingClosedError):
            engine.vote("alice", proposal_id, True)
        assert engine.has_voted("alice", proposal_id) is False

    def test_vote_on_finalized_proposal(self, clock, engine, target, members):
        proposal_id = propose(engine, seconds=100)
        clock.set(START + 101)
        engine.execute_proposal("alice", proposal_id)

        with pytest.raises(AlreadyFinalizedError):
            engine.vote("bob", proposal_id, True)

    def test_weight_is_join_time_snapshot(self, token, engine, members):
        token.transfer("alice", "bob", 100)
        assert token.balance("alice") == 0

        proposal_id = propose(engine)
        engine.vote("alice", proposal_id, True)

        assert engine.get_proposal(proposal_id).votes_for == 100

    def test_error_context(self, clock, engine, members):
        with pytest.raises(ProposalNotFoundError) as exc_info:
            engine.vote("alice", 5, True)

        context = exc_info.value.context
        assert context.contract_id == "CDAO"
        assert context.function == "vote"
        assert context.ledger_timestamp == START


class TestExecuteProposal:
    """Test proposal execution."""

    def test_execution_before_deadline_rejected(self, engine, target, members):
        proposal_id = propose(engine, seconds=100)
        engine.vote("alice", proposal_id, True)

        with pytest.raises(VotingStillOpenError):
            engine.execute_proposal("alice", proposal_id)

        assert engine.get_proposal(proposal_id).status == ProposalStatus.ACTIVE
        assert target.calls == []

    def test_passing_proposal_dispatches_once(self, env, clock, engine, target, members):
        proposal_id = propose(engine, parameters=(21,), seconds=100)
        engine.vote("alice", proposal_id, True)
        clock.set(START + 101)

        result = engine.execute_proposal("dave", proposal_id)

        assert result.is_successful()
        assert result.return_value == 42
        assert result.executed_at == START + 101
        assert target.calls == [21]
        assert target.value() == 21
        assert engine.get_proposal(proposal_id).status == ProposalStatus.EXECUTED
        assert env.events_for("CDAO", "proposal_executed")[0].data["proposal_id"] == proposal_id

    def test_tie_is_rejected(self, env, clock, engine, target, members):
        proposal_id = propose(engine)
        engine.vote("alice", proposal_id, True)
        engine.vote("bob", proposal_id, False)
        clock.advance(101)

        result = engine.execute_proposal("alice", proposal_id)

        assert result.is_rejected()
        assert result.return_value is None
        assert target.calls == []
        assert engine.get_proposal(proposal_id).status == ProposalStatus.REJECTED
        assert len(env.events_for("CDAO", "proposal_rejected")) == 1

    def test_no_votes_is_rejected(self, clock, engine, target, members):
        proposal_id = propose(engine)
        clock.advance(101)

        assert engine.execute_proposal("alice", proposal_id).status == ProposalStatus.REJECTED

    @pytest.mark.parametrize("vote_for", [True, False])
    def test_reexecution_rejected(self, clock, engine, target, members, vote_for):
        proposal_id = propose(engine)
        engine.vote("alice", proposal_id, vote_for)
        clock.advance(101)
        engine.execute_proposal("alice", proposal_id)

        with pytest.raises(AlreadyFinalizedError):
            engine.execute_proposal("alice", proposal_id)

        assert len(target.calls) == (1 if vote_for else 0)

    def test_failed_dispatch_rolls_back(self, env, clock, engine, target, members):
        proposal_id = propose(engine, function="fail", parameters=("boom",))
        engine.vote("alice", proposal_id, True)
        clock.advance(101)
        events_before = len(env.events)

        with pytest.raises(ExternalCallFailedError) as exc_info:
            engine.execute_proposal("alice", proposal_id)

        assert isinstance(exc_info.value.cause, ValidationError)
        assert engine.get_proposal(proposal_id).status == ProposalStatus.ACTIVE
        assert target.value() is None
        assert len(env.events) == events_before

    def test_target_cannot_execute_again(self, env, clock, engine, members):
        reentrant = Reentrant(env, contract_id="CREENTRANT")
        proposal_id = engine.create_proposal("alice", DESCRIPTION, "CREENTRANT", "payout", [1], 100)
        engine.vote("alice", proposal_id, True)
        clock.advance(101)

        result = engine.execute_proposal("alice", proposal_id)

        assert result.return_value == 1
        assert reentrant.payouts == 1
        assert isinstance(reentrant.callback_errors[0], ReentrantCallError)
        assert engine.get_proposal(proposal_id).status == ProposalStatus.EXECUTED
        assert len(env.events_for("CDAO", "proposal_executed")) == 1

    def test_self_targeted_proposal_sees_itself_executed(self, env, clock, engine, members):
        proposal_id = engine.create_proposal("alice", DESCRIPTION, "CDAO", "execute_proposal", ["alice", 1], 100)
        engine.vote("alice", proposal_id, True)
        clock.advance(101)

        with pytest.raises(ExternalCallFailedError) as exc_info:
            engine.execute_proposal("alice", proposal_id)

        assert isinstance(exc_info.value.cause, AlreadyFinalizedError)
        assert engine.get_proposal(proposal_id).status == ProposalStatus.ACTIVE
        assert env.events_for("CDAO", "proposal_executed") == []

    def test_string_proposal_id_rejected(self, clock, engine, target, members):
        proposal_id = propose(engine)
        engine.vote("alice", proposal_id, True)
        clock.advance(101)

        with pytest.raises(ValidationError):
            engine.execute_proposal("alice", str(proposal_id))

        assert target.calls == []

    def test_unknown_target(self, clock, engine, members):
        proposal_id = engine.create_proposal("alice", DESCRIPTION, "CMISSING", "anything", [], 100)
        engine.vote("alice", proposal_id, True)
        clock.advance(101)

        with pytest.raises(ExternalCallFailedError):
            engine.execute_proposal("alice", proposal_id)

    def test_missing_proposal(self, engine, members):
        with pytest.raises(ProposalNotFoundError):
            engine.execute_proposal("alice", 1)

    def test_before_deadline_window(self, env, clock, token, target):
        config = GovernanceConfig(execution_window=ExecutionWindow.BEFORE_DEADLINE)
        engine = GovernanceEngine(env, contract_id="CLEGACY", config=config)
        engine.initialize(ADMIN, token.contract_id)
        engine.add_member(ADMIN, "alice")

        first = propose(engine, seconds=100)
        engine.vote("alice", first, True)
        clock.set(START + 100)
        assert engine.execute_proposal("alice", first).is_successful()

        second = propose(engine, seconds=10)
        clock.advance(11)
        with pytest.raises(VotingClosedError):
            engine.execute_proposal("alice", second)

    def test_list_proposals(self, clock, engine, target, members):
        first = propose(engine)
        second = propose(engine)
        clock.advance(101)
        engine.execute_proposal("alice", first)

        assert [p.id for p in engine.list_proposals()] == [first, second]
        assert [p.id for p in engine.list_proposals(ProposalStatus.ACTIVE)] == [second]

    def test_list_members(self, engine, members):
        listed = engine.list_members()

        assert sorted(m.address for m in listed) == members
        assert all(m.token_balance == 100 for m in listed)


class TestEngineLogging:
    """Test structured logging of engine calls."""

    @pytest.fixture
    def memory_logs(self):
        manager = setup_logging(LogConfig(level=LogLevel.INFO, handlers=["memory"]))
        yield manager.get_handler("memory")
        shutdown_logging()

    def test_rejection_logged_as_warning(self, engine, members, memory_logs):
        memory_logs.clear_logs()

        with pytest.raises(ProposalNotFoundError):
            engine.vote("alice", 42, True)

        warnings = [log for log in memory_logs.get_logs() if log["level"] == "warning"]
        assert len(warnings) == 1
        assert "Proposal 42 does not exist" in warnings[0]["message"]
        assert warnings[0]["context"]["contract_id"] == "CDAO"
        assert warnings[0]["context"]["function"] == "vote"

    def test_commits_logged_as_info(self, engine, memory_logs):
        engine.add_member(ADMIN, "alice")

        messages = [log["message"] for log in memory_logs.get_logs() if log["level"] == "info"]
        assert any("Added member alice" in message for message in messages)

    def test_invalid_parameters_logged_as_warning(self, engine, members, memory_logs):
        memory_logs.clear_logs()

        with pytest.raises(ValidationError):
            propose(engine, parameters=(object(),))

        warnings = [log for log in memory_logs.get_logs() if log["level"] == "warning"]
        assert len(warnings) == 1
        assert "JSON serializable" in warnings[0]["message"]
        assert warnings[0]["context"]["function"] == "create_proposal"

    def test_missing_token_address_logged_as_warning(self, env, memory_logs):
        engine = GovernanceEngine(env, contract_id="CFRESH")
        memory_logs.clear_logs()

        with pytest.raises(ValidationError):
            engine.initialize(ADMIN, "")

        messages = [log["message"] for log in memory_logs.get_logs() if log["level"] == "warning"]
        assert messages == ["Rejected: Token address is required"]
