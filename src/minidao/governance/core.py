"""
Core governance types and data structures.

This module defines the members, proposals, proposal statuses and the
configuration of the governance engine, together with their dictionary
encodings used by the persistent store.
"""

import logging

logger = logging.getLogger(__name__)
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Union

from ..crypto.hashing import HASH_SIZE, Hash
from ..errors.exceptions import AlreadyFinalizedError, ConfigurationError, ValidationError
from ..host.numeric import I128_MAX, I128_MIN, U32_MAX, U64_MAX, checked_add, in_range

DEFAULT_MEMBER_ALLOTMENT = 100

_SYMBOL_RE = re.compile(r"^[A-Za-z0-9_]{1,32}$")


class ProposalStatus(Enum):
    """Status of a governance proposal."""

    ACTIVE = "active"
    EXECUTED = "executed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ProposalStatus.ACTIVE


# The only transitions a proposal may make.
ALLOWED_TRANSITIONS = {
    ProposalStatus.ACTIVE: frozenset({ProposalStatus.EXECUTED, ProposalStatus.REJECTED}),
    ProposalStatus.EXECUTED: frozenset(),
    ProposalStatus.REJECTED: frozenset(),
}


class ExecutionWindow(Enum):
    """When ``execute_proposal`` may run relative to the proposal deadline."""

    # Execute only once voting has concluded: now > deadline.
    AFTER_DEADLINE = "after_deadline"
    # Execute while voting is still open: now <= deadline.
    BEFORE_DEADLINE = "before_deadline"


class DataKey(Enum):
    """Keys of the engine's persistent state."""

    TOKEN_ADDRESS = "TokenAddress"
    PROPOSAL_COUNT = "ProposalCount"
    MEMBER_COUNT = "MemberCount"
    MEMBER = "Member"
    PROPOSAL = "Proposal"

    def key(self, *parts: Any) -> str:
        """Storage key, with entity id parts for per-entity keys."""
        if not parts:
            return self.value
        return ":".join([self.value, *(str(p) for p in parts)])


def normalize_description(description: Union[bytes, bytearray, Hash, str]) -> bytes:
    """Coerce a proposal description to its 32-byte form."""
    if isinstance(description, Hash):
        return description.value
    if isinstance(description, str):
        try:
            description = bytes.fromhex(description)
        except ValueError as e:
            raise ValidationError(
                "Description string must be hex encoded", field="description", value=description
            ) from e
    if not isinstance(description, (bytes, bytearray)) or len(description) != HASH_SIZE:
        raise ValidationError(
            f"Description must be exactly {HASH_SIZE} bytes",
            field="description",
            value=description,
            expected=HASH_SIZE,
        )
    return bytes(description)


def validate_symbol(name: str) -> str:
    """Check a contract function name."""
    if not isinstance(name, str) or not _SYMBOL_RE.match(name):
        raise ValidationError(
            "Function name must be 1-32 characters of [A-Za-z0-9_]",
            field="function",
            value=name,
        )
    return name


@dataclass
class Member:
    """A registered participant with a fixed voting weight."""

    address: str
    token_balance: int
    joined_timestamp: int
    voted_proposals: List[int] = field(default_factory=list)

    def __post_init__(self):
        if not self.address:
            raise ValidationError("Member must have an address", field="address")

        if not in_range(self.token_balance, I128_MIN, I128_MAX):
            raise ValidationError(
                "Token balance must be a 128-bit signed integer",
                field="token_balance",
                value=self.token_balance,
            )

        if not in_range(self.joined_timestamp, 0, U64_MAX):
            raise ValidationError(
                "Join timestamp must be a 64-bit unsigned integer",
                field="joined_timestamp",
                value=self.joined_timestamp,
            )

    @property
    def voting_weight(self) -> int:
        """Weight recorded at join time; balances are not re-queried."""
        return self.token_balance

    def has_voted(self, proposal_id: int) -> bool:
        return proposal_id in self.voted_proposals

    def record_vote(self, proposal_id: int) -> None:
        if self.has_voted(proposal_id):
            raise ValidationError(
                f"{self.address} already recorded a vote on {proposal_id}",
                field="proposal_id",
                value=proposal_id,
            )
        self.voted_proposals.append(proposal_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert member to dictionary."""
        return {
            "address": self.address,
            "token_balance": self.token_balance,
            "joined_timestamp": self.joined_timestamp,
            "voted_proposals": list(self.voted_proposals),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Member":
        """Create member from dictionary."""
        return cls(
            address=data["address"],
            token_balance=data["token_balance"],
            joined_timestamp=data["joined_timestamp"],
            voted_proposals=list(data.get("voted_proposals", [])),
        )


@dataclass
class Proposal:
    """A governance proposal and its running tally."""

    id: int
    proposer: str
    description: bytes
    target: str
    function: str
    parameters: List[Any]
    deadline: int
    votes_for: int = 0
    votes_against: int = 0
    status: ProposalStatus = ProposalStatus.ACTIVE

    def __post_init__(self):
        """Validate proposal after initialization."""
        if not in_range(self.id, 1, U32_MAX):
            raise ValidationError("Proposal id must be in 1..2^32-1", field="id", value=self.id)

        if not self.proposer:
            raise ValidationError("Proposal must have a proposer", field="proposer")

        if not self.target:
            raise ValidationError("Proposal must have a target", field="target")

        self.description = normalize_description(self.description)
        validate_symbol(self.function)
        self.parameters = list(self.parameters)

        if not in_range(self.deadline, 0, U64_MAX):
            raise ValidationError(
                "Deadline must be a 64-bit unsigned integer", field="deadline", value=self.deadline
            )

        for name in ("votes_for", "votes_against"):
            if not in_range(getattr(self, name), I128_MIN, I128_MAX):
                raise ValidationError(
                    f"{name} must be a 128-bit signed integer",
                    field=name,
                    value=getattr(self, name),
                )

    @property
    def is_active(self) -> bool:
        return self.status is ProposalStatus.ACTIVE

    def voting_open(self, now: int) -> bool:
        """Votes are accepted up to and including the deadline second."""
        return now <= self.deadline

    def passes(self) -> bool:
        """Simple majority; a tie does not pass."""
        return self.votes_for > self.votes_against

    def add_votes(self, weight: int, vote_for: bool) -> None:
        """Add ``weight`` to one side of the tally."""
        if vote_for:
            self.votes_for = checked_add(self.votes_for, weight, I128_MIN, I128_MAX, "votes_for")
        else:
            self.votes_against = checked_add(
                self.votes_against, weight, I128_MIN, I128_MAX, "votes_against"
            )

    def transition(self, status: ProposalStatus) -> None:
        """Move to ``status``; terminal statuses are final."""
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise AlreadyFinalizedError(
                f"Proposal {self.id} is {self.status.value}, cannot become {status.value}",
                proposal_id=self.id,
            )
        self.status = status

    def get_vote_summary(self) -> Dict[str, Any]:
        """Get summary of votes for this proposal."""
        return {
            "votes_for": self.votes_for,
            "votes_against": self.votes_against,
            "total_voting_power": self.votes_for + self.votes_against,
            "passes": self.passes(),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert proposal to dictionary."""
        return {
            "id": self.id,
            "proposer": self.proposer,
            "description": self.description.hex(),
            "target": self.target,
            "function": self.function,
            "parameters": list(self.parameters),
            "votes_for": self.votes_for,
            "votes_against": self.votes_against,
            "status": self.status.value,
            "deadline": self.deadline,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Proposal":
        """Create proposal from dictionary."""
        return cls(
            id=data["id"],
            proposer=data["proposer"],
            description=bytes.fromhex(data["description"]),
            target=data["target"],
            function=data["function"],
            parameters=list(data.get("parameters", [])),
            deadline=data["deadline"],
            votes_for=data.get("votes_for", 0),
            votes_against=data.get("votes_against", 0),
            status=ProposalStatus(data.get("status", ProposalStatus.ACTIVE.value)),
        )


@dataclass
class GovernanceConfig:
    """Configuration for the governance engine."""

    # Tokens transferred from the admin to each new member; also their voting weight.
    member_allotment: int = DEFAULT_MEMBER_ALLOTMENT
    execution_window: ExecutionWindow = ExecutionWindow.AFTER_DEADLINE
    # Shortest voting period a proposal may request, in seconds.
    min_voting_period: int = 1

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.execution_window, str):
            self.execution_window = ExecutionWindow(self.execution_window)
        self.validate()

    def validate(self) -> None:
        """Validate configuration."""
        if not in_range(self.member_allotment, 1, I128_MAX):
            raise ConfigurationError(
                "Member allotment must be a positive 128-bit integer",
                config_key="member_allotment",
            )

        if not isinstance(self.execution_window, ExecutionWindow):
            raise ConfigurationError(
                f"Unknown execution window: {self.execution_window!r}",
                config_key="execution_window",
            )

        if not in_range(self.min_voting_period, 1, U64_MAX):
            raise ConfigurationError(
                "Minimum voting period must be at least one second",
                config_key="min_voting_period",
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GovernanceConfig":
        """Create configuration from a plain mapping, ignoring unknown keys."""
        known = {"member_allotment", "execution_window", "min_voting_period"}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown governance settings: {sorted(unknown)}")
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except ValueError as e:
            raise ConfigurationError(f"Invalid governance settings: {e}", cause=e) from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "member_allotment": self.member_allotment,
            "execution_window": self.execution_window.value,
            "min_voting_period": self.min_voting_period,
        }
