"""
Audit trail for governance.

This module records the engine's committed events as a hash-chained log,
indexed by proposal and by member, so that an observer can reconstruct and
verify what the engine did.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from ..crypto.hashing import SHA256Hasher
from ..host.events import ContractEvent


class EventType(Enum):
    """Types of governance events."""

    INITIALIZED = "initialized"
    MEMBER_ADDED = "member_added"
    PROPOSAL_CREATED = "proposal_created"
    VOTE_CAST = "vote_cast"
    PROPOSAL_EXECUTED = "proposal_executed"
    PROPOSAL_REJECTED = "proposal_rejected"

    @classmethod
    def from_name(cls, name: str) -> Optional["EventType"]:
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass
class GovernanceEvent:
    """A governance event for audit trail."""

    event_type: EventType
    contract_id: str
    event_id: str = field(default_factory=lambda: uuid4().hex)
    ledger_timestamp: int = 0
    invocation_id: Optional[str] = None

    # Event data
    proposal_id: Optional[int] = None
    member_address: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    # Cryptographic integrity
    event_hash: Optional[str] = None
    previous_event_hash: Optional[str] = None

    def __post_init__(self):
        """Calculate event hash after initialization."""
        self.event_hash = self._calculate_hash()

    def _calculate_hash(self) -> str:
        """Calculate hash of this event."""
        event_data = {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "contract_id": self.contract_id,
            "ledger_timestamp": self.ledger_timestamp,
            "invocation_id": self.invocation_id,
            "proposal_id": self.proposal_id,
            "member_address": self.member_address,
            "metadata": self.metadata,
            "previous_event_hash": self.previous_event_hash,
        }
        return SHA256Hasher.hash_json(event_data).to_hex()

    @classmethod
    def from_contract_event(cls, event: ContractEvent) -> Optional["GovernanceEvent"]:
        """Build an audit event from an engine event, or None for other events."""
        event_type = EventType.from_name(event.name)
        if event_type is None:
            return None
        metadata = dict(event.data)
        return cls(
            event_type=event_type,
            contract_id=event.contract_id,
            ledger_timestamp=event.ledger_timestamp,
            invocation_id=event.invocation_id,
            proposal_id=metadata.pop("proposal_id", None),
            member_address=event.topics[1] if len(event.topics) > 1 else None,
            metadata=metadata,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "contract_id": self.contract_id,
            "ledger_timestamp": self.ledger_timestamp,
            "invocation_id": self.invocation_id,
            "proposal_id": self.proposal_id,
            "member_address": self.member_address,
            "metadata": self.metadata,
            "event_hash": self.event_hash,
            "previous_event_hash": self.previous_event_hash,
        }


class AuditTrail:
    """Maintains an append-only, hash-chained trail of governance events."""

    def __init__(self):
        """Initialize audit trail."""
        self.events: List[GovernanceEvent] = []
        self.event_index: Dict[str, int] = {}  # event_id -> index
        self.proposal_events: Dict[int, List[GovernanceEvent]] = {}
        self.member_events: Dict[str, List[GovernanceEvent]] = {}
        self._subscriptions: List[Any] = []

    def add_event(self, event: GovernanceEvent) -> None:
        """Add an event to the audit trail."""
        if self.events:
            event.previous_event_hash = self.events[-1].event_hash

        # Recalculate hash with previous event hash
        event.event_hash = event._calculate_hash()

        self.events.append(event)
        self.event_index[event.event_id] = len(self.events) - 1

        if event.proposal_id is not None:
            self.proposal_events.setdefault(event.proposal_id, []).append(event)

        if event.member_address:
            self.member_events.setdefault(event.member_address, []).append(event)

    def record(self, contract_event: ContractEvent) -> Optional[GovernanceEvent]:
        """Add a committed contract event if it is a governance event."""
        event = GovernanceEvent.from_contract_event(contract_event)
        if event is not None:
            self.add_event(event)
        return event

    def attach(self, env, contract_id: str) -> None:
        """Record every governance event ``contract_id`` commits in ``env``."""

        def subscriber(contract_event: ContractEvent) -> None:
            if contract_event.contract_id == contract_id:
                self.record(contract_event)

        env.subscribe(subscriber)
        self._subscriptions.append((env, subscriber))
        logger.debug(f"Audit trail attached to {contract_id}")

    def detach(self) -> None:
        """Stop receiving events from every attached environment."""
        for env, subscriber in self._subscriptions:
            env.unsubscribe(subscriber)
        self._subscriptions.clear()

    def get_event(self, event_id: str) -> Optional[GovernanceEvent]:
        """Get an event by ID."""
        if event_id in self.event_index:
            return self.events[self.event_index[event_id]]
        return None

    def get_proposal_events(self, proposal_id: int) -> List[GovernanceEvent]:
        """Get all events for a proposal."""
        return self.proposal_events.get(proposal_id, [])

    def get_member_events(self, member_address: str) -> List[GovernanceEvent]:
        """Get all events for a member."""
        return self.member_events.get(member_address, [])

    def get_events_by_type(self, event_type: EventType) -> List[GovernanceEvent]:
        return [event for event in self.events if event.event_type == event_type]

    def verify_integrity(self) -> bool:
        """Verify the integrity of the audit trail."""
        for i, event in enumerate(self.events):
            if event.event_hash != event._calculate_hash():
                return False

            if i > 0:
                if event.previous_event_hash != self.events[i - 1].event_hash:
                    return False
            elif event.previous_event_hash is not None:
                return False

        return True

    def get_audit_summary(self) -> Dict[str, Any]:
        """Get audit trail summary."""
        event_counts: Dict[str, int] = {}
        for event in self.events:
            event_type = event.event_type.value
            event_counts[event_type] = event_counts.get(event_type, 0) + 1

        return {
            "total_events": len(self.events),
            "event_counts": event_counts,
            "unique_proposals": len(self.proposal_events),
            "unique_members": len(self.member_events),
            "integrity_verified": self.verify_integrity(),
        }
