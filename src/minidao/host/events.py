"""Contract events published through the ledger environment."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class ContractEvent:
    """Event emitted by a contract during a committed call."""

    contract_id: str
    topics: Tuple[str, ...]
    data: Dict[str, Any] = field(default_factory=dict)
    ledger_timestamp: int = 0
    invocation_id: Optional[str] = None

    def __post_init__(self):
        if not self.topics:
            raise ValueError("Event needs at least one topic")
        if len(self.topics) > 4:
            raise ValueError("Maximum 4 topics allowed per event")

    @property
    def name(self) -> str:
        return self.topics[0]

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary."""
        return {
            "contract_id": self.contract_id,
            "topics": list(self.topics),
            "data": self.data,
            "ledger_timestamp": self.ledger_timestamp,
            "invocation_id": self.invocation_id,
        }

    def matches(self, contract_id: Optional[str] = None, name: Optional[str] = None) -> bool:
        """Check if event matches filter criteria."""
        if contract_id is not None and self.contract_id != contract_id:
            return False
        if name is not None and self.name != name:
            return False
        return True
