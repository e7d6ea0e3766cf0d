"""Contract invocations and the call frames that execute them."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple
from uuid import uuid4

from ..crypto.hashing import Hash, SHA256Hasher
from .events import ContractEvent


@dataclass(frozen=True)
class Invocation:
    """One call of ``function`` on ``contract_id`` with positional ``args``.

    This is the unit an identity authorizes: a signature covers the digest of
    the contract, the function name, the exact arguments and a nonce.
    """

    contract_id: str
    function: str
    args: Tuple[Any, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contract_id": self.contract_id,
            "function": self.function,
            "args": list(self.args),
        }

    def digest(self, nonce: int) -> Hash:
        """Digest signed to authorize this invocation."""
        payload = self.to_dict()
        payload["nonce"] = nonce
        return SHA256Hasher.hash_json(payload)

    def __str__(self) -> str:
        return f"{self.contract_id}.{self.function}"


@dataclass
class CallFrame:
    """State of an invocation in progress."""

    invocation: Invocation
    parent: Optional["CallFrame"] = None
    invocation_id: str = field(default_factory=lambda: uuid4().hex)
    authorized: Set[str] = field(default_factory=set)
    events: List[ContractEvent] = field(default_factory=list)

    @property
    def depth(self) -> int:
        return 0 if self.parent is None else self.parent.depth + 1

    @property
    def invoker(self) -> Optional[str]:
        """Contract that made this call, if any."""
        return self.parent.invocation.contract_id if self.parent else None

    def is_authorized(self, identity: str) -> bool:
        """Whether ``identity`` already authorized this invocation.

        Authorization covers only the invocation it was given for; a nested
        call needs its own. The contract that made this call is implicitly
        authorized as its invoker.
        """
        return identity == self.invoker or identity in self.authorized
