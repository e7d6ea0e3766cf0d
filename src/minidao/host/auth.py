"""Identity and authorization.

Every mutating contract call names the identities it acts for and calls
``Environment.require_auth`` for each of them. The environment consults an
``Authorizer``, which either accepts or raises ``UnauthorizedError``.

``SignatureAuthorizer`` is the production rule: an identity is the address
of a secp256k1 public key, and it authorizes an invocation by signing the
invocation digest together with a fresh nonce. ``AllowAllAuthorizer``
accepts everything and records what it was asked, for tests and local
simulations.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from ..crypto.signatures import PrivateKey, PublicKey, Signature
from ..errors.exceptions import UnauthorizedError
from ..logging import get_logger
from .invocation import Invocation

logger = get_logger(__name__)


class Authorizer(ABC):
    """Decides whether an identity authorized an invocation."""

    @abstractmethod
    def require_auth(self, identity: str, invocation: Invocation) -> None:
        """Raise ``UnauthorizedError`` unless ``identity`` authorized ``invocation``."""
        pass


class AllowAllAuthorizer(Authorizer):
    """Accepts every authorization request and records it."""

    def __init__(self):
        self.recorded: List[Tuple[str, Invocation]] = []

    def require_auth(self, identity: str, invocation: Invocation) -> None:
        self.recorded.append((identity, invocation))

    def authorized_by(self, identity: str) -> List[Invocation]:
        return [inv for who, inv in self.recorded if who == identity]


@dataclass(frozen=True)
class SignedInvocation:
    """An identity's signature over one invocation."""

    public_key: PublicKey
    invocation: Invocation
    nonce: int
    signature: Signature

    @property
    def address(self) -> str:
        return self.public_key.to_address()

    def verify(self) -> bool:
        return self.public_key.verify(self.signature, self.invocation.digest(self.nonce))

    @classmethod
    def create(cls, private_key: PrivateKey, invocation: Invocation, nonce: int) -> "SignedInvocation":
        signature = private_key.sign(invocation.digest(nonce))
        return cls(private_key.get_public_key(), invocation, nonce, signature)


class SignatureAuthorizer(Authorizer):
    """Accepts an identity only with a matching, unused signed invocation.

    Signed invocations are submitted ahead of the call. Each one is consumed
    by the first ``require_auth`` it satisfies, and its nonce can never be
    used again by the same address.
    """

    def __init__(self):
        self._pending: Dict[str, List[SignedInvocation]] = {}
        self._used_nonces: Dict[str, Set[int]] = {}
        self._lock = threading.RLock()

    def submit(self, signed: SignedInvocation) -> None:
        """Queue a signed invocation for a later call."""
        with self._lock:
            if signed.nonce in self._used_nonces.get(signed.address, set()):
                raise UnauthorizedError(
                    f"Nonce {signed.nonce} already used by {signed.address}",
                    identity=signed.address,
                )
            self._pending.setdefault(signed.address, []).append(signed)

    def next_nonce(self, address: str) -> int:
        with self._lock:
            used = self._used_nonces.get(address, set())
            queued = {s.nonce for s in self._pending.get(address, [])}
            taken = used | queued
            return max(taken) + 1 if taken else 0

    def sign(
        self,
        private_key: PrivateKey,
        invocation: Invocation,
        nonce: Optional[int] = None,
    ) -> SignedInvocation:
        """Sign ``invocation`` with ``private_key`` and submit it."""
        address = private_key.get_public_key().to_address()
        if nonce is None:
            nonce = self.next_nonce(address)
        signed = SignedInvocation.create(private_key, invocation, nonce)
        self.submit(signed)
        return signed

    def pending(self, address: str) -> List[SignedInvocation]:
        with self._lock:
            return list(self._pending.get(address, []))

    def require_auth(self, identity: str, invocation: Invocation) -> None:
        with self._lock:
            candidates = self._pending.get(identity, [])
            for signed in candidates:
                if signed.invocation != invocation:
                    continue

                candidates.remove(signed)
                used = self._used_nonces.setdefault(identity, set())
                if signed.nonce in used:
                    raise UnauthorizedError(
                        f"Replayed nonce {signed.nonce} for {identity}", identity=identity
                    )
                if signed.address != identity or not signed.verify():
                    raise UnauthorizedError(
                        f"Invalid signature from {identity} for {invocation}",
                        identity=identity,
                    )
                used.add(signed.nonce)
                logger.debug(f"{identity} authorized {invocation} (nonce {signed.nonce})")
                return

        raise UnauthorizedError(f"{identity} did not authorize {invocation}", identity=identity)
