"""Token ledger used for membership allotments.

``Token`` is a minimal fungible-token contract: an admin mints, holders
transfer. Balances live in the shared store, so a transfer made during a
call that later fails is rolled back with the rest of that call.
``TokenClient`` reaches any token contract through the dispatcher, the same
way a contract reaches every other contract.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..errors.exceptions import (
    AlreadyInitializedError,
    InsufficientBalanceError,
    NotInitializedError,
    ValidationError,
)
from ..logging import get_logger
from ..storage.store import StorageScope
from .contract import Contract, contract_function
from .numeric import I128_MAX, checked_add

logger = get_logger(__name__)

ADMIN_KEY = "Admin"
BALANCE_PREFIX = "Balance:"


class TokenLedger(ABC):
    """Balance transfers and queries."""

    @abstractmethod
    def transfer(self, from_: str, to: str, amount: int) -> None:
        pass

    @abstractmethod
    def balance(self, identity: str) -> int:
        pass


def _require_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise ValidationError("Amount must be a non-negative integer", field="amount", value=amount)


class Token(Contract, TokenLedger):
    """Admin-minted token contract."""

    def __init__(self, env, contract_id: Optional[str] = None, name: str = "DAO Token"):
        super().__init__(env, contract_id)
        self.name = name

    def _balance_key(self, identity: str) -> str:
        return f"{BALANCE_PREFIX}{identity}"

    def _get_balance(self, identity: str) -> int:
        return self.storage.get(StorageScope.PERSISTENT, self._balance_key(identity), 0)

    def _set_balance(self, identity: str, amount: int) -> None:
        self.storage.set(StorageScope.PERSISTENT, self._balance_key(identity), amount)

    @contract_function
    def initialize(self, admin: str) -> None:
        if self.storage.has(StorageScope.INSTANCE, ADMIN_KEY):
            raise AlreadyInitializedError(f"Token {self.contract_id} already has an admin")
        self.env.require_auth(admin)
        self.storage.set(StorageScope.INSTANCE, ADMIN_KEY, admin)

    @contract_function
    def admin(self) -> str:
        admin = self.storage.get(StorageScope.INSTANCE, ADMIN_KEY)
        if admin is None:
            raise NotInitializedError(f"Token {self.contract_id} is not initialized")
        return admin

    @contract_function
    def mint(self, to: str, amount: int) -> None:
        """Create ``amount`` new tokens for ``to``; admin only."""
        _require_amount(amount)
        self.env.require_auth(self.admin())
        self._set_balance(to, checked_add(self._get_balance(to), amount, 0, I128_MAX, "balance"))
        self.env.publish(("mint", to), {"amount": amount})

    @contract_function
    def transfer(self, from_: str, to: str, amount: int) -> None:
        """Move ``amount`` from ``from_`` to ``to``; requires ``from_``'s authorization."""
        _require_amount(amount)
        self.env.require_auth(from_)

        balance = self._get_balance(from_)
        if balance < amount:
            raise InsufficientBalanceError(
                f"{from_} holds {balance}, cannot transfer {amount}",
                field="amount",
                value=amount,
                expected=balance,
            )

        self._set_balance(from_, balance - amount)
        self._set_balance(to, checked_add(self._get_balance(to), amount, 0, I128_MAX, "balance"))
        self.env.publish(("transfer", from_, to), {"amount": amount})
        logger.debug(f"Transferred {amount} from {from_} to {to}", context=self.env.log_context())

    @contract_function
    def balance(self, identity: str) -> int:
        return self._get_balance(identity)


class TokenClient(TokenLedger):
    """Calls a token contract through the environment's dispatcher."""

    def __init__(self, env, token_address: str):
        self.env = env
        self.address = token_address

    def transfer(self, from_: str, to: str, amount: int) -> None:
        self.env.invoke_contract(self.address, "transfer", [from_, to, amount])

    def balance(self, identity: str) -> int:
        return self.env.invoke_contract(self.address, "balance", [identity])
