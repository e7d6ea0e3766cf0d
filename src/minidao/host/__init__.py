"""Ledger host for minidao contracts.

The host supplies what a contract cannot provide for itself: ledger time,
persistent storage, caller authorization, calls into other contracts and an
event log, all coordinated by ``Environment``.
"""

from .auth import AllowAllAuthorizer, Authorizer, SignatureAuthorizer, SignedInvocation
from .clock import LedgerClock, ManualClock, SystemClock
from .contract import Contract, contract_function, is_contract_function
from .dispatch import ContractRegistry, ExternalDispatcher
from .env import Environment
from .events import ContractEvent
from .invocation import CallFrame, Invocation
from .numeric import I128_MAX, I128_MIN, U32_MAX, U64_MAX, checked_add
from .token import Token, TokenClient, TokenLedger

__all__ = [
    # Environment
    "Environment",
    "CallFrame",
    "Invocation",
    "ContractEvent",
    # Contracts
    "Contract",
    "contract_function",
    "is_contract_function",
    "ContractRegistry",
    "ExternalDispatcher",
    # Authorization
    "Authorizer",
    "AllowAllAuthorizer",
    "SignatureAuthorizer",
    "SignedInvocation",
    # Clocks
    "LedgerClock",
    "SystemClock",
    "ManualClock",
    # Tokens
    "TokenLedger",
    "Token",
    "TokenClient",
    # Integer domains
    "I128_MIN",
    "I128_MAX",
    "U32_MAX",
    "U64_MAX",
    "checked_add",
]
