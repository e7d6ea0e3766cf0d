"""minidao error handling.

This module provides the exception hierarchy shared by the governance
engine, the ledger host and the storage backends.
"""

from .exceptions import (
    AlreadyFinalizedError,
    AlreadyInitializedError,
    AlreadyVotedError,
    ArithmeticOverflowError,
    ConfigurationError,
    CryptographicError,
    DuplicateMemberError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    ExternalCallFailedError,
    GovernanceError,
    InsufficientBalanceError,
    MiniDaoError,
    NotAMemberError,
    NotInitializedError,
    ProposalNotFoundError,
    ReentrantCallError,
    StorageError,
    UnauthorizedError,
    ValidationError,
    VotingClosedError,
    VotingStillOpenError,
)

__all__ = [
    # Base
    "MiniDaoError",
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
    # General
    "ValidationError",
    "ConfigurationError",
    "CryptographicError",
    "StorageError",
    "UnauthorizedError",
    "ExternalCallFailedError",
    "ReentrantCallError",
    "ArithmeticOverflowError",
    "InsufficientBalanceError",
    # Governance
    "GovernanceError",
    "NotInitializedError",
    "AlreadyInitializedError",
    "DuplicateMemberError",
    "NotAMemberError",
    "ProposalNotFoundError",
    "AlreadyVotedError",
    "VotingClosedError",
    "VotingStillOpenError",
    "AlreadyFinalizedError",
]
