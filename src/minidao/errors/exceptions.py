"""Exception hierarchy for minidao.

This module defines the exception hierarchy for the minidao governance
engine and its ledger host, providing structured error handling and
categorization. Every governance rejection maps to one error class carrying
a stable ``error_code``.
"""

import time
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    CRYPTOGRAPHIC = "cryptographic"
    AUTHORIZATION = "authorization"
    STORAGE = "storage"
    GOVERNANCE = "governance"
    EXTERNAL_CALL = "external_call"
    ARITHMETIC = "arithmetic"
    SYSTEM = "system"


@dataclass
class ErrorContext:
    """Context information for an error."""

    timestamp: float = field(default_factory=time.time)
    contract_id: Optional[str] = None
    function: Optional[str] = None
    caller: Optional[str] = None
    ledger_timestamp: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "timestamp": self.timestamp,
            "contract_id": self.contract_id,
            "function": self.function,
            "caller": self.caller,
            "ledger_timestamp": self.ledger_timestamp,
            "metadata": self.metadata,
        }


class MiniDaoError(Exception):
    """Base exception for all minidao errors."""

    default_code: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.SYSTEM,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        retryable: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.severity = severity
        self.category = category
        self.context = context or ErrorContext()
        self.cause = cause
        self.retryable = retryable
        self.metadata = metadata or {}
        self.timestamp = time.time()
        self.traceback = traceback.format_exc()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
            "retryable": self.retryable,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
            "traceback": self.traceback,
        }

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"{self.__class__.__name__}: {self.message}"]

        if self.error_code:
            parts.append(f"Code: {self.error_code}")

        if self.severity != ErrorSeverity.MEDIUM:
            parts.append(f"Severity: {self.severity.value}")

        if self.category != ErrorCategory.SYSTEM:
            parts.append(f"Category: {self.category.value}")

        if self.retryable:
            parts.append("Retryable: Yes")

        return " | ".join(parts)


class ValidationError(MiniDaoError):
    """Validation error."""

    default_code = "ValidationError"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        expected: Optional[Any] = None,
        **kwargs,
    ):
        kwargs.setdefault("category", ErrorCategory.VALIDATION)
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        """Convert validation error to dictionary."""
        data = super().to_dict()
        data.update(
            {
                "field": self.field,
                "value": str(self.value) if self.value is not None else None,
                "expected": str(self.expected) if self.expected is not None else None,
            }
        )
        return data


class ConfigurationError(MiniDaoError):
    """Configuration error."""

    default_code = "ConfigurationError"

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.CONFIGURATION, **kwargs)
        self.config_key = config_key


class CryptographicError(MiniDaoError):
    """Cryptographic error."""

    default_code = "CryptographicError"

    def __init__(
        self,
        message: str,
        algorithm: Optional[str] = None,
        key_type: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(
            message,
            category=ErrorCategory.CRYPTOGRAPHIC,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.algorithm = algorithm
        self.key_type = key_type

    def to_dict(self) -> Dict[str, Any]:
        """Convert cryptographic error to dictionary."""
        data = super().to_dict()
        data.update({"algorithm": self.algorithm, "key_type": self.key_type})
        return data


class StorageError(MiniDaoError):
    """Storage error."""

    default_code = "StorageError"

    def __init__(
        self,
        message: str,
        storage_type: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.STORAGE, **kwargs)
        self.storage_type = storage_type
        self.operation = operation

    def to_dict(self) -> Dict[str, Any]:
        """Convert storage error to dictionary."""
        data = super().to_dict()
        data.update({"storage_type": self.storage_type, "operation": self.operation})
        return data


class UnauthorizedError(MiniDaoError):
    """The identity did not authorize this invocation."""

    default_code = "Unauthorized"

    def __init__(self, message: str, identity: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.AUTHORIZATION,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.identity = identity

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["identity"] = self.identity
        return data


class GovernanceError(MiniDaoError):
    """Governance rule violation."""

    def __init__(self, message: str, proposal_id: Optional[int] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.GOVERNANCE, **kwargs)
        self.proposal_id = proposal_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert governance error to dictionary."""
        data = super().to_dict()
        data["proposal_id"] = self.proposal_id
        return data


class NotInitializedError(GovernanceError):
    """Registries have not been installed yet."""

    default_code = "NotInitialized"


class AlreadyInitializedError(GovernanceError):
    """Engine instance was already initialized."""

    default_code = "AlreadyInitialized"


class DuplicateMemberError(GovernanceError):
    """Address is already registered as a member."""

    default_code = "DuplicateMember"


class NotAMemberError(GovernanceError):
    """Caller is not a registered member."""

    default_code = "NotAMember"


class ProposalNotFoundError(GovernanceError):
    """No proposal with the given id."""

    default_code = "ProposalNotFound"


class AlreadyVotedError(GovernanceError):
    """Member already voted on the proposal."""

    default_code = "AlreadyVoted"


class VotingClosedError(GovernanceError):
    """The proposal deadline has passed."""

    default_code = "VotingClosed"


class VotingStillOpenError(GovernanceError):
    """Execution attempted while the voting window is still open."""

    default_code = "VotingStillOpen"


class AlreadyFinalizedError(GovernanceError):
    """Proposal already reached a terminal status."""

    default_code = "AlreadyFinalized"


class ExternalCallFailedError(MiniDaoError):
    """A call into another contract failed."""

    default_code = "ExternalCallFailed"

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        function: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, category=ErrorCategory.EXTERNAL_CALL, **kwargs)
        self.target = target
        self.function = function

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"target": self.target, "function": self.function})
        return data


class ArithmeticOverflowError(MiniDaoError):
    """Integer arithmetic left its declared domain."""

    default_code = "Overflow"

    def __init__(self, message: str, operand: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.ARITHMETIC,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.operand = operand


class InsufficientBalanceError(ValidationError):
    """Token balance too low for a transfer."""

    default_code = "InsufficientBalance"


class ReentrantCallError(MiniDaoError):
    """A contract was called again while one of its calls was still running."""

    default_code = "ReentrantCall"

    def __init__(self, message: str, contract_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.EXTERNAL_CALL,
            severity=ErrorSeverity.HIGH,
            **kwargs,
        )
        self.contract_id = contract_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["contract_id"] = self.contract_id
        return data
