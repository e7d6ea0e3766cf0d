"""
Governance engine for minidao.

Members join with a token allotment that becomes their fixed voting weight,
submit proposals naming an action on another contract, vote for or against
until the proposal deadline, and finalize proposals: a proposal with more
weight for than against has its action dispatched, any other is rejected.
"""

from .core import (
    DEFAULT_MEMBER_ALLOTMENT,
    DataKey,
    ExecutionWindow,
    GovernanceConfig,
    Member,
    Proposal,
    ProposalStatus,
)
from .engine import GovernanceEngine
from .execution import ExecutionEngine, ExecutionResult
from .observability import AuditTrail, EventType, GovernanceEvent
from .state import GovernanceState

__all__ = [
    # Core types
    "ProposalStatus",
    "ExecutionWindow",
    "DataKey",
    "Member",
    "Proposal",
    "GovernanceConfig",
    "DEFAULT_MEMBER_ALLOTMENT",
    # Engine
    "GovernanceEngine",
    "GovernanceState",
    "ExecutionEngine",
    "ExecutionResult",
    # Observability
    "EventType",
    "GovernanceEvent",
    "AuditTrail",
]
