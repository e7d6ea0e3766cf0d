"""Ledger clocks.

Contracts never read wall-clock time directly; they ask the environment,
which asks its ``LedgerClock``. Timestamps are whole seconds in the u64
range.
"""

import time
from abc import ABC, abstractmethod

from ..errors.exceptions import ValidationError
from .numeric import U64_MAX, checked_add


class LedgerClock(ABC):
    """Source of ledger timestamps."""

    @abstractmethod
    def now(self) -> int:
        """Current ledger timestamp in seconds."""
        pass


class SystemClock(LedgerClock):
    """Ledger time taken from the host's wall clock."""

    def now(self) -> int:
        return int(time.time())


class ManualClock(LedgerClock):
    """Clock that only moves when told to."""

    def __init__(self, timestamp: int = 0):
        self._timestamp = 0
        self.set(timestamp)

    def now(self) -> int:
        return self._timestamp

    def set(self, timestamp: int) -> None:
        if not 0 <= timestamp <= U64_MAX:
            raise ValidationError(
                "Ledger timestamp out of range", field="timestamp", value=timestamp
            )
        self._timestamp = timestamp

    def advance(self, seconds: int) -> int:
        """Move the clock forward and return the new timestamp."""
        if seconds < 0:
            raise ValidationError("Clock cannot move backwards", field="seconds", value=seconds)
        self._timestamp = checked_add(self._timestamp, seconds, 0, U64_MAX, "timestamp")
        return self._timestamp
