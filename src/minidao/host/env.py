"""The ledger environment contracts run in.

``Environment`` bundles the host services a contract sees: the persistent
store, the ledger clock, the authorizer, the external dispatcher and the
event log. It also serializes calls: every contract function runs inside a
``CallFrame`` opened by ``Environment.call``, and each frame owns one store
transaction. A frame that raises leaves no writes and no events behind; a
nested frame that raises is undone without touching its caller's writes
unless the caller lets the exception propagate too.
"""

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from ..errors.exceptions import ErrorContext, MiniDaoError, ReentrantCallError, UnauthorizedError
from ..logging import LogContext, get_logger
from ..storage.store import ContractStorage, InMemoryStore, KeyValueStore
from .auth import AllowAllAuthorizer, Authorizer
from .clock import LedgerClock, SystemClock
from .dispatch import ContractRegistry, ExternalDispatcher
from .events import ContractEvent
from .invocation import CallFrame, Invocation

logger = get_logger(__name__)

EventSubscriber = Callable[[ContractEvent], None]


class Environment:
    """Host services shared by every contract deployed on one ledger."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Optional[LedgerClock] = None,
        authorizer: Optional[Authorizer] = None,
        dispatcher: Optional[ExternalDispatcher] = None,
    ):
        self.store = store or InMemoryStore()
        self.clock = clock or SystemClock()
        self.authorizer = authorizer or AllowAllAuthorizer()
        self.contracts = ContractRegistry()
        self.dispatcher = dispatcher or self.contracts
        self.events: List[ContractEvent] = []
        self._subscribers: List[EventSubscriber] = []
        self._frames: List[CallFrame] = []

    # Host services

    def now(self) -> int:
        """Current ledger timestamp."""
        return self.clock.now()

    def storage(self, contract_id: str) -> ContractStorage:
        return ContractStorage(self.store, contract_id)

    def deploy(self, contract) -> Any:
        self.contracts.register(contract)
        return contract

    @property
    def current_frame(self) -> Optional[CallFrame]:
        return self._frames[-1] if self._frames else None

    # Calls

    @contextmanager
    def call(self, invocation: Invocation) -> Iterator[CallFrame]:
        """Run one contract invocation atomically.

        A contract may call its own functions, but it cannot be called back
        through another contract while one of its calls is still running.
        """
        parent = self.current_frame
        if self._is_reentry(invocation):
            raise ReentrantCallError(
                f"Contract {invocation.contract_id} re-entered through {parent.invocation}",
                contract_id=invocation.contract_id,
                context=ErrorContext(
                    contract_id=invocation.contract_id,
                    function=invocation.function,
                    ledger_timestamp=self.now(),
                ),
            )
        frame = CallFrame(invocation=invocation, parent=parent)
        self._frames.append(frame)
        try:
            with self.store.transaction():
                yield frame
        except MiniDaoError as e:
            if e.context.contract_id is None:
                e.context = ErrorContext(
                    contract_id=invocation.contract_id,
                    function=invocation.function,
                    ledger_timestamp=self.now(),
                    metadata={"invocation_id": frame.invocation_id, "depth": frame.depth},
                )
            logger.debug(f"Call {invocation} rolled back: {e.message}")
            raise
        finally:
            self._frames.pop()

        if parent is not None:
            parent.events.extend(frame.events)
        else:
            self._publish(frame.events)

    def _is_reentry(self, invocation: Invocation) -> bool:
        parent = self.current_frame
        if parent is None or parent.invocation.contract_id == invocation.contract_id:
            return False
        return any(f.invocation.contract_id == invocation.contract_id for f in self._frames)

    def require_auth(self, identity: str) -> None:
        """Fail the current call unless ``identity`` authorized it."""
        frame = self.current_frame
        if frame is None:
            raise UnauthorizedError(
                "Authorization can only be checked inside a contract call",
                identity=identity,
            )
        if frame.is_authorized(identity):
            return
        self.authorizer.require_auth(identity, frame.invocation)
        frame.authorized.add(identity)

    def invoke_contract(self, target: str, function: str, parameters: Sequence[Any] = ()) -> Any:
        """Call another contract through the dispatcher."""
        return self.dispatcher.invoke(target, function, list(parameters))

    # Events

    def publish(self, topics: Sequence[str], data: Optional[Dict[str, Any]] = None) -> ContractEvent:
        """Buffer an event from the running contract until its call commits."""
        frame = self.current_frame
        if frame is None:
            raise RuntimeError("Events can only be published inside a contract call")
        event = ContractEvent(
            contract_id=frame.invocation.contract_id,
            topics=tuple(topics),
            data=dict(data or {}),
            ledger_timestamp=self.now(),
            invocation_id=frame.invocation_id,
        )
        frame.events.append(event)
        return event

    def subscribe(self, subscriber: EventSubscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: EventSubscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def events_for(self, contract_id: Optional[str] = None, name: Optional[str] = None) -> List[ContractEvent]:
        return [e for e in self.events if e.matches(contract_id, name)]

    def _publish(self, events: List[ContractEvent]) -> None:
        for event in events:
            self.events.append(event)
            for subscriber in list(self._subscribers):
                subscriber(event)

    def log_context(self) -> LogContext:
        """Logging context describing the running call."""
        frame = self.current_frame
        if frame is None:
            return LogContext()
        return LogContext(
            contract_id=frame.invocation.contract_id,
            function=frame.invocation.function,
            invocation_id=frame.invocation_id,
            ledger_timestamp=self.now(),
        )
