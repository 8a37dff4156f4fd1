"""Event bus for build observability.

Carries the build lifecycle events of tilemap.contracts.events from the
orchestrator to CLI formatters, keeping presentation out of the build
logic. Only those event types may be subscribed to or emitted.
"""

from collections import defaultdict
from collections.abc import Callable
from typing import Protocol, TypeVar

from tilemap.contracts.events import BuildSummary, PhaseCompleted, PhaseError, PhaseStarted

BUILD_EVENT_TYPES: tuple[type, ...] = (PhaseStarted, PhaseCompleted, PhaseError, BuildSummary)

E = TypeVar("E", PhaseStarted, PhaseCompleted, PhaseError, BuildSummary)


class EventBusProtocol(Protocol):
    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None: ...

    def emit(self, event: PhaseStarted | PhaseCompleted | PhaseError | BuildSummary) -> None: ...


def _require_build_event_type(event_type: type) -> None:
    if event_type not in BUILD_EVENT_TYPES:
        raise TypeError(f"{event_type.__qualname__} is not a build event type")


class EventBus:
    """Synchronous event bus.

    Handlers run in subscription order. Handler exceptions propagate to
    the emitter: formatters are our code, so a bug should crash loudly.

    Example:
        bus = EventBus()
        bus.subscribe(PhaseStarted, lambda e: print(f"[{e.phase}] Starting"))
        bus.emit(PhaseStarted(phase=BuildPhase.CONFIG, action=PhaseAction.VALIDATING))
    """

    def __init__(self) -> None:
        self._handlers: defaultdict[type, list[Callable[..., None]]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        """Register handler for one build event type.

        Raises:
            TypeError: If event_type is not a build event
        """
        _require_build_event_type(event_type)
        self._handlers[event_type].append(handler)

    def emit(self, event: PhaseStarted | PhaseCompleted | PhaseError | BuildSummary) -> None:
        """Deliver event to the handlers of its exact type.

        Raises:
            TypeError: If event is not a build event
        """
        _require_build_event_type(type(event))
        for handler in self._handlers.get(type(event), ()):
            handler(event)


class NullEventBus:
    """Event bus for library use where nobody listens.

    Does NOT inherit from EventBus: a caller that subscribes expecting
    callbacks should notice they never arrive, not have it hidden.
    """

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        _require_build_event_type(event_type)

    def emit(self, event: PhaseStarted | PhaseCompleted | PhaseError | BuildSummary) -> None:
        pass
