"""Tests for EventBus infrastructure."""

from dataclasses import dataclass

import pytest

from tilemap.contracts import BuildPhase, PhaseAction
from tilemap.contracts.events import PhaseCompleted, PhaseStarted


@dataclass(frozen=True)
class ForeignEvent:
    value: str


def _started(phase: BuildPhase = BuildPhase.CONFIG) -> PhaseStarted:
    return PhaseStarted(phase=phase, action=PhaseAction.VALIDATING)


class TestEventBus:
    """Tests for EventBus implementation."""

    def test_subscribe_and_emit(self) -> None:
        from tilemap.core.events import EventBus

        bus = EventBus()
        received: list[PhaseStarted] = []
        bus.subscribe(PhaseStarted, received.append)

        bus.emit(_started())

        assert received == [_started()]

    def test_handlers_run_in_subscription_order(self) -> None:
        from tilemap.core.events import EventBus

        bus = EventBus()
        calls: list[str] = []
        bus.subscribe(PhaseStarted, lambda e: calls.append("first"))
        bus.subscribe(PhaseStarted, lambda e: calls.append("second"))

        bus.emit(_started())

        assert calls == ["first", "second"]

    def test_only_exact_type_receives(self) -> None:
        from tilemap.core.events import EventBus

        bus = EventBus()
        received: list[object] = []
        bus.subscribe(PhaseCompleted, received.append)

        bus.emit(_started())

        assert received == []

    def test_handler_exception_propagates(self) -> None:
        from tilemap.core.events import EventBus

        bus = EventBus()

        def broken(event: PhaseStarted) -> None:
            raise RuntimeError("formatter bug")

        bus.subscribe(PhaseStarted, broken)
        with pytest.raises(RuntimeError, match="formatter bug"):
            bus.emit(_started())

    def test_rejects_foreign_subscription(self) -> None:
        from tilemap.core.events import EventBus

        with pytest.raises(TypeError, match="not a build event"):
            EventBus().subscribe(ForeignEvent, print)  # type: ignore[type-var]

    def test_rejects_foreign_emit(self) -> None:
        from tilemap.core.events import EventBus

        with pytest.raises(TypeError, match="not a build event"):
            EventBus().emit(ForeignEvent(value="x"))  # type: ignore[arg-type]


class TestNullEventBus:
    """Tests for NullEventBus."""

    def test_never_calls_handlers(self) -> None:
        from tilemap.core.events import EventBusProtocol, NullEventBus

        bus: EventBusProtocol = NullEventBus()
        received: list[PhaseStarted] = []
        bus.subscribe(PhaseStarted, received.append)

        bus.emit(_started())

        assert received == []

    def test_is_not_an_event_bus(self) -> None:
        from tilemap.core.events import EventBus, NullEventBus

        assert not isinstance(NullEventBus(), EventBus)
