"""Build lifecycle events.

Emitted by the orchestrator on the EventBus and consumed by CLI
formatters. Frozen dataclasses: events are facts, not state.
"""

from __future__ import annotations

from dataclasses import dataclass

from tilemap.contracts.enums import BuildMode, BuildPhase, BuildStatus, PhaseAction


@dataclass(frozen=True, slots=True)
class PhaseStarted:
    """Emitted when a build phase begins.

    Attributes:
        phase: The lifecycle phase starting
        action: What's happening (e.g., "reading", "executing")
        target: Optional target (e.g., store URL, revision number)
    """

    phase: BuildPhase
    action: PhaseAction
    target: str | None = None


@dataclass(frozen=True, slots=True)
class PhaseCompleted:
    """Emitted when a build phase completes successfully."""

    phase: BuildPhase
    duration_seconds: float


@dataclass(frozen=True, slots=True)
class PhaseError:
    """Emitted when a build phase fails.

    Keeps the exception object so formatters can show its type.
    """

    phase: BuildPhase
    error: BaseException
    target: str | None = None

    @property
    def error_message(self) -> str:
        return str(self.error)


@dataclass(frozen=True, slots=True)
class BuildSummary:
    """Emitted once when a build finishes, committed or not."""

    status: BuildStatus
    mode: BuildMode | None
    revision: int | None
    start_id: int | None
    end_id: int | None
    tiles_written: int
    duration_seconds: float
    exit_code: int
