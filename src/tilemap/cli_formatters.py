"""CLI event formatter factories for build output.

Each factory returns a dict mapping event types to handler callables,
suitable for subscribing to an EventBus.
"""

from __future__ import annotations

import json
from collections.abc import Callable

import typer

from tilemap.contracts.events import BuildSummary, PhaseCompleted, PhaseError, PhaseStarted
from tilemap.core.events import EventBusProtocol


def _format_duration(seconds: float) -> str:
    return f"{seconds:.2f}s" if seconds < 60 else f"{seconds / 60:.1f}m"


def create_console_formatters() -> dict[type, Callable[..., None]]:
    """Create console formatters for human-readable CLI output."""

    def _format_phase_started(event: PhaseStarted) -> None:
        target_info = f" → {event.target}" if event.target else ""
        typer.echo(f"[{event.phase.value.upper()}] {event.action.value.capitalize()}{target_info}...")

    def _format_phase_completed(event: PhaseCompleted) -> None:
        typer.echo(f"[{event.phase.value.upper()}] ✓ Completed in {_format_duration(event.duration_seconds)}")

    def _format_phase_error(event: PhaseError) -> None:
        target_info = f" ({event.target})" if event.target else ""
        typer.echo(f"[{event.phase.value.upper()}] ✗ Error{target_info}: {event.error_message}", err=True)

    def _format_build_summary(event: BuildSummary) -> None:
        symbol = "✓" if event.exit_code == 0 else "✗"
        mode = event.mode.value if event.mode is not None else "unknown"
        revision = f"revision {event.revision}" if event.revision is not None else "no revision"
        span = f"entries [{event.start_id}, {event.end_id})" if event.start_id is not None else "no entries"
        typer.echo(
            f"\n{symbol} Build {event.status.value.upper()}: {revision} | "
            f"{mode} | {span} | "
            f"{event.tiles_written:,} tiles | "
            f"{event.duration_seconds:.2f}s total"
        )

    return {
        PhaseStarted: _format_phase_started,
        PhaseCompleted: _format_phase_completed,
        PhaseError: _format_phase_error,
        BuildSummary: _format_build_summary,
    }


def create_json_formatters() -> dict[type, Callable[..., None]]:
    """Create JSON formatters for structured CLI output."""

    def _format_phase_started_json(event: PhaseStarted) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "phase_started",
                    "phase": event.phase.value,
                    "action": event.action.value,
                    "target": event.target,
                }
            )
        )

    def _format_phase_completed_json(event: PhaseCompleted) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "phase_completed",
                    "phase": event.phase.value,
                    "duration_seconds": event.duration_seconds,
                }
            )
        )

    def _format_phase_error_json(event: PhaseError) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "phase_error",
                    "phase": event.phase.value,
                    "error": event.error_message,
                    "error_type": type(event.error).__name__,
                    "target": event.target,
                }
            ),
            err=True,
        )

    def _format_build_summary_json(event: BuildSummary) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "build_completed",
                    "status": event.status.value,
                    "mode": event.mode.value if event.mode is not None else None,
                    "revision": event.revision,
                    "start_id": event.start_id,
                    "end_id": event.end_id,
                    "tiles_written": event.tiles_written,
                    "duration_seconds": event.duration_seconds,
                    "exit_code": event.exit_code,
                }
            )
        )

    return {
        PhaseStarted: _format_phase_started_json,
        PhaseCompleted: _format_phase_completed_json,
        PhaseError: _format_phase_error_json,
        BuildSummary: _format_build_summary_json,
    }


def subscribe_formatters(
    event_bus: EventBusProtocol,
    formatters: dict[type, Callable[..., None]],
) -> None:
    """Subscribe all formatters to the event bus."""
    for event_type, handler in formatters.items():
        event_bus.subscribe(event_type, handler)
