"""Tests for CLI event formatters."""

import json

import pytest

from tilemap.contracts import BuildMode, BuildPhase, BuildStatus, PhaseAction
from tilemap.contracts.events import BuildSummary, PhaseCompleted, PhaseError, PhaseStarted


def _summary(status: BuildStatus = BuildStatus.COMMITTED, **overrides: object) -> BuildSummary:
    fields: dict[str, object] = {
        "status": status,
        "mode": BuildMode.FULL,
        "revision": 3,
        "start_id": 0,
        "end_id": 10,
        "tiles_written": 1234,
        "duration_seconds": 1.5,
        "exit_code": 0 if status == BuildStatus.COMMITTED else 1,
    }
    fields.update(overrides)
    return BuildSummary(**fields)  # type: ignore[arg-type]


class TestConsoleFormatters:
    """Tests for human-readable output."""

    def test_phase_started_with_target(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.cli_formatters import create_console_formatters

        formatters = create_console_formatters()
        formatters[PhaseStarted](PhaseStarted(phase=BuildPhase.EXECUTE, action=PhaseAction.EXECUTING, target="revision 3"))

        assert capsys.readouterr().out == "[EXECUTE] Executing → revision 3...\n"

    def test_phase_completed(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.cli_formatters import create_console_formatters

        create_console_formatters()[PhaseCompleted](PhaseCompleted(phase=BuildPhase.COMMIT, duration_seconds=0.25))

        assert capsys.readouterr().out == "[COMMIT] ✓ Completed in 0.25s\n"

    def test_phase_error_goes_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.cli_formatters import create_console_formatters

        create_console_formatters()[PhaseError](PhaseError(phase=BuildPhase.RANGE, error=ValueError("no new entries")))

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "[RANGE] ✗ Error: no new entries" in captured.err

    def test_committed_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.cli_formatters import create_console_formatters

        create_console_formatters()[BuildSummary](_summary())

        out = capsys.readouterr().out
        assert "✓ Build COMMITTED: revision 3 | full | entries [0, 10) | 1,234 tiles | 1.50s total" in out

    def test_failed_summary_before_range(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.cli_formatters import create_console_formatters

        summary = _summary(BuildStatus.FAILED, mode=None, revision=None, start_id=None, end_id=None, tiles_written=0)
        create_console_formatters()[BuildSummary](summary)

        out = capsys.readouterr().out
        assert "✗ Build FAILED: no revision | unknown | no entries | 0 tiles" in out


class TestJsonFormatters:
    """Tests for structured output."""

    def test_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.cli_formatters import create_json_formatters

        create_json_formatters()[BuildSummary](_summary())

        data = json.loads(capsys.readouterr().out)
        assert data == {
            "event": "build_completed",
            "status": "committed",
            "mode": "full",
            "revision": 3,
            "start_id": 0,
            "end_id": 10,
            "tiles_written": 1234,
            "duration_seconds": 1.5,
            "exit_code": 0,
        }

    def test_phase_error_carries_type(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.cli_formatters import create_json_formatters
        from tilemap.contracts import RangeError

        create_json_formatters()[PhaseError](PhaseError(phase=BuildPhase.RANGE, error=RangeError("no new entries")))

        data = json.loads(capsys.readouterr().err)
        assert data["event"] == "phase_error"
        assert data["phase"] == "range"
        assert data["error_type"] == "RangeError"

    def test_subscribe_formatters(self, capsys: pytest.CaptureFixture[str]) -> None:
        from tilemap.cli_formatters import create_json_formatters, subscribe_formatters
        from tilemap.core.events import EventBus

        bus = EventBus()
        subscribe_formatters(bus, create_json_formatters())
        bus.emit(PhaseStarted(phase=BuildPhase.CONFIG, action=PhaseAction.VALIDATING))

        data = json.loads(capsys.readouterr().out)
        assert data == {"event": "phase_started", "phase": "config", "action": "validating", "target": None}
