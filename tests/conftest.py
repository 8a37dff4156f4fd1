# tests/conftest.py
"""Shared test fixtures.

Fixtures:
- make_entries: deterministic log entries with unique (module, version)
- log_mirror / tile_store: empty in-memory SQL stores
- seed_mirror: append entries and a checkpoint to a mirror
- settings_factory: BuildSettings with test defaults

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from tilemap.contracts.records import Entry
from tilemap.core.config import BuildSettings, build_settings
from tilemap.core.store import LogMirror, TileStore

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Entries and stores
# =============================================================================

_MODULES = 7
_BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


def entries_between(start: int, end: int) -> list[Entry]:
    """Entries [start, end) spread over a handful of modules.

    Entry i is module i % 7 at version v1.<i // 7>.0, so every
    (module, version) pair is unique.
    """
    return [
        Entry(
            entry_id=i,
            module=f"example.com/mod{i % _MODULES}",
            version=f"v1.{i // _MODULES}.0",
            repo_hash=f"h1:repo{i}=",
            mod_hash=f"h1:mod{i}=",
        )
        for i in range(start, end)
    ]


@pytest.fixture
def make_entries() -> Callable[[int, int], list[Entry]]:
    return entries_between


@pytest.fixture
def log_mirror() -> Iterator[LogMirror]:
    mirror = LogMirror.in_memory()
    yield mirror
    mirror.close()


@pytest.fixture
def tile_store() -> Iterator[TileStore]:
    store = TileStore.in_memory()
    yield store
    store.close()


@pytest.fixture
def seed_mirror() -> Callable[..., None]:
    """Append entries [start, end) and a checkpoint named after end.

    Checkpoints are stamped end minutes after a fixed base time, so a
    later seed always carries the newer checkpoint.
    """

    def _seed(mirror: LogMirror, start: int, end: int, checkpoint: bytes | None = None) -> None:
        mirror.add_entries(entries_between(start, end))
        mirror.add_checkpoint(
            checkpoint if checkpoint is not None else f"checkpoint-{end}".encode(),
            at=_BASE_TIME + timedelta(minutes=end),
        )

    return _seed


@pytest.fixture
def settings_factory() -> Callable[..., BuildSettings]:
    """BuildSettings for in-memory stores; keyword arguments override fields."""

    def _make(**overrides: Any) -> BuildSettings:
        raw: dict[str, Any] = {
            "log_mirror": {"url": "sqlite://"},
            "tile_store": {"url": "sqlite://"},
            "concurrency": {"max_workers": 2},
        }
        raw.update(overrides)
        return build_settings(raw)

    return _make
