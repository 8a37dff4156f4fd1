"""Source-level checks over the tilemap package."""

import warnings
from pathlib import Path

import pytest

import tilemap

SOURCES = sorted(Path(tilemap.__file__).parent.rglob("*.py"))


class TestSources:
    """Every module compiles without warnings."""

    @pytest.mark.parametrize("path", SOURCES, ids=lambda p: p.relative_to(Path(tilemap.__file__).parent).as_posix())
    def test_compiles_without_warnings(self, path: Path) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            compile(path.read_text(encoding="utf-8"), str(path), "exec")
