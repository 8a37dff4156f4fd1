"""Types and exceptions for transform graphs.

Leaf module: no intra-package imports beyond contracts (prevents import cycles).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from tilemap.contracts.enums import StageKind


class GraphValidationError(ValueError):
    """Raised when graph construction or validation fails."""

    pass


@dataclass(frozen=True, slots=True)
class StageInput:
    """One wired input of a stage.

    Attributes:
        param: Name under which the stage function receives the collection
            (combine stages); "records" for single-input stages
        upstream: Name of the producing stage
        record_type: Type every record on this input must be an instance of
    """

    param: str
    upstream: str
    record_type: type


@dataclass(frozen=True, slots=True)
class StageInfo:
    """A declared stage of a transform graph.

    Stage function signatures by kind:
    - source:  fn() -> Iterable[output_type]
    - map:     fn(record) -> Iterable[output_type]   (0..n outputs per record)
    - flatten: no function; output is the union of its inputs
    - combine: fn(**{param: list[record_type]}) -> Iterable[output_type]
    - sink:    fn(list[record_type]) -> int | None   (called once per batch)
    """

    name: str
    kind: StageKind
    fn: Callable[..., Any] | None
    inputs: tuple[StageInput, ...] = ()
    output_type: type | None = None
    batch_size: int | None = None

    @property
    def upstreams(self) -> tuple[str, ...]:
        return tuple(inp.upstream for inp in self.inputs)

    @property
    def input_type_names(self) -> tuple[str, ...]:
        return tuple(inp.record_type.__qualname__ for inp in self.inputs)
