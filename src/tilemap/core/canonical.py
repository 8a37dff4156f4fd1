"""Canonical JSON (RFC 8785) for tile payloads and graph hashes.

Keys are sorted and no whitespace is emitted, so equal values always
serialize to equal bytes. Callers pass JSON-native values only: tile
payloads base64-encode their byte fields before they get here.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any

import rfc8785

if TYPE_CHECKING:
    from tilemap.core.dag import TransformGraph


def canonical_json(obj: Any) -> str:
    """Serialize obj as RFC 8785 canonical JSON.

    Raises:
        rfc8785.CanonicalizationError: If obj holds NaN, infinities or
            integers outside the IEEE 754 safe range
    """
    result: bytes = rfc8785.dumps(obj)
    return result.decode("utf-8")


def stable_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form of obj."""
    return hashlib.sha256(canonical_json(obj).encode("utf-8")).hexdigest()


def compute_graph_topology_hash(graph: TransformGraph) -> str:
    """Hash the stages and wiring of a transform graph.

    Two graphs with the same stage names, kinds, record types and edges
    hash equal regardless of insertion order. Logged with each build so
    that runs over differently shaped graphs can be told apart.
    """
    topology = {
        "stages": sorted(
            [
                {
                    "name": stage.name,
                    "kind": stage.kind.value,
                    "inputs": list(stage.input_type_names),
                    "output_type": stage.output_type.__qualname__ if stage.output_type is not None else None,
                }
                for stage in graph.stages()
            ],
            key=lambda s: s["name"],
        ),
        "edges": sorted([{"from": u, "to": v} for u, v in graph.edges()], key=lambda e: (e["from"], e["to"])),
    }
    return stable_hash(topology)
