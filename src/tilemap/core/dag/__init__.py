"""Transform graph construction and validation.

Public API:
- TransformGraph: typed stage graph
- StageInfo / StageInput: stage declarations
- GraphValidationError: structural or type errors
"""

from tilemap.core.dag.graph import TransformGraph
from tilemap.core.dag.models import GraphValidationError, StageInfo, StageInput

__all__ = [
    "GraphValidationError",
    "StageInfo",
    "StageInput",
    "TransformGraph",
]
