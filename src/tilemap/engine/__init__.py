"""Build engine: range resolution, graph execution and orchestration."""

from tilemap.engine.orchestrator import BuildOrchestrator, BuildPlan, BuildResult, assemble_build_graph
from tilemap.engine.range import check_build_mode, resolve_build_range
from tilemap.engine.runner import DataflowRunner, RunStats

__all__ = [
    "BuildOrchestrator",
    "BuildPlan",
    "BuildResult",
    "DataflowRunner",
    "RunStats",
    "assemble_build_graph",
    "check_build_mode",
    "resolve_build_range",
]
