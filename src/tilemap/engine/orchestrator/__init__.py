"""Build orchestration: graph assembly and the build lifecycle."""

from tilemap.engine.orchestrator.core import BuildOrchestrator
from tilemap.engine.orchestrator.pipeline import assemble_build_graph
from tilemap.engine.orchestrator.types import BuildPlan, BuildResult

__all__ = ["BuildOrchestrator", "BuildPlan", "BuildResult", "assemble_build_graph"]
