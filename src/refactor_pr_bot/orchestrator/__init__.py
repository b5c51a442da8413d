"""LangGraph orchestrator package for the refactor PR pipeline."""

from refactor_pr_bot.orchestrator.apply_graph import build_apply_graph, run_candidate
from refactor_pr_bot.orchestrator.exceptions import (
    GraphBuildError,
    OrchestratorError,
    PipelineRunError,
    WatchError,
)
from refactor_pr_bot.orchestrator.graph import RefactorPipeline, build_graph
from refactor_pr_bot.orchestrator.prioritizer import prioritize_chunks
from refactor_pr_bot.orchestrator.state import CandidateState, RunState, make_initial_state
from refactor_pr_bot.orchestrator.watch import PollingPushWatcher, WatchEventContext

__all__ = [
    "CandidateState",
    "GraphBuildError",
    "OrchestratorError",
    "PipelineRunError",
    "PollingPushWatcher",
    "RefactorPipeline",
    "RunState",
    "WatchError",
    "WatchEventContext",
    "build_apply_graph",
    "build_graph",
    "make_initial_state",
    "prioritize_chunks",
    "run_candidate",
]
