"""Exceptions for orchestrator operations."""


class OrchestratorError(Exception):
    """Base exception for all orchestrator operations."""


class GraphBuildError(OrchestratorError):
    """Raised when graph construction fails."""


class PipelineRunError(OrchestratorError):
    """Raised when infrastructure fails before a run outcome exists."""


class WatchError(OrchestratorError):
    """Raised when watch mode cannot establish or advance its baseline."""
