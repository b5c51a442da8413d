"""Exceptions for agent operations."""


class AgentError(Exception):
    """Base exception for all agent operations."""


class GenerationError(AgentError):
    """Base exception for patch generation failures."""


class InvalidOutputError(GenerationError):
    """Raised when the model response contains no usable diff or signal."""


class PatchValidationError(InvalidOutputError):
    """Raised when extracted diff text is structurally invalid."""


class LLMAPIError(GenerationError):
    """Raised when the chat-completion API fails or returns an unusable body."""

    def __init__(self, message: str, status: int | None = None, payload: object = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload


class LLMTimeoutError(GenerationError):
    """Raised when a chat-completion request times out."""
