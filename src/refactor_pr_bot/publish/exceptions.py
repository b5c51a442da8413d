"""Exceptions for publishing pull requests."""


class PublishError(Exception):
    """Base exception for publication failures."""


class GitHubAPIError(PublishError):
    """Raised when the GitHub API returns a non-success status."""

    def __init__(self, message: str, status: int, payload: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload
