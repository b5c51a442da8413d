"""Exceptions for git operations."""


class GitError(Exception):
    """Base exception for all git-backed operations."""


class DiffExtractionError(GitError):
    """Raised when diff chunking produces no chunks although changes existed."""


class PatchApplyError(GitError):
    """Raised when git apply rejects a patch."""
