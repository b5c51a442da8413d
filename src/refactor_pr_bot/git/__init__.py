"""Git adapters: diff extraction, patch application and publishing."""

from refactor_pr_bot.git.apply import GitApplyEngine, parse_numstat, summarize_git_apply_error
from refactor_pr_bot.git.branch import GitBranchManager
from refactor_pr_bot.git.diff_extractor import GitDiffExtractor, read_push_event_payload
from refactor_pr_bot.git.exceptions import DiffExtractionError, GitError, PatchApplyError
from refactor_pr_bot.git.repo_scanner import GitRepositoryScanner

__all__ = [
    "DiffExtractionError",
    "GitApplyEngine",
    "GitBranchManager",
    "GitDiffExtractor",
    "GitError",
    "GitRepositoryScanner",
    "PatchApplyError",
    "parse_numstat",
    "read_push_event_payload",
    "summarize_git_apply_error",
]
