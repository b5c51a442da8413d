"""Utilities for the refactor PR bot."""

from refactor_pr_bot.utils.diff_parser import extract_patched_files, normalize_patch_path
from refactor_pr_bot.utils.exec import CommandExecutionError, CommandRunner
from refactor_pr_bot.utils.file_classifier import FileCategory, classify_file

__all__ = [
    "CommandExecutionError",
    "CommandRunner",
    "FileCategory",
    "classify_file",
    "extract_patched_files",
    "normalize_patch_path",
]
