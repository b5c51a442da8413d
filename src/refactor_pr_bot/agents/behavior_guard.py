"""Static behavior-risk guard for generated patches.

A source-file edit is accepted only when the removed and added lines tokenize
to the same sequence, i.e. the change is whitespace or layout only. Test,
documentation and configuration files are exempt. Anything else without a
recognised source extension is blocked outright.
"""

import re

from refactor_pr_bot.models import GuardAssessment
from refactor_pr_bot.utils.diff_parser import DEV_NULL, git_header_target, normalize_patch_path
from refactor_pr_bot.utils.file_classifier import (
    is_config_file,
    is_doc_file,
    is_source_file,
    is_test_file,
)

TOKEN_RE = re.compile(
    r"[A-Za-z_][A-Za-z0-9_]*|\d+|==={1,2}|!==|!=|<=|>=|=>|\+\+|--|&&|\|\|"
    r"|[{}()\[\].,;:+\-*/%?<>!=&|^~]"
)


def tokenize(text: str) -> list[str]:
    return TOKEN_RE.findall(text)


def _collect_changed_lines(patch: str) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
    """Group removed and added hunk lines by file, in first-seen file order."""
    removed: dict[str, list[str]] = {}
    added: dict[str, list[str]] = {}
    current_file: str | None = None
    in_hunk = False

    lines = patch.split("\n")
    for index, line in enumerate(lines):
        if line.startswith("diff --git "):
            current_file = git_header_target(line)
            in_hunk = False
            continue
        is_header_pair = (
            line.startswith("--- ")
            and index + 1 < len(lines)
            and lines[index + 1].startswith("+++ ")
        )
        if is_header_pair:
            in_hunk = False
            continue
        if line.startswith("+++ ") and not in_hunk:
            target = normalize_patch_path(line[4:])
            if target != DEV_NULL:
                current_file = target
            continue
        if line.startswith("@@ "):
            in_hunk = True
            continue
        if not in_hunk or current_file is None:
            continue

        if line.startswith("+"):
            removed.setdefault(current_file, [])
            added.setdefault(current_file, []).append(line[1:])
        elif line.startswith("-"):
            added.setdefault(current_file, [])
            removed.setdefault(current_file, []).append(line[1:])

    return removed, added


def assess_patch_behavior_risk(patch: str) -> GuardAssessment:
    """Decide whether a patch is safe to apply without behavior review.

    Returns:
        GuardAssessment with ``safe`` False and one reason per blocked file.
    """
    removed, added = _collect_changed_lines(patch)
    reasons: list[str] = []

    for file_path in removed:
        if is_test_file(file_path) or is_doc_file(file_path) or is_config_file(file_path):
            continue
        if not is_source_file(file_path):
            reasons.append(f"Behavior guard blocked unsupported source file type: {file_path}")
            continue

        removed_tokens = tokenize("\n".join(removed[file_path]))
        added_tokens = tokenize("\n".join(added[file_path]))
        if not removed_tokens and not added_tokens:
            continue
        if removed_tokens != added_tokens:
            reasons.append(f"Behavior guard blocked semantic token changes in {file_path}")

    return GuardAssessment(safe=not reasons, reasons=reasons)
