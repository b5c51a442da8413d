"""Apply patches to the index with ``git apply`` and inspect staged state."""

import logging
import shutil
import tempfile
from pathlib import Path

from refactor_pr_bot.git.exceptions import PatchApplyError
from refactor_pr_bot.models import StagedFileStat
from refactor_pr_bot.utils.exec import CommandExecutionError, CommandRunner

logger = logging.getLogger(__name__)

MAX_ERROR_LINES = 20
APPLY_FLAGS = ["--index", "--recount"]


def summarize_git_apply_error(text: str, max_lines: int = MAX_ERROR_LINES) -> str:
    """Collapse consecutive repeated lines and cap the output length."""
    collapsed: list[str] = []
    previous: str | None = None
    repeat = 0

    def _flush() -> None:
        if previous is None:
            return
        if repeat > 1:
            collapsed.append(f"{previous} (repeated {repeat}x)")
        else:
            collapsed.append(previous)

    for raw_line in text.split("\n"):
        line = raw_line.rstrip()
        if not line:
            continue
        if line == previous:
            repeat += 1
            continue
        _flush()
        previous = line
        repeat = 1
    _flush()

    if len(collapsed) > max_lines:
        omitted = len(collapsed) - max_lines
        collapsed = collapsed[:max_lines] + [f"... ({omitted} more lines omitted)"]
    return "\n".join(collapsed)


def parse_numstat(output: str) -> list[StagedFileStat]:
    """Parse ``git diff --cached --numstat`` output.

    Binary files are reported by git as ``-\t-\tpath``.
    """
    stats: list[StagedFileStat] = []
    for line in output.split("\n"):
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        added, deleted, path = parts[0], parts[1], "\t".join(parts[2:])
        if added == "-" or deleted == "-":
            stats.append(StagedFileStat(path=path, is_binary=True))
            continue
        try:
            stats.append(
                StagedFileStat(path=path, additions=int(added), deletions=int(deleted))
            )
        except ValueError:
            logger.debug("Skipping unparsable numstat line: %s", line)
    return stats


class GitApplyEngine:
    """Applies unified diffs to the working tree and index of one repository."""

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def apply_unified_diff(self, patch: str) -> None:
        """Check then apply ``patch`` against the index.

        Raises:
            PatchApplyError: If git rejects the patch at either step.
        """
        temp_dir = Path(tempfile.mkdtemp(prefix="refactor-pr-bot-patch-"))
        patch_path = temp_dir / "change.patch"
        try:
            patch_path.write_text(patch if patch.endswith("\n") else f"{patch}\n", encoding="utf-8")
            self.runner.run("git", ["apply", "--check", *APPLY_FLAGS, str(patch_path)])
            self.runner.run("git", ["apply", *APPLY_FLAGS, str(patch_path)])
        except CommandExecutionError as exc:
            detail = summarize_git_apply_error(exc.stderr or exc.stdout or str(exc))
            raise PatchApplyError(f"Failed to apply patch with git apply: {detail}") from exc
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)
        logger.debug("Applied patch (%d bytes)", len(patch))

    def has_staged_changes(self) -> bool:
        return bool(self.list_staged_files())

    def list_staged_files(self) -> list[str]:
        output = self.runner.run("git", ["diff", "--cached", "--name-only"])
        return [line.strip() for line in output.split("\n") if line.strip()]

    def staged_shortstat(self) -> str:
        return self.runner.run("git", ["diff", "--cached", "--shortstat"]).strip()

    def staged_numstat(self) -> list[StagedFileStat]:
        return parse_numstat(self.runner.run("git", ["diff", "--cached", "--numstat"]))
