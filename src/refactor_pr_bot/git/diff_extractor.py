"""Diff extraction and chunking for a commit range."""

import json
import logging
import re
from pathlib import Path

from refactor_pr_bot.git.exceptions import DiffExtractionError
from refactor_pr_bot.models import CommitRange, DiffChunk, DiffContext
from refactor_pr_bot.utils.exec import CommandExecutionError, CommandRunner

logger = logging.getLogger(__name__)

ZERO_SHA = "0" * 40


def read_push_event_payload(event_path: str | None) -> dict | None:
    """Read a JSON push-event payload, or None when no path is given."""
    if not event_path:
        return None
    payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        logger.warning("Ignoring event payload %s: expected a JSON object", event_path)
        return None
    return payload


class GitDiffExtractor:
    """Splits the diff of a commit range into bounded, per-file chunks."""

    def __init__(
        self,
        runner: CommandRunner,
        max_diff_size: int,
        max_files_per_chunk: int = 1,
        exclude_patterns: list[str] | None = None,
    ) -> None:
        self.runner = runner
        self.max_diff_size = max_diff_size
        self.max_files_per_chunk = max(1, max_files_per_chunk)
        self.exclude_patterns = [
            re.compile(pattern, re.IGNORECASE) for pattern in (exclude_patterns or [])
        ]

    def resolve_range(self, event_path: str | None = None) -> CommitRange:
        """Resolve the base/head range from a push payload, else HEAD~1..HEAD."""
        try:
            payload = read_push_event_payload(event_path)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable event payload %s: %s", event_path, exc)
            payload = None

        if payload:
            before = payload.get("before")
            after = payload.get("after")
            usable = isinstance(before, str) and isinstance(after, str)
            if usable and before and after and before != ZERO_SHA:
                return CommitRange(base_sha=before, head_sha=after)

        head_sha = self.runner.run("git", ["rev-parse", "HEAD"])
        base_sha = self.runner.run("git", ["rev-parse", "HEAD~1"])
        return CommitRange(base_sha=base_sha, head_sha=head_sha)

    def is_excluded(self, file_path: str) -> bool:
        return any(pattern.search(file_path) for pattern in self.exclude_patterns)

    def extract(self, base_sha: str, head_sha: str) -> DiffContext | None:
        """Chunk the diff between two commits.

        Returns:
            DiffContext with at least one chunk, or None when nothing changed or
            every changed file was excluded or had an empty diff.

        Raises:
            DiffExtractionError: If per-file diffs existed but no chunk was built.
        """
        raw = self.runner.run("git", ["diff", "--name-only", base_sha, head_sha])
        all_files = [line.strip() for line in raw.split("\n") if line.strip()]
        if not all_files:
            logger.info("No files changed between %s and %s", base_sha, head_sha)
            return None

        changed_files = [path for path in all_files if not self.is_excluded(path)]
        excluded_files = [path for path in all_files if self.is_excluded(path)]
        if not changed_files:
            logger.info(
                "All %d changed files matched exclusion patterns; nothing left to analyze",
                len(excluded_files),
            )
            return None

        chunks = self._split_by_file(base_sha, head_sha, changed_files)
        if not chunks:
            logger.info("Changed files produced no textual diff; nothing left to analyze")
            return None

        return DiffContext(
            base_sha=base_sha,
            head_sha=head_sha,
            changed_files=changed_files,
            excluded_files=excluded_files,
            chunks=chunks,
        )

    def _split_by_file(
        self, base_sha: str, head_sha: str, files: list[str]
    ) -> list[DiffChunk]:
        chunks: list[DiffChunk] = []
        current_diff = ""
        current_files: list[str] = []
        current_snapshots: dict[str, str] = {}
        saw_diff = False

        for file_path in files:
            file_diff = self.runner.run(
                "git", ["diff", "--unified=3", base_sha, head_sha, "--", file_path]
            )
            if not file_diff.strip():
                continue
            saw_diff = True

            next_length = len(current_diff) + len(file_diff) + 1
            over_size = next_length > self.max_diff_size and current_files
            at_file_cap = len(current_files) >= self.max_files_per_chunk
            if over_size or at_file_cap:
                chunks.append(_make_chunk(current_files, current_diff, current_snapshots))
                current_diff = ""
                current_files = []
                current_snapshots = {}

            current_diff += f"{file_diff.rstrip()}\n"
            current_files.append(file_path)
            current_snapshots[file_path] = self._read_snapshot(head_sha, file_path)

        if current_files:
            chunks.append(_make_chunk(current_files, current_diff, current_snapshots))

        if saw_diff and not chunks:
            raise DiffExtractionError(
                f"Diff split produced no chunks while changes existed ({base_sha}..{head_sha})"
            )
        return chunks

    def _read_snapshot(self, ref: str, file_path: str) -> str:
        try:
            return self.runner.run("git", ["show", f"{ref}:{file_path}"])
        except CommandExecutionError:
            # Deleted at head
            return ""


def _make_chunk(files: list[str], diff: str, snapshots: dict[str, str]) -> DiffChunk:
    return DiffChunk(files=tuple(files), diff=diff.rstrip(), snapshots=dict(snapshots))
