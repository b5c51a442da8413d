"""Tests for commit range resolution and diff chunking."""
import json

import pytest

from refactor_pr_bot.git.diff_extractor import ZERO_SHA, GitDiffExtractor
from refactor_pr_bot.models import CommitRange
from refactor_pr_bot.utils.exec import CommandExecutionError


# ---------------------------------------------------------------------------
# Helpers / shared fixtures
# ---------------------------------------------------------------------------

def file_diff(path: str, body_length: int = 20) -> str:
    """Helper to create a per-file diff of a predictable size."""
    return (
        f"diff --git a/{path} b/{path}\n"
        f"--- a/{path}\n"
        f"+++ b/{path}\n"
        "@@ -1 +1 @@\n"
        f"-{'x' * body_length}\n"
        f"+{'y' * body_length}\n"
    )


def scripted_git(diffs: dict[str, str], deleted: frozenset = frozenset()):
    """Fallback for FakeRunner answering name-only, per-file diff and show."""

    def _run(command, args):
        if args[:2] == ["diff", "--name-only"]:
            return "\n".join(diffs)
        if args[:2] == ["diff", "--unified=3"]:
            return diffs[args[-1]]
        if args[0] == "show":
            path = args[1].split(":", 1)[1]
            if path in deleted:
                raise CommandExecutionError(command, args, exit_code=128)
            return f"content of {path}"
        return ""

    return _run


@pytest.fixture
def extractor_for(fake_runner):
    def _build(diffs, max_diff_size=100_000, max_files_per_chunk=1, exclude=None, deleted=frozenset()):
        fake_runner.fallback = scripted_git(diffs, deleted)
        return GitDiffExtractor(
            fake_runner,
            max_diff_size=max_diff_size,
            max_files_per_chunk=max_files_per_chunk,
            exclude_patterns=exclude,
        )

    return _build


# ---------------------------------------------------------------------------
# resolve_range
# ---------------------------------------------------------------------------

class TestResolveRange:

    def test_uses_push_payload(self, fake_runner, tmp_path):
        event = tmp_path / "event.json"
        event.write_text(json.dumps({"before": "aaa", "after": "bbb"}), encoding="utf-8")
        extractor = GitDiffExtractor(fake_runner, max_diff_size=1000)

        assert extractor.resolve_range(str(event)) == CommitRange(base_sha="aaa", head_sha="bbb")
        assert fake_runner.calls == []

    def test_zero_before_falls_back_to_head_parent(self, fake_runner, tmp_path):
        event = tmp_path / "event.json"
        event.write_text(json.dumps({"before": ZERO_SHA, "after": "bbb"}), encoding="utf-8")
        fake_runner.responses = {
            ("git", "rev-parse", "HEAD"): "head",
            ("git", "rev-parse", "HEAD~1"): "parent",
        }
        extractor = GitDiffExtractor(fake_runner, max_diff_size=1000)

        assert extractor.resolve_range(str(event)) == CommitRange(base_sha="parent", head_sha="head")

    def test_unreadable_payload_falls_back(self, fake_runner, tmp_path):
        event = tmp_path / "event.json"
        event.write_text("{not json", encoding="utf-8")
        fake_runner.responses = {
            ("git", "rev-parse", "HEAD"): "head",
            ("git", "rev-parse", "HEAD~1"): "parent",
        }
        extractor = GitDiffExtractor(fake_runner, max_diff_size=1000)

        assert extractor.resolve_range(str(event)).base_sha == "parent"

    @pytest.mark.parametrize(
        "content",
        ['["before", "after"]', "42", "null", '{"before": 1, "after": 2}'],
    )
    def test_non_object_payload_falls_back(self, fake_runner, tmp_path, content):
        event = tmp_path / "event.json"
        event.write_text(content, encoding="utf-8")
        fake_runner.responses = {
            ("git", "rev-parse", "HEAD"): "head",
            ("git", "rev-parse", "HEAD~1"): "parent",
        }
        extractor = GitDiffExtractor(fake_runner, max_diff_size=1000)

        commit_range = extractor.resolve_range(str(event))
        assert (commit_range.base_sha, commit_range.head_sha) == ("parent", "head")

    def test_no_event_path(self, fake_runner):
        fake_runner.responses = {
            ("git", "rev-parse", "HEAD"): "head",
            ("git", "rev-parse", "HEAD~1"): "parent",
        }
        extractor = GitDiffExtractor(fake_runner, max_diff_size=1000)
        assert extractor.resolve_range(None).head_sha == "head"


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------

class TestExtract:

    def test_no_changed_files(self, extractor_for):
        assert extractor_for({}).extract("base", "head") is None

    def test_all_files_excluded(self, extractor_for):
        extractor = extractor_for(
            {"package-lock.json": file_diff("package-lock.json")},
            exclude=[r"(^|/)package-lock\.json$"],
        )
        assert extractor.extract("base", "head") is None

    def test_empty_file_diffs_yield_none(self, extractor_for):
        assert extractor_for({"src/a.ts": "  \n"}).extract("base", "head") is None

    def test_chunks_cover_each_file_once(self, extractor_for):
        diffs = {path: file_diff(path) for path in ("src/a.ts", "src/b.ts", "src/c.ts")}
        context = extractor_for(diffs, max_files_per_chunk=2).extract("base", "head")

        assert [chunk.files for chunk in context.chunks] == [("src/a.ts", "src/b.ts"), ("src/c.ts",)]
        covered = [path for chunk in context.chunks for path in chunk.files]
        assert sorted(covered) == sorted(context.changed_files)
        assert len(covered) == len(set(covered))

    def test_exclusions_are_reported(self, extractor_for):
        diffs = {"src/a.ts": file_diff("src/a.ts"), "dist/app.js": file_diff("dist/app.js")}
        context = extractor_for(diffs, exclude=[r"(^|/)dist/"]).extract("base", "head")

        assert context.changed_files == ["src/a.ts"]
        assert context.excluded_files == ["dist/app.js"]

    def test_size_bound_splits_chunks(self, extractor_for):
        diffs = {path: file_diff(path) for path in ("src/a.ts", "src/b.ts")}
        single = len(file_diff("src/a.ts"))
        context = extractor_for(
            diffs, max_diff_size=single + 10, max_files_per_chunk=5
        ).extract("base", "head")

        assert len(context.chunks) == 2
        assert all(len(chunk.diff) <= single + 10 for chunk in context.chunks)

    def test_oversized_single_file_gets_its_own_chunk(self, extractor_for):
        diffs = {"src/big.ts": file_diff("src/big.ts", body_length=500)}
        context = extractor_for(diffs, max_diff_size=100).extract("base", "head")

        assert len(context.chunks) == 1
        assert context.chunks[0].files == ("src/big.ts",)
        assert len(context.chunks[0].diff) > 100

    def test_snapshots_read_at_head(self, extractor_for, fake_runner):
        diffs = {"src/a.ts": file_diff("src/a.ts"), "src/gone.ts": file_diff("src/gone.ts")}
        context = extractor_for(
            diffs, max_files_per_chunk=2, deleted=frozenset({"src/gone.ts"})
        ).extract("base", "head")

        assert context.chunks[0].snapshots == {"src/a.ts": "content of src/a.ts", "src/gone.ts": ""}
        assert fake_runner.called("git", "show", "head:src/a.ts")
