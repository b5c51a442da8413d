"""Pull request title and body rendering."""

from refactor_pr_bot.models import PatchLifecycleStats, StagedFileStat, UsageStats
from refactor_pr_bot.utils.file_classifier import (
    is_config_file,
    is_doc_file,
    is_source_file,
    is_test_file,
)

PR_TITLE = "auto: refactor & optimization"
COMMIT_MESSAGE = PR_TITLE


def format_usd(value: float) -> str:
    return f"${value:.6f}"


def infer_impact_notes(files: list[str]) -> list[str]:
    """Describe the likely runtime impact from the classes of files touched."""
    if not files:
        return ["No changed files were staged."]

    has_source = any(is_source_file(path) and not is_test_file(path) for path in files)
    has_tests = any(is_test_file(path) for path in files)
    has_docs_or_config = any(is_doc_file(path) or is_config_file(path) for path in files)

    if not has_source and has_tests:
        return [
            "Runtime behavior risk is low because only tests/docs/config were changed.",
            "Primary value is readability and maintainability of supporting files.",
        ]
    if has_source:
        return [
            "Source files changed with refactor-only intent; behavior guard and tests "
            "are used as safety rails.",
            "Expected impact: improved readability/structure, with potential minor "
            "performance/maintenance gains.",
        ]
    if has_docs_or_config:
        return [
            "Changes are scoped to docs/configuration; runtime behavior is expected "
            "to remain unchanged."
        ]
    return [
        "Changes are expected to be behavior-preserving based on patch guardrails "
        "and test verification."
    ]


def _file_lines(files: list[str], file_stats: list[StagedFileStat]) -> list[str]:
    if not files:
        return ["- (none)"]
    stats_by_path = {stat.path: stat for stat in file_stats}
    lines = []
    for path in files:
        stat = stats_by_path.get(path)
        if stat is None:
            lines.append(f"- {path}")
        elif stat.is_binary:
            lines.append(f"- {path} (binary diff)")
        else:
            lines.append(f"- {path} (+{stat.additions} / -{stat.deletions})")
    return lines


def _usage_lines(usage: UsageStats | None) -> list[str]:
    if usage is None:
        return ["- Usage stats unavailable in this run context."]
    return [
        f"- HTTP requests: {usage.http_requests} ({usage.retry_count} retries)",
        f"- Tokens: {usage.total_tokens} (prompt {usage.prompt_tokens}, "
        f"completion {usage.completion_tokens})",
        f"- Cost: {format_usd(usage.total_cost_usd)}",
        f"- Latency: avg {usage.average_latency_ms}ms, max {usage.max_latency_ms}ms",
    ]


def build_pr_body(
    files: list[str],
    file_stats: list[StagedFileStat],
    change_summary: str,
    test_command: str,
    base_sha: str,
    head_sha: str,
    total_chunks: int,
    analyzed_chunks: int,
    stats: PatchLifecycleStats,
    usage: UsageStats | None = None,
) -> str:
    """Render the markdown body for the refactor pull request."""
    if analyzed_chunks < total_chunks:
        coverage = (
            f"- Model analyzed {analyzed_chunks}/{total_chunks} prioritized chunks "
            "(tune with `MAX_CHUNKS_PER_RUN`)."
        )
    else:
        coverage = f"- Model analyzed all {total_chunks} diff chunks."

    sections = [
        "## Summary",
        "",
        "Automated refactor and optimization suggestions generated by the refactor bot.",
        "",
        "## Why These Changes",
        coverage,
        f"- Model generated {stats.generated_patch_count} candidate patches; "
        f"{stats.applied_patch_count} passed all safeguards and were applied.",
        f"- Chunk outcomes: {stats.skipped_chunks} no-change, "
        f"{stats.failed_chunks} model failures.",
        "",
        "## What Changed",
        *_file_lines(files, file_stats),
        f"- Change footprint: {change_summary}",
        "",
        "## Potential Impact",
        *(f"- {note}" for note in infer_impact_notes(files)),
        "",
        "## Safety Checks",
        f"- Behavior guard blocked: {stats.behavior_guard_blocked}",
        f"- Scope guard blocked: {stats.scope_guard_blocked}",
        f"- Patch repair attempts: {stats.repair_attempts} "
        f"(no-patch outcomes: {stats.repair_no_patch})",
        f"- Post-apply validation: `{test_command}` passed before PR creation.",
        "",
        "## Run Cost",
        *_usage_lines(usage),
        "",
        "## Source Range",
        f"- Base: {base_sha}",
        f"- Head: {head_sha}",
        "",
        "No intended behavior changes.",
    ]
    return "\n".join(sections)
