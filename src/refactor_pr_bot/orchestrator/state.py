"""State definitions for the LangGraph run pipeline and apply/repair machine."""

import operator
from typing import Annotated, TypedDict

from refactor_pr_bot.models import (
    CandidateFailureKind,
    CandidateOutcome,
    CommitRange,
    DiffChunk,
    DiffContext,
    GenerationBatch,
    PatchLifecycleStats,
    StagedFileStat,
)

MAX_REPAIR_ATTEMPTS_LIMIT = 10


class CandidateState(TypedDict):
    """State for driving one patch candidate through scope, guard, apply and repair."""

    # Input
    repository: str
    base_ref: str
    head_ref: str
    chunk: DiffChunk
    max_repair_attempts: int
    guard_mode: str

    # Current attempt
    patch: str
    attempt: int
    applied: bool
    last_failure_kind: CandidateFailureKind | None
    last_error: str | None

    # Counters
    repair_attempts: int
    repair_no_patch: int

    # Attempt history
    errors: Annotated[list[str], operator.add]


class RunState(TypedDict):
    """State for one pipeline run.

    ``outcome`` is set by whichever node reaches a terminal result; routers end
    the graph as soon as it is present.
    """

    # Input
    event_path: str | None

    # Diff
    commit_range: CommitRange | None
    diff_context: DiffContext | None
    selected_chunks: list[DiffChunk]

    # Generation
    batch: GenerationBatch | None
    stats: PatchLifecycleStats

    # Candidates (accumulating reducer)
    candidate_index: int
    candidate_outcomes: Annotated[list[CandidateOutcome], operator.add]
    hard_failure: str | None

    # Verification and publication
    staged_files: list[str]
    change_summary: str
    file_stats: list[StagedFileStat]

    # Terminal result: SkippedOutcome | CreatedOutcome
    outcome: object | None

    # Error accumulation
    errors: Annotated[list[str], operator.add]


def make_initial_candidate_state(
    repository: str,
    base_ref: str,
    head_ref: str,
    chunk: DiffChunk,
    patch: str,
    max_repair_attempts: int,
    guard_mode: str,
) -> CandidateState:
    """Create the starting state for one candidate.

    Args:
        repository: owner/repo, passed through to repair prompts.
        base_ref: Base SHA of the run.
        head_ref: Head SHA of the run.
        chunk: Chunk the patch was generated for; defines the allowed files.
        patch: Initial patch text.
        max_repair_attempts: Repair budget, clamped to [0, MAX_REPAIR_ATTEMPTS_LIMIT].
        guard_mode: "strict" runs the behavior guard; "off" skips it.
    """
    return {
        "repository": repository,
        "base_ref": base_ref,
        "head_ref": head_ref,
        "chunk": chunk,
        "max_repair_attempts": max(0, min(max_repair_attempts, MAX_REPAIR_ATTEMPTS_LIMIT)),
        "guard_mode": guard_mode,
        "patch": patch,
        "attempt": 0,
        "applied": False,
        "last_failure_kind": None,
        "last_error": None,
        "repair_attempts": 0,
        "repair_no_patch": 0,
        "errors": [],
    }


def make_initial_state(event_path: str | None = None) -> RunState:
    """Create the initial state for a pipeline run."""
    return {
        "event_path": event_path,
        "commit_range": None,
        "diff_context": None,
        "selected_chunks": [],
        "batch": None,
        "stats": PatchLifecycleStats(),
        "candidate_index": 0,
        "candidate_outcomes": [],
        "hard_failure": None,
        "staged_files": [],
        "change_summary": "staged changes",
        "file_stats": [],
        "outcome": None,
        "errors": [],
    }
