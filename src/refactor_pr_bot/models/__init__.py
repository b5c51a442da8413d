"""Data models for the refactor PR bot."""

from refactor_pr_bot.models.diff_models import CommitRange, DiffChunk, DiffContext
from refactor_pr_bot.models.patch_models import (
    CandidateFailureKind,
    CandidateOutcome,
    CandidateStatus,
    FailureBreakdown,
    FailureKind,
    GenerationBatch,
    GenerationResult,
    GuardAssessment,
    NoChanges,
    PatchCandidate,
    PatchLifecycleStats,
    PatchProposal,
)
from refactor_pr_bot.models.report_models import (
    CreatedOutcome,
    ModelFailureDetail,
    ModelFailureSubtype,
    PullRequestInfo,
    RepositorySummary,
    RunOutcome,
    SkippedOutcome,
    SkipReason,
    StagedFileStat,
    UsageStats,
)

__all__ = [
    "CandidateFailureKind",
    "CandidateOutcome",
    "CandidateStatus",
    "CommitRange",
    "CreatedOutcome",
    "DiffChunk",
    "DiffContext",
    "FailureBreakdown",
    "FailureKind",
    "GenerationBatch",
    "GenerationResult",
    "GuardAssessment",
    "ModelFailureDetail",
    "ModelFailureSubtype",
    "NoChanges",
    "PatchCandidate",
    "PatchLifecycleStats",
    "PatchProposal",
    "PullRequestInfo",
    "RepositorySummary",
    "RunOutcome",
    "SkippedOutcome",
    "SkipReason",
    "StagedFileStat",
    "UsageStats",
]
