"""Pure helpers for candidate scope checks and failure bookkeeping."""

from refactor_pr_bot.models import (
    CandidateFailureKind,
    DiffChunk,
    FailureBreakdown,
    ModelFailureSubtype,
)
from refactor_pr_bot.utils.diff_parser import extract_patched_files

REPAIR_NO_PATCH_MESSAGE = "Repair did not produce a patch"

# Candidate failure kinds that skip the candidate instead of failing the run
SKIPPABLE_FAILURE_KINDS = frozenset({
    CandidateFailureKind.SCOPE,
    CandidateFailureKind.GUARD,
    CandidateFailureKind.REPAIR_NO_PATCH,
})


def find_out_of_scope_files(patch: str, chunk: DiffChunk) -> list[str]:
    """Paths touched by ``patch`` that are not in the chunk's file set."""
    allowed = set(chunk.files)
    return [path for path in extract_patched_files(patch) if path not in allowed]


def derive_model_failure_subtype(breakdown: FailureBreakdown) -> ModelFailureSubtype:
    """Single nonzero kind maps to itself; several map to MIXED; none to UNKNOWN."""
    kinds = breakdown.nonzero_kinds()
    if not kinds:
        return ModelFailureSubtype.UNKNOWN
    if len(kinds) > 1:
        return ModelFailureSubtype.MIXED
    return ModelFailureSubtype(kinds[0].value)


def is_skippable_failure(kind: CandidateFailureKind | None) -> bool:
    return kind in SKIPPABLE_FAILURE_KINDS
