"""Models for generated patches and their lifecycle."""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from refactor_pr_bot.models.diff_models import DiffChunk


class NoChanges(BaseModel):
    """Generator declined to propose a change."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["no_changes"] = "no_changes"
    raw: str = ""


class PatchProposal(BaseModel):
    """Generator proposed a structurally valid unified diff."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["patch"] = "patch"
    patch: str
    raw: str = ""


GenerationResult = Annotated[Union[NoChanges, PatchProposal], Field(discriminator="kind")]


class FailureKind(str, Enum):
    """Chunk-level generation failure classes."""

    TIMEOUT = "timeout"
    INVALID_OUTPUT = "invalid_output"
    API_ERROR = "api_error"
    UNKNOWN = "unknown"


class FailureBreakdown(BaseModel):
    model_config = ConfigDict(frozen=False)

    timeout: int = 0
    invalid_output: int = 0
    api_error: int = 0
    unknown: int = 0

    def record(self, kind: FailureKind) -> None:
        setattr(self, kind.value, getattr(self, kind.value) + 1)

    def nonzero_kinds(self) -> list[FailureKind]:
        return [kind for kind in FailureKind if getattr(self, kind.value) > 0]


class PatchCandidate(BaseModel):
    """A proposed patch bound to the chunk it was generated for."""

    model_config = ConfigDict(frozen=False)

    chunk: DiffChunk
    patch: str  # Replaced on each successful repair


class GenerationBatch(BaseModel):
    """Outcome of requesting patches for a list of chunks."""

    model_config = ConfigDict(frozen=False)

    candidates: list[PatchCandidate] = Field(default_factory=list)
    no_change_chunks: int = 0
    failed_chunks: int = 0
    failure_breakdown: FailureBreakdown = Field(default_factory=FailureBreakdown)


class CandidateFailureKind(str, Enum):
    """Why a candidate attempt did not apply."""

    SCOPE = "scope"
    GUARD = "guard"
    REPAIR_NO_PATCH = "repair_no_patch"
    APPLY = "apply"


class CandidateStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"  # Isolated rejection; next candidate is tried
    FAILED = "failed"  # Hard apply failure for the whole run


class CandidateOutcome(BaseModel):
    """Terminal result of driving one candidate through apply/repair."""

    model_config = ConfigDict(frozen=False)

    status: CandidateStatus
    final_patch: str
    files: list[str] = Field(default_factory=list)  # Touched by final_patch
    failure_kind: CandidateFailureKind | None = None
    error: str | None = None
    repair_attempts: int = 0
    repair_no_patch: int = 0


class GuardAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    safe: bool
    reasons: list[str] = Field(default_factory=list)


class PatchLifecycleStats(BaseModel):
    """Per-run patch counters. Reporting only."""

    model_config = ConfigDict(frozen=False)

    generated_patch_count: int = 0
    applied_patch_count: int = 0
    behavior_guard_blocked: int = 0
    scope_guard_blocked: int = 0
    repair_attempts: int = 0
    repair_no_patch: int = 0
    failed_chunks: int = 0
    skipped_chunks: int = 0

    def record_candidate(self, outcome: CandidateOutcome) -> None:
        self.repair_attempts += outcome.repair_attempts
        self.repair_no_patch += outcome.repair_no_patch
        if outcome.status == CandidateStatus.APPLIED:
            self.applied_patch_count += 1
        elif outcome.failure_kind == CandidateFailureKind.GUARD:
            self.behavior_guard_blocked += 1
        elif outcome.failure_kind == CandidateFailureKind.SCOPE:
            self.scope_guard_blocked += 1
