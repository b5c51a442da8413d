"""Report models for run outcomes, usage and publication."""

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SkipReason(str, Enum):
    NO_DIFF = "no_diff"
    NO_PATCH = "no_patch"
    TEST_FAILURE = "test_failure"
    PATCH_APPLY_FAILURE = "patch_apply_failure"
    MODEL_FAILURE = "model_failure"


class ModelFailureSubtype(str, Enum):
    TIMEOUT = "timeout"
    INVALID_OUTPUT = "invalid_output"
    API_ERROR = "api_error"
    UNKNOWN = "unknown"
    MIXED = "mixed"


class ModelFailureDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtype: ModelFailureSubtype
    failed_chunks: int
    total_chunks: int


class SkippedOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["skipped"] = "skipped"
    reason: SkipReason
    model_failure: ModelFailureDetail | None = None  # Only for MODEL_FAILURE

    @model_validator(mode="after")
    def _detail_matches_reason(self) -> "SkippedOutcome":
        if (self.reason == SkipReason.MODEL_FAILURE) != (self.model_failure is not None):
            raise ValueError("model_failure detail is required for, and only for, model_failure")
        return self


class CreatedOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["created"] = "created"
    branch_name: str
    pull_request_url: str
    files: list[str]
    change_summary: str


RunOutcome = Annotated[Union[SkippedOutcome, CreatedOutcome], Field(discriminator="status")]


class UsageStats(BaseModel):
    """Accumulated generation-client usage for one run."""

    model_config = ConfigDict(frozen=False)

    http_requests: int = 0
    successful_responses: int = 0
    retry_count: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    total_cost_usd: float = 0.0
    total_latency_ms: int = 0
    max_latency_ms: int = 0

    @property
    def average_latency_ms(self) -> int:
        if self.successful_responses == 0:
            return 0
        return round(self.total_latency_ms / self.successful_responses)


class StagedFileStat(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    additions: int = 0
    deletions: int = 0
    is_binary: bool = False


class RepositorySummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    tracked_file_count: int
    top_level_directories: list[str] = Field(default_factory=list)


class PullRequestInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    number: int
