"""Models for representing diff chunks and commit ranges."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CommitRange(BaseModel):
    """Base/head SHAs for one run."""

    model_config = ConfigDict(frozen=True)

    base_sha: str
    head_sha: str


class DiffChunk(BaseModel):
    """A bounded unit of diff work covering a disjoint subset of changed files."""

    model_config = ConfigDict(frozen=True)

    files: tuple[str, ...]  # Ordered, non-empty, unique
    diff: str  # Unified diff text covering exactly `files`
    snapshots: dict[str, str] = Field(default_factory=dict)  # path -> content at head

    @field_validator("files")
    @classmethod
    def _files_non_empty_unique(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("DiffChunk requires at least one file")
        if len(set(value)) != len(value):
            raise ValueError("DiffChunk files must be unique")
        return value


class DiffContext(BaseModel):
    """Result of extracting and chunking the diff for a commit range."""

    model_config = ConfigDict(frozen=False)

    base_sha: str
    head_sha: str
    changed_files: list[str] = Field(default_factory=list)  # After exclusion
    excluded_files: list[str] = Field(default_factory=list)
    chunks: list[DiffChunk] = Field(default_factory=list)
