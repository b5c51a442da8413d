"""Chunk prioritization: most valuable, lowest-risk chunks first."""

from refactor_pr_bot.models import DiffChunk
from refactor_pr_bot.utils.file_classifier import FileCategory, classify_file

# Scores by category
SCORE_TEST = 100
SCORE_DOC_OR_CONFIG = 80
SCORE_SOURCE = 70
SCORE_SOURCE_STRICT = 40
SCORE_OTHER = 50
SCORE_GENERATED = 10


def score_file(file_path: str, behavior_guard_mode: str) -> int:
    category = classify_file(file_path)
    if category == FileCategory.TEST:
        return SCORE_TEST
    if category in (FileCategory.DOC, FileCategory.CONFIG):
        return SCORE_DOC_OR_CONFIG
    if category == FileCategory.GENERATED:
        return SCORE_GENERATED
    if category == FileCategory.SOURCE:
        return SCORE_SOURCE_STRICT if behavior_guard_mode == "strict" else SCORE_SOURCE
    return SCORE_OTHER


def score_chunk(chunk: DiffChunk, behavior_guard_mode: str) -> int:
    """A chunk scores as its highest-scoring file."""
    return max((score_file(path, behavior_guard_mode) for path in chunk.files), default=0)


def prioritize_chunks(chunks: list[DiffChunk], behavior_guard_mode: str) -> list[DiffChunk]:
    """Order chunks by descending score, smaller diffs first on ties.

    The sort is stable, so equal score and size keep their input order.
    The input list is not modified.
    """
    return sorted(
        chunks,
        key=lambda chunk: (-score_chunk(chunk, behavior_guard_mode), len(chunk.diff)),
    )
