"""Per-chunk generation loop with failure classification."""

import json
import logging
import re

from refactor_pr_bot.agents.exceptions import InvalidOutputError, LLMAPIError, LLMTimeoutError
from refactor_pr_bot.agents.patch_agent import GenerationPort
from refactor_pr_bot.models import (
    DiffChunk,
    FailureKind,
    GenerationBatch,
    NoChanges,
    PatchCandidate,
)

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE_RE = re.compile(r"timed?\s*out|timeout|aborted", re.IGNORECASE)


def classify_chunk_failure(error: BaseException) -> FailureKind:
    """Map a generation error to its failure kind.

    Order: invalid output, timeout, API error, then a message sniff for
    timeouts raised by lower layers, else unknown.
    """
    if isinstance(error, InvalidOutputError):
        return FailureKind.INVALID_OUTPUT
    if isinstance(error, (LLMTimeoutError, TimeoutError)):
        return FailureKind.TIMEOUT
    if isinstance(error, (LLMAPIError, json.JSONDecodeError)):
        return FailureKind.API_ERROR
    if TIMEOUT_MESSAGE_RE.search(str(error)):
        return FailureKind.TIMEOUT
    return FailureKind.UNKNOWN


class PatchGenerator:
    """Requests a patch for each chunk in order without aborting on failures."""

    def __init__(self, port: GenerationPort) -> None:
        self.port = port

    def generate(
        self, repository: str, base_ref: str, head_ref: str, chunks: list[DiffChunk]
    ) -> GenerationBatch:
        batch = GenerationBatch()
        total = len(chunks)

        for index, chunk in enumerate(chunks, start=1):
            logger.info(
                "Requesting patch for chunk %d/%d (%d files, %d chars)",
                index,
                total,
                len(chunk.files),
                len(chunk.diff),
            )
            try:
                result = self.port.generate(repository, base_ref, head_ref, chunk)
            except Exception as exc:
                kind = classify_chunk_failure(exc)
                batch.failure_breakdown.record(kind)
                batch.failed_chunks += 1
                logger.warning(
                    "Chunk %d/%d generation failed (%s); skipping chunk: %s",
                    index,
                    total,
                    kind.value,
                    exc,
                )
                continue

            if isinstance(result, NoChanges):
                logger.info("Chunk %d/%d needs no changes", index, total)
                batch.no_change_chunks += 1
                continue

            logger.info("Chunk %d/%d returned a %d-char patch", index, total, len(result.patch))
            batch.candidates.append(PatchCandidate(chunk=chunk, patch=result.patch))

        return batch

    def repair(
        self,
        repository: str,
        base_ref: str,
        head_ref: str,
        chunk: DiffChunk,
        failed_patch: str,
        apply_error: str,
    ) -> str | None:
        """Ask for a corrected patch. Returns None when the model gives up.

        Errors from the port propagate to the caller.
        """
        logger.warning("Attempting patch repair for %d file(s)", len(chunk.files))
        result = self.port.repair(
            repository, base_ref, head_ref, chunk, failed_patch, apply_error
        )
        if isinstance(result, NoChanges):
            return None
        return result.patch
