"""Patch agent: prompts a chat model for behavior-preserving diffs."""

from typing import Protocol, runtime_checkable

from refactor_pr_bot.agents.exceptions import InvalidOutputError
from refactor_pr_bot.agents.llm_client import ChatClient, ChatMessage
from refactor_pr_bot.agents.patch_extractor import NO_CHANGES_SIGNAL, extract_patch
from refactor_pr_bot.models import DiffChunk, GenerationResult

GENERATION_TEMPERATURE = 0.1
MAX_SNAPSHOT_CHARS = 40_000
MAX_APPLY_ERROR_CHARS = 4_000

SYSTEM_PROMPT = "\n".join([
    "You are a senior staff engineer.",
    "Refactor and optimize the provided diff.",
    "",
    "Rules:",
    "- no behavior change",
    "- improve clarity",
    "- reduce duplication",
    "- improve performance if obvious",
    "- keep public APIs",
    "- NEVER modify database schema",
    "- only edit the files listed as changed; never create or delete files",
    f"- return ONLY unified diff or {NO_CHANGES_SIGNAL}",
])


@runtime_checkable
class GenerationPort(Protocol):
    """Contract between the pipeline and a patch generator.

    Implementations raise typed errors from ``refactor_pr_bot.agents.exceptions``
    and never classify failures themselves.
    """

    def generate(
        self, repository: str, base_ref: str, head_ref: str, chunk: DiffChunk
    ) -> GenerationResult:
        """Propose a patch for one chunk."""

    def repair(
        self,
        repository: str,
        base_ref: str,
        head_ref: str,
        chunk: DiffChunk,
        failed_patch: str,
        apply_error: str,
    ) -> GenerationResult:
        """Propose a corrected patch after a rejected attempt."""


def _format_snapshots(chunk: DiffChunk) -> str:
    sections: list[str] = []
    for path in chunk.files:
        content = chunk.snapshots.get(path, "")
        if len(content) > MAX_SNAPSHOT_CHARS:
            content = f"{content[:MAX_SNAPSHOT_CHARS]}\n... (truncated)"
        sections.append(f"--- BEGIN {path} ---\n{content}\n--- END {path} ---")
    return "\n\n".join(sections)


def build_user_prompt(repository: str, base_ref: str, head_ref: str, chunk: DiffChunk) -> str:
    changed_files = "\n".join(chunk.files) if chunk.files else "(none)"
    return "\n".join([
        f"Repository: {repository}",
        f"Base: {base_ref}",
        f"Head: {head_ref}",
        "",
        "Changed files:",
        changed_files,
        "",
        "Unified diff:",
        chunk.diff,
        "",
        "Current file contents at head (patch must apply to these):",
        _format_snapshots(chunk),
        "",
        f"If no meaningful refactor exists, output exactly: {NO_CHANGES_SIGNAL}",
    ])


def build_repair_prompt(
    repository: str,
    base_ref: str,
    head_ref: str,
    chunk: DiffChunk,
    failed_patch: str,
    apply_error: str,
) -> str:
    error_text = apply_error[:MAX_APPLY_ERROR_CHARS]
    return "\n".join([
        build_user_prompt(repository, base_ref, head_ref, chunk),
        "",
        "Your previous patch was rejected:",
        error_text,
        "",
        "Previous patch:",
        failed_patch,
        "",
        "Return a corrected unified diff that applies cleanly to the file contents above "
        "and touches only the changed files, or "
        f"{NO_CHANGES_SIGNAL} if the refactor should be abandoned.",
    ])


class PatchAgent:
    """GenerationPort implementation backed by a ChatClient."""

    def __init__(self, client: ChatClient, model: str) -> None:
        self.client = client
        self.model = model

    def generate(
        self, repository: str, base_ref: str, head_ref: str, chunk: DiffChunk
    ) -> GenerationResult:
        prompt = build_user_prompt(repository, base_ref, head_ref, chunk)
        return self._complete(prompt)

    def repair(
        self,
        repository: str,
        base_ref: str,
        head_ref: str,
        chunk: DiffChunk,
        failed_patch: str,
        apply_error: str,
    ) -> GenerationResult:
        prompt = build_repair_prompt(
            repository, base_ref, head_ref, chunk, failed_patch, apply_error
        )
        return self._complete(prompt)

    def _complete(self, prompt: str) -> GenerationResult:
        completion = self.client.create_chat_completion(
            model=self.model,
            temperature=GENERATION_TEMPERATURE,
            messages=[
                ChatMessage(role="system", content=SYSTEM_PROMPT),
                ChatMessage(role="user", content=prompt),
            ],
        )
        if not completion.content:
            raise InvalidOutputError("Model response did not include content")
        return extract_patch(completion.content)
