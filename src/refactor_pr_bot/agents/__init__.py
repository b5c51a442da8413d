"""Agents for patch generation, extraction and behavior-risk assessment."""

from refactor_pr_bot.agents.behavior_guard import assess_patch_behavior_risk
from refactor_pr_bot.agents.exceptions import (
    AgentError,
    GenerationError,
    InvalidOutputError,
    LLMAPIError,
    LLMTimeoutError,
    PatchValidationError,
)
from refactor_pr_bot.agents.llm_client import ChatClient, ChatCompletion, ChatMessage
from refactor_pr_bot.agents.patch_agent import GenerationPort, PatchAgent
from refactor_pr_bot.agents.patch_extractor import (
    NO_CHANGES_SIGNAL,
    extract_patch,
    sanitize_patch,
    validate_unified_diff,
)
from refactor_pr_bot.agents.patch_generator import PatchGenerator, classify_chunk_failure

__all__ = [
    "AgentError",
    "ChatClient",
    "ChatCompletion",
    "ChatMessage",
    "GenerationError",
    "GenerationPort",
    "InvalidOutputError",
    "LLMAPIError",
    "LLMTimeoutError",
    "NO_CHANGES_SIGNAL",
    "PatchAgent",
    "PatchGenerator",
    "PatchValidationError",
    "assess_patch_behavior_risk",
    "classify_chunk_failure",
    "extract_patch",
    "sanitize_patch",
    "validate_unified_diff",
]
