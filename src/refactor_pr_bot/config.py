"""Environment-driven configuration for the refactor PR bot."""

import json
import logging
import os
import re
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "minimax/minimax-m2.5"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_TEST_COMMAND = "npm test"
DEFAULT_GIT_AUTHOR_NAME = "refactor-pr-bot"
DEFAULT_GIT_AUTHOR_EMAIL = "refactor-pr-bot@users.noreply.github.com"

DEFAULT_EXCLUDE_PATTERNS = [
    r"(^|/)package-lock\.json$",
    r"(^|/)yarn\.lock$",
    r"(^|/)pnpm-lock\.yaml$",
    r"(^|/)poetry\.lock$",
    r"\.min\.(js|css)$",
    r"\.map$",
    r"(^|/)(dist|build|coverage|node_modules)/",
]

# Keys safe to print or log (no secrets)
_SAFE_CONFIG_KEYS = frozenset({
    "llm_provider", "llm_base_url", "repository", "base_branch", "event_path",
    "model_name", "max_diff_size", "max_files_per_chunk", "max_chunks_per_run",
    "timeout_ms", "max_retries", "patch_repair_attempts", "behavior_guard_mode",
    "test_command", "file_exclude_patterns", "watch_poll_interval_ms",
    "git_author_name", "git_author_email",
})


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


class BotConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    llm_provider: Literal["openrouter", "anthropic"] = "openrouter"
    llm_api_key: str
    llm_base_url: str = DEFAULT_BASE_URL
    github_token: str
    repository: str  # owner/repo
    base_branch: str = "main"
    event_path: str | None = None
    model_name: str = DEFAULT_MODEL
    max_diff_size: int = 80_000
    max_files_per_chunk: int = 1
    max_chunks_per_run: int = 20
    timeout_ms: int = 60_000
    max_retries: int = 2
    patch_repair_attempts: int = 2
    behavior_guard_mode: Literal["strict", "off"] = "strict"
    test_command: str = DEFAULT_TEST_COMMAND
    file_exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS)
    )
    watch_poll_interval_ms: int = 60_000
    git_author_name: str = DEFAULT_GIT_AUTHOR_NAME
    git_author_email: str = DEFAULT_GIT_AUTHOR_EMAIL

    @property
    def repository_owner(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def repository_name(self) -> str:
        return self.repository.split("/", 1)[1]

    @property
    def test_command_args(self) -> list[str]:
        return self.test_command.split()

    def safe_summary(self) -> dict:
        """Configuration values with secrets removed."""
        return {
            key: value
            for key, value in self.model_dump().items()
            if key in _SAFE_CONFIG_KEYS
        }


def _clean(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require(env: Mapping[str, str], name: str) -> str:
    value = _clean(env, name)
    if value is None:
        raise ConfigError(f"Missing required environment variable: {name}")
    return value


def _parse_int(env: Mapping[str, str], name: str, default: int, minimum: int = 1) -> int:
    raw = _clean(env, name)
    if raw is None:
        return default
    message = f"{name} must be {'a positive' if minimum == 1 else 'a non-negative'} integer."
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(message) from exc
    if value < minimum:
        raise ConfigError(message)
    return value


def parse_exclude_patterns(raw: str | None) -> list[str]:
    """Parse FILE_EXCLUDE_PATTERNS.

    Unset → defaults. Blank or "none" → no exclusions. A JSON array is used
    as-is; anything else is split on commas. Every pattern must compile.

    Raises:
        ConfigError: On a malformed JSON array or an invalid regex.
    """
    if raw is None:
        return list(DEFAULT_EXCLUDE_PATTERNS)
    text = raw.strip()
    if not text or text.lower() == "none":
        return []

    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"FILE_EXCLUDE_PATTERNS is not valid JSON: {exc}") from exc
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ConfigError("FILE_EXCLUDE_PATTERNS JSON must be an array of strings.")
        patterns = [item.strip() for item in parsed if item.strip()]
    else:
        patterns = [item.strip() for item in text.split(",") if item.strip()]

    for pattern in patterns:
        try:
            re.compile(pattern, re.IGNORECASE)
        except re.error as exc:
            raise ConfigError(
                f"FILE_EXCLUDE_PATTERNS contains an invalid regex {pattern!r}: {exc}"
            ) from exc
    return patterns


def load_config(env: Mapping[str, str] | None = None) -> BotConfig:
    """Build a BotConfig from environment variables.

    Raises:
        ConfigError: If a required variable is missing or a value is invalid.
    """
    env = os.environ if env is None else env

    provider = (_clean(env, "LLM_PROVIDER") or "openrouter").lower()
    if provider == "openrouter":
        api_key = _require(env, "OPENROUTER_API_KEY")
    elif provider == "anthropic":
        api_key = _require(env, "ANTHROPIC_API_KEY")
    else:
        raise ConfigError("LLM_PROVIDER must be 'openrouter' or 'anthropic'.")

    repository = _require(env, "GITHUB_REPOSITORY")
    owner, _, name = repository.partition("/")
    if not owner or not name or "/" in name:
        raise ConfigError("GITHUB_REPOSITORY must be in 'owner/repo' format.")

    guard_mode = (_clean(env, "BEHAVIOR_GUARD_MODE") or "strict").lower()
    if guard_mode not in ("strict", "off"):
        raise ConfigError("BEHAVIOR_GUARD_MODE must be 'strict' or 'off'.")

    config = BotConfig(
        llm_provider=provider,
        llm_api_key=api_key,
        llm_base_url=_clean(env, "LLM_BASE_URL") or DEFAULT_BASE_URL,
        github_token=_require(env, "GITHUB_TOKEN"),
        repository=repository,
        base_branch=_clean(env, "GITHUB_REF_NAME") or "main",
        event_path=_clean(env, "GITHUB_EVENT_PATH"),
        model_name=_clean(env, "MODEL_NAME") or DEFAULT_MODEL,
        max_diff_size=_parse_int(env, "MAX_DIFF_SIZE", 80_000),
        max_files_per_chunk=_parse_int(env, "MAX_FILES_PER_CHUNK", 1),
        max_chunks_per_run=_parse_int(env, "MAX_CHUNKS_PER_RUN", 20),
        timeout_ms=_parse_int(env, "TIMEOUT_MS", 60_000),
        max_retries=_parse_int(env, "MAX_RETRIES", 2, minimum=0),
        patch_repair_attempts=_parse_int(env, "PATCH_REPAIR_ATTEMPTS", 2, minimum=0),
        behavior_guard_mode=guard_mode,
        test_command=_clean(env, "TEST_COMMAND") or DEFAULT_TEST_COMMAND,
        file_exclude_patterns=parse_exclude_patterns(env.get("FILE_EXCLUDE_PATTERNS")),
        watch_poll_interval_ms=_parse_int(env, "WATCH_POLL_INTERVAL_MS", 60_000),
        git_author_name=_clean(env, "GIT_AUTHOR_NAME") or DEFAULT_GIT_AUTHOR_NAME,
        git_author_email=_clean(env, "GIT_AUTHOR_EMAIL") or DEFAULT_GIT_AUTHOR_EMAIL,
    )
    logger.debug("Configuration loaded: %s", config.safe_summary())
    return config
