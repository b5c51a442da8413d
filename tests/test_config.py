"""Tests for environment-driven configuration."""
import pytest

from refactor_pr_bot.config import (
    DEFAULT_EXCLUDE_PATTERNS,
    ConfigError,
    load_config,
    parse_exclude_patterns,
)

BASE_ENV = {
    "OPENROUTER_API_KEY": "sk-or",
    "GITHUB_TOKEN": "ghp-test",
    "GITHUB_REPOSITORY": "acme/widgets",
}


def env_with(**overrides) -> dict:
    """Helper to create an environment mapping on top of the required keys."""
    env = dict(BASE_ENV)
    env.update(overrides)
    return env


class TestLoadConfig:

    def test_defaults(self):
        config = load_config(BASE_ENV)

        assert config.llm_provider == "openrouter"
        assert config.llm_api_key == "sk-or"
        assert config.base_branch == "main"
        assert config.model_name == "minimax/minimax-m2.5"
        assert config.max_diff_size == 80_000
        assert config.max_files_per_chunk == 1
        assert config.max_chunks_per_run == 20
        assert config.timeout_ms == 60_000
        assert config.max_retries == 2
        assert config.patch_repair_attempts == 2
        assert config.behavior_guard_mode == "strict"
        assert config.test_command_args == ["npm", "test"]
        assert config.file_exclude_patterns == DEFAULT_EXCLUDE_PATTERNS
        assert (config.repository_owner, config.repository_name) == ("acme", "widgets")

    def test_missing_required_variable(self):
        env = env_with()
        del env["GITHUB_TOKEN"]
        with pytest.raises(ConfigError, match="Missing required environment variable: GITHUB_TOKEN"):
            load_config(env)

    def test_anthropic_provider_needs_its_key(self):
        with pytest.raises(ConfigError, match="ANTHROPIC_API_KEY"):
            load_config(env_with(LLM_PROVIDER="anthropic"))
        config = load_config(env_with(LLM_PROVIDER="Anthropic", ANTHROPIC_API_KEY="sk-ant"))
        assert config.llm_provider == "anthropic"
        assert config.llm_api_key == "sk-ant"

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="LLM_PROVIDER"):
            load_config(env_with(LLM_PROVIDER="other"))

    @pytest.mark.parametrize("repository", ["acme", "acme/", "/widgets", "a/b/c"])
    def test_repository_format(self, repository):
        with pytest.raises(ConfigError, match="owner/repo"):
            load_config(env_with(GITHUB_REPOSITORY=repository))

    @pytest.mark.parametrize(
        "name, value",
        [("MAX_DIFF_SIZE", "0"), ("MAX_CHUNKS_PER_RUN", "abc"), ("TIMEOUT_MS", "-5")],
    )
    def test_positive_integers(self, name, value):
        with pytest.raises(ConfigError, match=f"{name} must be a positive integer"):
            load_config(env_with(**{name: value}))

    def test_retry_budgets_allow_zero(self):
        config = load_config(env_with(MAX_RETRIES="0", PATCH_REPAIR_ATTEMPTS="0"))
        assert config.max_retries == 0
        assert config.patch_repair_attempts == 0
        with pytest.raises(ConfigError, match="non-negative"):
            load_config(env_with(MAX_RETRIES="-1"))

    def test_guard_mode(self):
        assert load_config(env_with(BEHAVIOR_GUARD_MODE="OFF")).behavior_guard_mode == "off"
        with pytest.raises(ConfigError, match="BEHAVIOR_GUARD_MODE"):
            load_config(env_with(BEHAVIOR_GUARD_MODE="lenient"))

    def test_blank_values_fall_back_to_defaults(self):
        config = load_config(env_with(GITHUB_REF_NAME="  ", TEST_COMMAND=""))
        assert config.base_branch == "main"
        assert config.test_command == "npm test"

    def test_safe_summary_has_no_secrets(self):
        summary = load_config(BASE_ENV).safe_summary()
        assert "llm_api_key" not in summary
        assert "github_token" not in summary
        assert summary["repository"] == "acme/widgets"


class TestParseExcludePatterns:

    def test_unset_uses_defaults(self):
        assert parse_exclude_patterns(None) == DEFAULT_EXCLUDE_PATTERNS

    @pytest.mark.parametrize("raw", ["", "   ", "none", "NONE"])
    def test_disabled(self, raw):
        assert parse_exclude_patterns(raw) == []

    def test_json_array(self):
        assert parse_exclude_patterns('["^vendor/", " \\\\.snap$ "]') == ["^vendor/", "\\.snap$"]

    def test_comma_list(self):
        assert parse_exclude_patterns("^vendor/, \\.snap$ ,") == ["^vendor/", "\\.snap$"]

    def test_invalid_regex(self):
        with pytest.raises(ConfigError, match="invalid regex"):
            parse_exclude_patterns("([unclosed")

    def test_invalid_json(self):
        with pytest.raises(ConfigError, match="not valid JSON"):
            parse_exclude_patterns("[not json")
