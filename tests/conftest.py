import shutil
import subprocess
from pathlib import Path

import pytest

from refactor_pr_bot.config import BotConfig


class FakeRunner:
    """Scripted stand-in for CommandRunner.

    ``responses`` maps ``(command, *args)`` tuples to stdout strings or to
    exceptions to raise. Unscripted commands return "" unless ``fallback``
    is given.
    """

    def __init__(self, responses=None, fallback=None):
        self.responses = dict(responses or {})
        self.fallback = fallback
        self.calls: list[tuple[str, ...]] = []
        self.timeouts: list[float | None] = []

    def run(self, command, args, timeout=None, input_text=None):
        key = (command, *args)
        self.calls.append(key)
        self.timeouts.append(timeout)
        if key in self.responses:
            value = self.responses[key]
            if isinstance(value, BaseException):
                raise value
            return value
        if self.fallback is not None:
            return self.fallback(command, list(args))
        return ""

    def called(self, *key) -> bool:
        return tuple(key) in self.calls


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def make_config():
    """Factory fixture: BotConfig with test credentials plus overrides."""

    def _make(**overrides) -> BotConfig:
        values = {
            "llm_api_key": "sk-test",
            "github_token": "ghp-test",
            "repository": "acme/widgets",
        }
        values.update(overrides)
        return BotConfig(**values)

    return _make


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Temporary git repository with one committed file, src/app.ts."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    def git(*args: str) -> None:
        subprocess.run(["git", *args], cwd=tmp_path, check=True, capture_output=True)

    git("init", "-q")
    git("config", "user.email", "tests@example.com")
    git("config", "user.name", "tests")
    git("config", "commit.gpgsign", "false")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.ts").write_text(
        "export function add(a, b) {\n  return a + b;\n}\n", encoding="utf-8"
    )
    git("add", "-A")
    git("commit", "-q", "-m", "initial")
    return tmp_path
