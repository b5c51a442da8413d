"""Lightweight summary of the tracked files in a repository."""

from refactor_pr_bot.models import RepositorySummary
from refactor_pr_bot.utils.exec import CommandRunner


class GitRepositoryScanner:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def scan_summary(self) -> RepositorySummary:
        """Count tracked files and list the top-level directories holding them."""
        output = self.runner.run("git", ["ls-files"])
        files = [line for line in output.split("\n") if line.strip()]
        directories = sorted({path.split("/", 1)[0] for path in files if "/" in path})
        return RepositorySummary(
            tracked_file_count=len(files),
            top_level_directories=directories,
        )
