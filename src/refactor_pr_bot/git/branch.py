"""Branch, commit and push operations for publishing a refactor."""

import logging

from refactor_pr_bot.utils.exec import CommandRunner

logger = logging.getLogger(__name__)


class GitBranchManager:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def configure_identity(self, name: str, email: str) -> None:
        self.runner.run("git", ["config", "user.name", name])
        self.runner.run("git", ["config", "user.email", email])

    def create_branch(self, branch_name: str) -> None:
        logger.info("Creating branch %s", branch_name)
        self.runner.run("git", ["checkout", "-B", branch_name])

    def commit_all(self, message: str) -> None:
        self.runner.run("git", ["add", "-A"])
        self.runner.run("git", ["commit", "-m", message])

    def push_branch(self, branch_name: str) -> None:
        logger.info("Pushing branch %s to origin", branch_name)
        self.runner.run("git", ["push", "--set-upstream", "origin", branch_name])
