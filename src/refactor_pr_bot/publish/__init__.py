"""Publication of refactor branches as pull requests."""

from refactor_pr_bot.publish.exceptions import GitHubAPIError, PublishError
from refactor_pr_bot.publish.pull_request import GitHubPullRequestCreator

__all__ = ["GitHubAPIError", "GitHubPullRequestCreator", "PublishError"]
