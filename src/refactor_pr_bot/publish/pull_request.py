"""GitHub pull request creation over the REST API."""

import logging

import httpx

from refactor_pr_bot.models import PullRequestInfo
from refactor_pr_bot.publish.exceptions import GitHubAPIError, PublishError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
DEFAULT_TIMEOUT_S = 30.0
MAX_ERROR_PAYLOAD = 1200


class GitHubPullRequestCreator:
    def __init__(
        self,
        token: str,
        api_url: str = GITHUB_API_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    def create(
        self, owner: str, repo: str, title: str, body: str, head: str, base: str
    ) -> PullRequestInfo:
        """Open a pull request from ``head`` into ``base``.

        Raises:
            GitHubAPIError: On a non-2xx response.
            PublishError: If GitHub cannot be reached or the response body is
                not a pull request object.
        """
        url = f"{self.api_url}/repos/{owner}/{repo}/pulls"
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": "refactor-pr-bot",
        }
        payload = {"title": title, "body": body, "head": head, "base": base}

        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                response = client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise PublishError(f"Failed to reach GitHub API: {exc}") from exc

        if response.status_code >= 300:
            raise GitHubAPIError(
                f"Failed to create PR: {response.status_code}",
                status=response.status_code,
                payload=response.text[:MAX_ERROR_PAYLOAD],
            )

        try:
            data = response.json()
            info = PullRequestInfo(url=data["html_url"], number=data["number"])
        except (ValueError, KeyError, TypeError) as exc:
            raise PublishError(f"Unexpected pull request response: {exc}") from exc

        logger.info("Opened pull request #%d: %s", info.number, info.url)
        return info
