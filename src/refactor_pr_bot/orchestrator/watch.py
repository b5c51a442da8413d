"""Polling watch mode: run the pipeline for each new commit range on the base branch."""

import json
import logging
import shutil
import signal
import tempfile
import time
from pathlib import Path
from typing import Callable, Literal

from pydantic import BaseModel, ConfigDict

from refactor_pr_bot.orchestrator.exceptions import WatchError
from refactor_pr_bot.utils.exec import CommandExecutionError, CommandRunner

logger = logging.getLogger(__name__)

PollResult = Literal["idle", "processed", "failed"]


class WatchEventContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_path: str
    base_sha: str
    head_sha: str


class PollingPushWatcher:
    """Polls ``origin/<base>`` and invokes a callback once per new commit range.

    Runs are serialized: the temporary event payload is deleted, local changes
    are discarded and the base branch restored before the next poll. A failed callback leaves the
    baseline unchanged so the same range is retried.
    """

    def __init__(
        self,
        runner: CommandRunner,
        base_branch: str,
        poll_interval_ms: int,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.runner = runner
        self.base_branch = base_branch
        self.poll_interval_ms = poll_interval_ms
        self._sleep = sleep
        self._stopped = False
        self.baseline_head_sha: str | None = None

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        logger.info("Stop signal received, ending watch loop")

    def initialize(self) -> None:
        self._sync_base_branch(fetch=True)
        self.baseline_head_sha = self._read_remote_head_sha()
        logger.info(
            "Watch baseline initialized: branch=%s interval_ms=%d head=%s",
            self.base_branch,
            self.poll_interval_ms,
            self.baseline_head_sha,
        )

    def poll_once(self, on_push_event: Callable[[WatchEventContext], object]) -> PollResult:
        """Check for a new head and process the range once.

        Raises:
            WatchError: If no baseline could be established.
            CommandExecutionError: If fetching or reading the remote head fails.
        """
        if not self.baseline_head_sha:
            self.initialize()
        previous_head_sha = self.baseline_head_sha
        if not previous_head_sha:
            raise WatchError("Watch baseline could not be initialized")

        self._fetch_base_branch()
        next_head_sha = self._read_remote_head_sha()
        if next_head_sha == previous_head_sha:
            return "idle"

        base_sha = self._resolve_base_sha(previous_head_sha, next_head_sha)
        event_path = self._write_event_payload(base_sha, next_head_sha)
        logger.info("Detected new commit range on %s: %s..%s", self.base_branch, base_sha, next_head_sha)

        try:
            self._sync_base_branch(fetch=False)
            on_push_event(
                WatchEventContext(
                    event_path=str(event_path), base_sha=base_sha, head_sha=next_head_sha
                )
            )
            self.baseline_head_sha = next_head_sha
            return "processed"
        except Exception as exc:
            logger.warning(
                "Watch iteration failed for %s..%s; range will be retried: %s",
                base_sha,
                next_head_sha,
                exc,
            )
            return "failed"
        finally:
            shutil.rmtree(event_path.parent, ignore_errors=True)
            self._safe_return_to_base_branch()

    def watch(self, on_push_event: Callable[[WatchEventContext], object]) -> None:
        """Sleep/poll until stopped by SIGINT, SIGTERM or ``stop()``."""
        self.initialize()

        def _handle_signal(signum, frame) -> None:
            self.stop()

        previous_handlers = {
            signal.SIGINT: signal.signal(signal.SIGINT, _handle_signal),
            signal.SIGTERM: signal.signal(signal.SIGTERM, _handle_signal),
        }
        try:
            while not self._stopped:
                self._sleep(self.poll_interval_ms / 1000)
                if self._stopped:
                    break
                try:
                    self.poll_once(on_push_event)
                except (CommandExecutionError, WatchError) as exc:
                    if self._stopped:
                        break
                    logger.warning("Watch polling loop error: %s", exc)
        finally:
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)

    def _resolve_base_sha(self, previous_head_sha: str, next_head_sha: str) -> str:
        """Previous head if it is an ancestor, else merge-base, else parent of head."""
        if self._is_ancestor(previous_head_sha, next_head_sha):
            return previous_head_sha

        try:
            merge_base = self.runner.run("git", ["merge-base", previous_head_sha, next_head_sha])
            if merge_base.strip():
                return merge_base.strip()
        except CommandExecutionError as exc:
            logger.debug("merge-base failed, falling back to head parent: %s", exc)

        try:
            return self.runner.run("git", ["rev-parse", f"{next_head_sha}~1"])
        except CommandExecutionError as exc:
            logger.debug("Head parent lookup failed, using previous head: %s", exc)
            return previous_head_sha

    def _is_ancestor(self, ancestor_sha: str, descendant_sha: str) -> bool:
        try:
            self.runner.run("git", ["merge-base", "--is-ancestor", ancestor_sha, descendant_sha])
            return True
        except CommandExecutionError as exc:
            if exc.exit_code == 1:
                return False
            raise

    def _fetch_base_branch(self) -> None:
        self.runner.run("git", ["fetch", "origin", self.base_branch])

    def _read_remote_head_sha(self) -> str:
        return self.runner.run("git", ["rev-parse", f"origin/{self.base_branch}"])

    def _sync_base_branch(self, fetch: bool) -> None:
        self.runner.run("git", ["checkout", self.base_branch])
        if fetch:
            self._fetch_base_branch()
        self.runner.run("git", ["merge", "--ff-only", f"origin/{self.base_branch}"])

    def _safe_return_to_base_branch(self) -> None:
        """Discard whatever the run staged or wrote, then return to the base branch."""
        try:
            self.runner.run("git", ["reset", "--hard", "HEAD"])
            self._sync_base_branch(fetch=False)
        except CommandExecutionError as exc:
            logger.warning("Failed to restore base branch after watch iteration: %s", exc)

    def _write_event_payload(self, base_sha: str, head_sha: str) -> Path:
        temp_dir = Path(tempfile.mkdtemp(prefix="refactor-pr-bot-watch-"))
        event_path = temp_dir / "event.json"
        event_path.write_text(
            json.dumps({
                "before": base_sha,
                "after": head_sha,
                "ref": f"refs/heads/{self.base_branch}",
            }),
            encoding="utf-8",
        )
        return event_path
