"""CLI entry point for the refactor PR bot."""
import argparse
from dotenv import load_dotenv
import json
import logging
import sys
import time
import traceback

from refactor_pr_bot.agents.exceptions import AgentError
from refactor_pr_bot.config import BotConfig, ConfigError, load_config
from refactor_pr_bot.models import (
    CreatedOutcome,
    RunOutcome,
    SkippedOutcome,
    SkipReason,
    UsageStats,
)
from refactor_pr_bot.orchestrator.exceptions import OrchestratorError
from refactor_pr_bot.orchestrator.pr_body import format_usd

load_dotenv()

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 1
EXIT_AGENT_ERROR = 2
EXIT_ORCHESTRATOR_ERROR = 3
EXIT_UNEXPECTED = 5
EXIT_KEYBOARD_INTERRUPT = 130

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    parser = argparse.ArgumentParser(
        prog="refactor-pr-bot",
        description="Open behavior-preserving refactor pull requests for new commits",
    )
    parser.add_argument(
        "command",
        choices=("run", "watch"),
        help="run: process one push event; watch: poll the base branch for new commits",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--dry-run", action="store_true", help="Print config and exit without running"
    )
    parser.add_argument(
        "--output-json", action="store_true", help="Output run summaries as JSON"
    )
    return parser


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def create_pipeline(config: BotConfig):
    """Wire the pipeline collaborators from configuration.

    Imports are deferred so --help and --dry-run do not construct SDK clients.

    Returns:
        Tuple of (RefactorPipeline, ChatClient, CommandRunner).
    """
    from refactor_pr_bot.agents.llm_client import ChatClient
    from refactor_pr_bot.agents.patch_agent import PatchAgent
    from refactor_pr_bot.agents.patch_generator import PatchGenerator
    from refactor_pr_bot.git.apply import GitApplyEngine
    from refactor_pr_bot.git.branch import GitBranchManager
    from refactor_pr_bot.git.diff_extractor import GitDiffExtractor
    from refactor_pr_bot.git.repo_scanner import GitRepositoryScanner
    from refactor_pr_bot.orchestrator.graph import RefactorPipeline
    from refactor_pr_bot.publish.pull_request import GitHubPullRequestCreator
    from refactor_pr_bot.utils.exec import CommandRunner

    runner = CommandRunner()
    client = ChatClient(
        provider=config.llm_provider,
        api_key=config.llm_api_key,
        base_url=config.llm_base_url,
        timeout_ms=config.timeout_ms,
        retries=config.max_retries,
    )
    pipeline = RefactorPipeline(
        config=config,
        runner=runner,
        extractor=GitDiffExtractor(
            runner,
            max_diff_size=config.max_diff_size,
            max_files_per_chunk=config.max_files_per_chunk,
            exclude_patterns=config.file_exclude_patterns,
        ),
        generator=PatchGenerator(PatchAgent(client, config.model_name)),
        apply_engine=GitApplyEngine(runner),
        branch_manager=GitBranchManager(runner),
        scanner=GitRepositoryScanner(runner),
        pr_creator=GitHubPullRequestCreator(config.github_token),
        usage_source=client,
    )
    return pipeline, client, runner


def describe_outcome(outcome: RunOutcome | None) -> str:
    if outcome is None:
        return "failed (exception)"
    if isinstance(outcome, CreatedOutcome):
        return f"created ({len(outcome.files)} files)"
    if outcome.reason == SkipReason.MODEL_FAILURE and outcome.model_failure is not None:
        return f"skipped ({outcome.reason.value}:{outcome.model_failure.subtype.value})"
    return f"skipped ({outcome.reason.value})"


def describe_value(
    outcome: RunOutcome | None, error: str | None = None
) -> str:
    """One-line statement of what the run achieved or avoided."""
    if outcome is None:
        suffix = f" ({error})" if error else ""
        return (
            "Run failed before completion; partial token/cost metrics were still "
            f"captured{suffix}."
        )
    if isinstance(outcome, CreatedOutcome):
        return "Automated safe cleanup completed and a PR was opened."

    if outcome.reason == SkipReason.NO_DIFF:
        return "No new commit diff detected, so no API cost beyond setup."
    if outcome.reason == SkipReason.NO_PATCH:
        return "No safe/meaningful refactor found; unnecessary PR noise was avoided."
    if outcome.reason == SkipReason.TEST_FAILURE:
        return "Patch failed tests, so behavior-risk changes were blocked."
    if outcome.reason == SkipReason.PATCH_APPLY_FAILURE:
        return "Unappliable patch was blocked before any branch/PR mutation."
    if outcome.reason == SkipReason.MODEL_FAILURE and outcome.model_failure is not None:
        detail = outcome.model_failure
        return (
            f"{detail.failed_chunks}/{detail.total_chunks} chunks failed at model stage "
            f"({detail.subtype.value}); repository integrity was protected by skipping "
            "PR creation."
        )
    return "Run completed."


def format_summary_json(
    mode: str,
    config: BotConfig,
    outcome: RunOutcome | None,
    usage: UsageStats,
    duration_s: float,
    error: str | None = None,
    commit_range: tuple[str, str] | None = None,
) -> str:
    """Serialize a run summary to a JSON string."""
    payload = {
        "mode": mode,
        "repository": config.repository,
        "base_branch": config.base_branch,
        "duration_s": round(duration_s, 1),
        "outcome": outcome.model_dump(mode="json") if outcome is not None else None,
        "error": error,
        "range": (
            {"base": commit_range[0], "head": commit_range[1]} if commit_range else None
        ),
        "usage": {**usage.model_dump(), "average_latency_ms": usage.average_latency_ms},
        "value": describe_value(outcome, error),
    }
    return json.dumps(payload, indent=2, default=str)


def print_summary_human(
    mode: str,
    config: BotConfig,
    outcome: RunOutcome | None,
    usage: UsageStats,
    duration_s: float,
    error: str | None = None,
    commit_range: tuple[str, str] | None = None,
) -> None:
    """Print a run summary in human-readable format."""
    print(f"\n{'='*60}")
    print("Refactor PR Bot Run Summary")
    print(f"{'='*60}")
    print(f"mode: {mode}")
    print(f"repository: {config.repository}")
    print(f"base_branch: {config.base_branch}")
    print(f"duration: {duration_s:.1f}s")
    print(f"outcome: {describe_outcome(outcome)}")

    if commit_range:
        print(f"range: {commit_range[0]} -> {commit_range[1]}")
    if error:
        print(f"error: {error}")

    if isinstance(outcome, SkippedOutcome) and outcome.model_failure is not None:
        detail = outcome.model_failure
        print(f"model_failure_subtype: {detail.subtype.value}")
        print(f"failed_chunks: {detail.failed_chunks}/{detail.total_chunks}")

    if isinstance(outcome, CreatedOutcome):
        print(f"pr_url: {outcome.pull_request_url}")
        print(f"branch: {outcome.branch_name}")
        print(f"change_summary: {outcome.change_summary}")
        print(f"files: {', '.join(outcome.files)}")

    print("\nLLM usage:")
    print(f"  http_requests: {usage.http_requests}")
    print(f"  retries: {usage.retry_count}")
    print(f"  successful_responses: {usage.successful_responses}")
    print(f"  prompt_tokens: {usage.prompt_tokens}")
    print(f"  completion_tokens: {usage.completion_tokens}")
    print(f"  total_tokens: {usage.total_tokens}")
    print(f"  total_cost_usd: {format_usd(usage.total_cost_usd)}")
    print(f"  avg_latency_ms: {usage.average_latency_ms}")
    print(f"  max_latency_ms: {usage.max_latency_ms}")

    print("\nValue:")
    print(f"  - {describe_value(outcome, error)}")
    print(f"\n{'='*60}")


def print_config_human(config: dict) -> None:
    """Print configuration in human-readable format.

    Expects the output of ``BotConfig.safe_summary()`` so no secrets are shown.
    """
    print("\nConfiguration:")
    print(f"{'='*40}")
    for key, value in config.items():
        print(f"  {key}: {value}")
    print(f"{'='*40}")


def execute_run(
    mode: str,
    pipeline,
    client,
    config: BotConfig,
    output_json: bool,
    event_path: str | None = None,
    commit_range: tuple[str, str] | None = None,
) -> RunOutcome:
    """Run the pipeline once and always print a summary, even when it raises."""
    started = time.monotonic()
    outcome = None
    error = None
    try:
        outcome = pipeline.run(event_path)
        logger.info("Pipeline finished: %s", describe_outcome(outcome))
        return outcome
    except Exception as exc:
        error = str(exc)
        logger.error("Pipeline failed with unhandled error: %s", error)
        raise
    finally:
        if commit_range is None and pipeline.last_state is not None:
            resolved = pipeline.last_state.get("commit_range")
            if resolved is not None:
                commit_range = (resolved.base_sha, resolved.head_sha)
        summary_args = (
            mode,
            config,
            outcome,
            client.usage_stats,
            time.monotonic() - started,
            error,
            commit_range,
        )
        if output_json:
            print(format_summary_json(*summary_args))
        else:
            print_summary_human(*summary_args)


def run_watch(pipeline, client, runner, config: BotConfig, output_json: bool) -> None:
    """Poll the base branch and run the pipeline for each new commit range."""
    from refactor_pr_bot.orchestrator.watch import PollingPushWatcher

    watcher = PollingPushWatcher(
        runner,
        base_branch=config.base_branch,
        poll_interval_ms=config.watch_poll_interval_ms,
    )

    def on_push_event(ctx) -> None:
        execute_run(
            "watch",
            pipeline,
            client,
            config,
            output_json,
            event_path=ctx.event_path,
            commit_range=(ctx.base_sha, ctx.head_sha),
        )

    logger.info("Starting watch mode on %s", config.base_branch)
    watcher.watch(on_push_event)


def _handle_error(label: str, exc: BaseException, verbose: bool, exit_code: int) -> int:
    """Print error message to stderr and return the exit code."""
    print(f"{label}: {exc}", file=sys.stderr)
    if verbose:
        traceback.print_exc(file=sys.stderr)
    return exit_code


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code integer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = load_config()
    except ConfigError as exc:
        return _handle_error("Configuration error", exc, args.verbose, EXIT_INVALID_INPUT)

    if args.dry_run:
        summary = {"command": args.command, **config.safe_summary()}
        if args.output_json:
            print(json.dumps(summary, indent=2))
        else:
            print_config_human(summary)
        return EXIT_SUCCESS

    try:
        pipeline, client, runner = create_pipeline(config)
        if args.command == "run":
            execute_run("run", pipeline, client, config, args.output_json)
        else:
            run_watch(pipeline, client, runner, config, args.output_json)
        return EXIT_SUCCESS

    except AgentError as exc:
        return _handle_error("Agent error", exc, args.verbose, EXIT_AGENT_ERROR)

    except OrchestratorError as exc:
        return _handle_error("Orchestrator error", exc, args.verbose, EXIT_ORCHESTRATOR_ERROR)

    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_KEYBOARD_INTERRUPT

    except Exception as exc:
        return _handle_error("Unexpected error", exc, args.verbose, EXIT_UNEXPECTED)


def entry() -> None:
    sys.exit(main())
