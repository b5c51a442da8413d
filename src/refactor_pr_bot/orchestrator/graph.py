"""LangGraph run pipeline for one refactor PR run.

Wires diff extraction, chunk prioritization, patch generation, the apply/repair
machine, test verification and publication into a StateGraph. Every node that
reaches a terminal result writes ``outcome``; routers end the graph as soon as
it is set.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from langgraph.graph import END, START, StateGraph

from refactor_pr_bot.agents.llm_client import ChatClient
from refactor_pr_bot.agents.patch_generator import PatchGenerator
from refactor_pr_bot.config import BotConfig
from refactor_pr_bot.git.apply import GitApplyEngine
from refactor_pr_bot.git.branch import GitBranchManager
from refactor_pr_bot.git.diff_extractor import GitDiffExtractor
from refactor_pr_bot.git.exceptions import GitError
from refactor_pr_bot.git.repo_scanner import GitRepositoryScanner
from refactor_pr_bot.models import (
    CandidateStatus,
    CreatedOutcome,
    ModelFailureDetail,
    RunOutcome,
    SkippedOutcome,
    SkipReason,
)
from refactor_pr_bot.orchestrator.apply_graph import build_apply_graph, run_candidate
from refactor_pr_bot.orchestrator.exceptions import GraphBuildError, PipelineRunError
from refactor_pr_bot.orchestrator.pr_body import COMMIT_MESSAGE, PR_TITLE, build_pr_body
from refactor_pr_bot.orchestrator.prioritizer import prioritize_chunks
from refactor_pr_bot.orchestrator.recovery import derive_model_failure_subtype
from refactor_pr_bot.orchestrator.state import RunState, make_initial_state
from refactor_pr_bot.publish.exceptions import PublishError
from refactor_pr_bot.publish.pull_request import GitHubPullRequestCreator
from refactor_pr_bot.utils.exec import CommandExecutionError, CommandRunner

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "refactor/bot-"
# Fixed nodes plus one candidate_node visit per candidate
BASE_RECURSION_LIMIT = 25


def branch_name_for(now: datetime) -> str:
    """``refactor/bot-YYYYMMDDHHMMSS`` in UTC."""
    return f"{BRANCH_PREFIX}{now.astimezone(timezone.utc).strftime('%Y%m%d%H%M%S')}"


def _skip(reason: SkipReason) -> dict:
    return {"outcome": SkippedOutcome(reason=reason)}


def make_extract_node(
    config: BotConfig,
    extractor: GitDiffExtractor,
    scanner: GitRepositoryScanner,
) -> Callable[[RunState], dict]:
    """Factory: returns a node closure that resolves the range and chunks the diff.

    Ends the run with ``no_diff`` when nothing is left to analyze.
    """

    def extract_node(state: RunState) -> dict:
        commit_range = extractor.resolve_range(state["event_path"] or config.event_path)
        logger.info("Analyzing range %s..%s", commit_range.base_sha, commit_range.head_sha)
        diff_context = extractor.extract(commit_range.base_sha, commit_range.head_sha)
        if diff_context is None:
            logger.info("Skipping run because no diff was detected")
            return {"commit_range": commit_range, **_skip(SkipReason.NO_DIFF)}

        if diff_context.excluded_files:
            logger.info(
                "Excluded %d file(s) from analysis: %s",
                len(diff_context.excluded_files),
                ", ".join(diff_context.excluded_files),
            )

        summary = scanner.scan_summary()
        logger.debug(
            "Repository scanned: %d tracked files, top-level dirs %s",
            summary.tracked_file_count,
            summary.top_level_directories,
        )
        return {"commit_range": commit_range, "diff_context": diff_context}

    return extract_node


def make_prioritize_node(config: BotConfig) -> Callable[[RunState], dict]:
    """Factory: returns a node closure that orders chunks and caps them per run."""

    def prioritize_node(state: RunState) -> dict:
        chunks = state["diff_context"].chunks
        selected = prioritize_chunks(chunks, config.behavior_guard_mode)[
            : config.max_chunks_per_run
        ]
        if len(selected) < len(chunks):
            logger.info(
                "Capping chunks at %d of %d (MAX_CHUNKS_PER_RUN=%d)",
                len(selected),
                len(chunks),
                config.max_chunks_per_run,
            )
        return {"selected_chunks": selected}

    return prioritize_node


def make_generate_node(
    config: BotConfig, generator: PatchGenerator
) -> Callable[[RunState], dict]:
    """Factory: returns a node closure that requests a patch for each selected chunk.

    Ends the run with ``model_failure`` when no patch survived chunk failures,
    or ``no_patch`` when the model declined every chunk.
    """

    def generate_node(state: RunState) -> dict:
        diff_context = state["diff_context"]
        selected = state["selected_chunks"]
        batch = generator.generate(
            config.repository, diff_context.base_sha, diff_context.head_sha, selected
        )
        stats = state["stats"].model_copy(
            update={
                "generated_patch_count": len(batch.candidates),
                "failed_chunks": batch.failed_chunks,
                "skipped_chunks": batch.no_change_chunks,
            }
        )
        update: dict = {"batch": batch, "stats": stats}

        if batch.failed_chunks > 0:
            logger.warning(
                "%d of %d chunk(s) failed and were skipped: %s",
                batch.failed_chunks,
                len(selected),
                batch.failure_breakdown.model_dump(),
            )

        if batch.failed_chunks > 0 and not batch.candidates:
            subtype = derive_model_failure_subtype(batch.failure_breakdown)
            logger.warning(
                "No usable patches and model failures occurred (%s); skipping PR creation",
                subtype.value,
            )
            update["outcome"] = SkippedOutcome(
                reason=SkipReason.MODEL_FAILURE,
                model_failure=ModelFailureDetail(
                    subtype=subtype,
                    failed_chunks=batch.failed_chunks,
                    total_chunks=len(selected),
                ),
            )
        elif not batch.candidates:
            logger.info("Model reported no changes for any chunk")
            update.update(_skip(SkipReason.NO_PATCH))
        return update

    return generate_node


def make_candidate_node(config: BotConfig, apply_graph) -> Callable[[RunState], dict]:
    """Factory: returns a node closure that drives the next candidate through apply/repair.

    A hard apply failure records ``hard_failure``, which stops the candidate loop.
    """

    def candidate_node(state: RunState) -> dict:
        index = state["candidate_index"]
        candidate = state["batch"].candidates[index]
        diff_context = state["diff_context"]

        outcome = run_candidate(
            apply_graph,
            candidate,
            repository=config.repository,
            base_ref=diff_context.base_sha,
            head_ref=diff_context.head_sha,
            max_repair_attempts=config.patch_repair_attempts,
            guard_mode=config.behavior_guard_mode,
        )
        stats = state["stats"].model_copy()
        stats.record_candidate(outcome)

        update: dict = {
            "candidate_index": index + 1,
            "candidate_outcomes": [outcome],
            "stats": stats,
        }
        if outcome.status == CandidateStatus.SKIPPED:
            logger.info("Skipping candidate %d: %s", index + 1, outcome.error)
        elif outcome.status == CandidateStatus.FAILED:
            logger.warning("Patch application failed for candidate %d: %s", index + 1, outcome.error)
            update["hard_failure"] = outcome.error or "Patch apply failed"
            update["errors"] = [f"candidate_node: {outcome.error}"]
        return update

    return candidate_node


def next_candidate_or_done(state: RunState) -> str:
    if state["hard_failure"] is not None:
        return "done"
    if state["candidate_index"] < len(state["batch"].candidates):
        return "continue"
    return "done"


def settle_candidates_node(state: RunState) -> dict:
    """End the run when the candidate loop produced nothing publishable."""
    if state["hard_failure"] is not None:
        logger.warning("Patch application failed, skipping PR creation")
        return _skip(SkipReason.PATCH_APPLY_FAILURE)
    if not any(o.status == CandidateStatus.APPLIED for o in state["candidate_outcomes"]):
        logger.info("No patches were applied after guard and repair attempts")
        return _skip(SkipReason.NO_PATCH)
    return {"hard_failure": None}


def make_verify_node(
    config: BotConfig, runner: CommandRunner, apply_engine: GitApplyEngine
) -> Callable[[RunState], dict]:
    """Factory: returns a node closure that checks staged changes and runs the tests."""

    def verify_node(state: RunState) -> dict:
        staged_files = apply_engine.list_staged_files()
        if not staged_files:
            logger.info("No staged changes after applying patches")
            return _skip(SkipReason.NO_PATCH)

        command = config.test_command_args
        if not command:
            logger.warning("TEST_COMMAND resolved to an empty command")
            return _skip(SkipReason.TEST_FAILURE)

        try:
            runner.run(command[0], command[1:], timeout=config.timeout_ms / 1000)
        except CommandExecutionError as exc:
            logger.warning("Tests failed after applying patches, skipping PR creation: %s", exc)
            return {**_skip(SkipReason.TEST_FAILURE), "errors": [f"verify_node: {exc}"]}
        return {"staged_files": staged_files}

    return verify_node


def make_publish_node(
    config: BotConfig,
    apply_engine: GitApplyEngine,
    branch_manager: GitBranchManager,
    pr_creator: GitHubPullRequestCreator,
    usage_source: ChatClient | None,
    clock: Callable[[], datetime],
) -> Callable[[RunState], dict]:
    """Factory: returns a node closure that commits, pushes and opens the pull request."""

    def publish_node(state: RunState) -> dict:
        diff_context = state["diff_context"]
        files = state["staged_files"]

        change_summary = state["change_summary"]
        try:
            change_summary = apply_engine.staged_shortstat() or change_summary
        except CommandExecutionError as exc:
            logger.warning("Failed to compute staged change summary: %s", exc)

        file_stats = []
        try:
            file_stats = apply_engine.staged_numstat()
        except CommandExecutionError as exc:
            logger.warning("Failed to compute staged per-file stats: %s", exc)

        branch_name = branch_name_for(clock())
        branch_manager.configure_identity(config.git_author_name, config.git_author_email)
        branch_manager.create_branch(branch_name)
        branch_manager.commit_all(COMMIT_MESSAGE)
        branch_manager.push_branch(branch_name)

        body = build_pr_body(
            files=files,
            file_stats=file_stats,
            change_summary=change_summary,
            test_command=config.test_command,
            base_sha=diff_context.base_sha,
            head_sha=diff_context.head_sha,
            total_chunks=len(diff_context.chunks),
            analyzed_chunks=len(state["selected_chunks"]),
            stats=state["stats"],
            usage=usage_source.usage_stats if usage_source is not None else None,
        )
        pull_request = pr_creator.create(
            owner=config.repository_owner,
            repo=config.repository_name,
            title=PR_TITLE,
            body=body,
            head=branch_name,
            base=config.base_branch,
        )
        logger.info(
            "Created refactor PR %s from %s (%d files)", pull_request.url, branch_name, len(files)
        )
        return {
            "staged_files": files,
            "change_summary": change_summary,
            "file_stats": file_stats,
            "outcome": CreatedOutcome(
                branch_name=branch_name,
                pull_request_url=pull_request.url,
                files=files,
                change_summary=change_summary,
            ),
        }

    return publish_node


def make_route(next_step: str) -> Callable[[RunState], str]:
    """Factory: router that ends the graph once an outcome is set."""

    def route(state: RunState) -> str:
        return "end" if state["outcome"] is not None else next_step

    return route


def build_graph(
    config: BotConfig,
    runner: CommandRunner,
    extractor: GitDiffExtractor,
    generator: PatchGenerator,
    apply_engine: GitApplyEngine,
    branch_manager: GitBranchManager,
    scanner: GitRepositoryScanner,
    pr_creator: GitHubPullRequestCreator,
    usage_source: ChatClient | None = None,
    clock: Callable[[], datetime] | None = None,
):
    """Build and compile the run pipeline StateGraph.

    Edge topology:
      START -> extract_node -> {prioritize_node, END}
      prioritize_node -> generate_node -> {candidate_node, END}
      candidate_node -> conditional(next_candidate_or_done) -> {candidate_node, settle_candidates_node}
      settle_candidates_node -> {verify_node, END}
      verify_node -> {publish_node, END}
      publish_node -> END

    Returns:
        CompiledStateGraph ready to invoke.

    Raises:
        GraphBuildError: If graph construction fails.
    """
    try:
        graph = StateGraph(RunState)
        apply_graph = build_apply_graph(apply_engine, generator)

        graph.add_node("extract_node", make_extract_node(config, extractor, scanner))
        graph.add_node("prioritize_node", make_prioritize_node(config))
        graph.add_node("generate_node", make_generate_node(config, generator))
        graph.add_node("candidate_node", make_candidate_node(config, apply_graph))
        graph.add_node("settle_candidates_node", settle_candidates_node)
        graph.add_node("verify_node", make_verify_node(config, runner, apply_engine))
        graph.add_node(
            "publish_node",
            make_publish_node(
                config,
                apply_engine,
                branch_manager,
                pr_creator,
                usage_source,
                clock or (lambda: datetime.now(timezone.utc)),
            ),
        )

        graph.add_edge(START, "extract_node")
        graph.add_conditional_edges(
            "extract_node",
            make_route("prioritize"),
            {"prioritize": "prioritize_node", "end": END},
        )
        graph.add_edge("prioritize_node", "generate_node")
        graph.add_conditional_edges(
            "generate_node",
            make_route("candidates"),
            {"candidates": "candidate_node", "end": END},
        )
        graph.add_conditional_edges(
            "candidate_node",
            next_candidate_or_done,
            {"continue": "candidate_node", "done": "settle_candidates_node"},
        )
        graph.add_conditional_edges(
            "settle_candidates_node",
            make_route("verify"),
            {"verify": "verify_node", "end": END},
        )
        graph.add_conditional_edges(
            "verify_node",
            make_route("publish"),
            {"publish": "publish_node", "end": END},
        )
        graph.add_edge("publish_node", END)

        return graph.compile()

    except GraphBuildError:
        raise
    except Exception as exc:
        raise GraphBuildError(f"Failed to build orchestrator graph: {exc}") from exc


class RefactorPipeline:
    """Runs the compiled pipeline graph and returns one RunOutcome per run."""

    def __init__(
        self,
        config: BotConfig,
        runner: CommandRunner,
        extractor: GitDiffExtractor,
        generator: PatchGenerator,
        apply_engine: GitApplyEngine,
        branch_manager: GitBranchManager,
        scanner: GitRepositoryScanner,
        pr_creator: GitHubPullRequestCreator,
        usage_source: ChatClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.usage_source = usage_source
        self.graph = build_graph(
            config=config,
            runner=runner,
            extractor=extractor,
            generator=generator,
            apply_engine=apply_engine,
            branch_manager=branch_manager,
            scanner=scanner,
            pr_creator=pr_creator,
            usage_source=usage_source,
            clock=clock,
        )
        self.last_state: RunState | None = None

    def run(self, event_path: str | None = None) -> RunOutcome:
        """Execute one run.

        Raises:
            PipelineRunError: If git, a command, or publication fails outside
                the classified skip paths.
        """
        self.last_state = None
        if self.usage_source is not None:
            self.usage_source.reset_usage_stats()

        recursion_limit = BASE_RECURSION_LIMIT + self.config.max_chunks_per_run
        try:
            final = self.graph.invoke(
                make_initial_state(event_path),
                config={"recursion_limit": recursion_limit},
            )
        except (GitError, CommandExecutionError, PublishError) as exc:
            raise PipelineRunError(f"Run failed: {exc}") from exc

        self.last_state = final
        outcome = final["outcome"]
        if outcome is None:
            raise PipelineRunError("Run finished without an outcome")
        return outcome
