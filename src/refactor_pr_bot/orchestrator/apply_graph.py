"""LangGraph state machine that applies one patch candidate with bounded repair.

Edge topology:
  START -> scope_node
  scope_node -> {guard_node (strict), apply_node (off), repair_node, END}
  guard_node -> {apply_node, END}
  apply_node -> {repair_node, END}
  repair_node -> {scope_node, END}
"""

import logging
from typing import Callable

from langgraph.graph import END, START, StateGraph

from refactor_pr_bot.agents.behavior_guard import assess_patch_behavior_risk
from refactor_pr_bot.agents.patch_generator import PatchGenerator
from refactor_pr_bot.git.apply import GitApplyEngine
from refactor_pr_bot.git.exceptions import PatchApplyError
from refactor_pr_bot.models import (
    CandidateFailureKind,
    CandidateOutcome,
    CandidateStatus,
    PatchCandidate,
)
from refactor_pr_bot.orchestrator.exceptions import GraphBuildError
from refactor_pr_bot.orchestrator.recovery import (
    REPAIR_NO_PATCH_MESSAGE,
    find_out_of_scope_files,
    is_skippable_failure,
)
from refactor_pr_bot.orchestrator.state import CandidateState, make_initial_candidate_state
from refactor_pr_bot.utils.diff_parser import extract_patched_files

logger = logging.getLogger(__name__)

# Upper bound on node visits per scope -> guard -> apply -> repair cycle
STEPS_PER_ATTEMPT = 4


def scope_node(state: CandidateState) -> dict:
    """Reject patches that touch files outside the candidate's chunk."""
    unauthorized = find_out_of_scope_files(state["patch"], state["chunk"])
    if unauthorized:
        message = f"Patch touched files outside chunk scope: {', '.join(unauthorized)}"
        return {
            "last_failure_kind": CandidateFailureKind.SCOPE,
            "last_error": message,
            "errors": [message],
        }
    return {"last_failure_kind": None, "last_error": None}


def guard_node(state: CandidateState) -> dict:
    """Run the behavior-risk guard. A block is terminal for the candidate."""
    assessment = assess_patch_behavior_risk(state["patch"])
    if assessment.safe:
        return {"last_failure_kind": None, "last_error": None}
    message = f"Behavior guard blocked patch: {'; '.join(assessment.reasons)}"
    return {
        "last_failure_kind": CandidateFailureKind.GUARD,
        "last_error": message,
        "errors": [message],
    }


def make_apply_node(apply_engine: GitApplyEngine) -> Callable[[CandidateState], dict]:
    """Factory: returns a node closure that applies the current patch to the index.

    On PatchApplyError: records an ``apply`` failure with the git error text.
    """

    def apply_node(state: CandidateState) -> dict:
        try:
            apply_engine.apply_unified_diff(state["patch"])
        except PatchApplyError as exc:
            return {
                "last_failure_kind": CandidateFailureKind.APPLY,
                "last_error": str(exc),
                "errors": [str(exc)],
            }
        return {"applied": True, "last_failure_kind": None, "last_error": None}

    return apply_node


def make_repair_node(generator: PatchGenerator) -> Callable[[CandidateState], dict]:
    """Factory: returns a node closure that asks the generator for a corrected patch.

    The closure increments ``attempt`` and ``repair_attempts`` before calling
    the generator. A None result abandons the candidate (``repair_no_patch``);
    a raised error is recorded as a hard ``apply`` failure.
    """

    def repair_node(state: CandidateState) -> dict:
        attempt = state["attempt"] + 1
        logger.warning(
            "Patch rejected, requesting repair (attempt %d/%d): %s",
            attempt,
            state["max_repair_attempts"],
            state["last_error"],
        )
        update: dict = {"attempt": attempt, "repair_attempts": state["repair_attempts"] + 1}

        try:
            repaired = generator.repair(
                state["repository"],
                state["base_ref"],
                state["head_ref"],
                state["chunk"],
                state["patch"],
                state["last_error"] or "",
            )
        except Exception as exc:
            message = f"Patch repair failed: {exc}"
            update.update({
                "last_failure_kind": CandidateFailureKind.APPLY,
                "last_error": message,
                "errors": [message],
            })
            return update

        if repaired is None:
            update.update({
                "last_failure_kind": CandidateFailureKind.REPAIR_NO_PATCH,
                "last_error": REPAIR_NO_PATCH_MESSAGE,
                "repair_no_patch": state["repair_no_patch"] + 1,
                "errors": [REPAIR_NO_PATCH_MESSAGE],
            })
            return update

        update.update({"patch": repaired, "last_failure_kind": None, "last_error": None})
        return update

    return repair_node


def decide_after_failure(state: CandidateState) -> str:
    """Repair while budget remains; guard blocks are never repaired."""
    if state["last_failure_kind"] == CandidateFailureKind.GUARD:
        return "end"
    if state["attempt"] < state["max_repair_attempts"]:
        return "repair"
    return "end"


def route_after_scope(state: CandidateState) -> str:
    if state["last_failure_kind"] is not None:
        return decide_after_failure(state)
    return "guard" if state["guard_mode"] == "strict" else "apply"


def route_after_guard(state: CandidateState) -> str:
    return "end" if state["last_failure_kind"] is not None else "apply"


def route_after_apply(state: CandidateState) -> str:
    if state["applied"]:
        return "end"
    return decide_after_failure(state)


def route_after_repair(state: CandidateState) -> str:
    return "end" if state["last_failure_kind"] is not None else "scope"


def build_apply_graph(apply_engine: GitApplyEngine, generator: PatchGenerator):
    """Build and compile the apply/repair StateGraph.

    Args:
        apply_engine: Applies patches to the shared index.
        generator: Source of repaired patches.

    Returns:
        CompiledStateGraph ready to invoke with a CandidateState.

    Raises:
        GraphBuildError: If graph construction fails.
    """
    try:
        graph = StateGraph(CandidateState)

        graph.add_node("scope_node", scope_node)
        graph.add_node("guard_node", guard_node)
        graph.add_node("apply_node", make_apply_node(apply_engine))
        graph.add_node("repair_node", make_repair_node(generator))

        graph.add_edge(START, "scope_node")
        graph.add_conditional_edges(
            "scope_node",
            route_after_scope,
            {"guard": "guard_node", "apply": "apply_node", "repair": "repair_node", "end": END},
        )
        graph.add_conditional_edges(
            "guard_node", route_after_guard, {"apply": "apply_node", "end": END}
        )
        graph.add_conditional_edges(
            "apply_node", route_after_apply, {"repair": "repair_node", "end": END}
        )
        graph.add_conditional_edges(
            "repair_node", route_after_repair, {"scope": "scope_node", "end": END}
        )

        return graph.compile()

    except Exception as exc:
        raise GraphBuildError(f"Failed to build apply graph: {exc}") from exc


def outcome_from_state(state: CandidateState) -> CandidateOutcome:
    """Summarize a finished CandidateState as a CandidateOutcome."""
    if state["applied"]:
        status = CandidateStatus.APPLIED
    elif is_skippable_failure(state["last_failure_kind"]):
        status = CandidateStatus.SKIPPED
    else:
        status = CandidateStatus.FAILED

    return CandidateOutcome(
        status=status,
        final_patch=state["patch"],
        files=extract_patched_files(state["patch"]),
        failure_kind=None if state["applied"] else state["last_failure_kind"],
        error=None if state["applied"] else state["last_error"],
        repair_attempts=state["repair_attempts"],
        repair_no_patch=state["repair_no_patch"],
    )


def run_candidate(
    apply_graph,
    candidate: PatchCandidate,
    repository: str,
    base_ref: str,
    head_ref: str,
    max_repair_attempts: int,
    guard_mode: str,
) -> CandidateOutcome:
    """Drive one candidate through the compiled apply graph."""
    initial = make_initial_candidate_state(
        repository=repository,
        base_ref=base_ref,
        head_ref=head_ref,
        chunk=candidate.chunk,
        patch=candidate.patch,
        max_repair_attempts=max_repair_attempts,
        guard_mode=guard_mode,
    )
    recursion_limit = STEPS_PER_ATTEMPT * (initial["max_repair_attempts"] + 1) + 5
    final = apply_graph.invoke(initial, config={"recursion_limit": recursion_limit})
    return outcome_from_state(final)
