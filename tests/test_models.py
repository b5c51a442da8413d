"""Tests for the tagged outcome unions."""
import pytest
from pydantic import TypeAdapter, ValidationError

from refactor_pr_bot.models import (
    CreatedOutcome,
    GenerationResult,
    ModelFailureDetail,
    ModelFailureSubtype,
    NoChanges,
    PatchProposal,
    RunOutcome,
    SkippedOutcome,
    SkipReason,
)

RUN_OUTCOME = TypeAdapter(RunOutcome)
GENERATION_RESULT = TypeAdapter(GenerationResult)


class TestRunOutcome:

    def test_skipped_outcome_round_trips_from_json_summary(self):
        outcome = SkippedOutcome(
            reason=SkipReason.MODEL_FAILURE,
            model_failure=ModelFailureDetail(
                subtype=ModelFailureSubtype.MIXED, failed_chunks=2, total_chunks=5
            ),
        )
        restored = RUN_OUTCOME.validate_python(outcome.model_dump(mode="json"))

        assert isinstance(restored, SkippedOutcome)
        assert restored == outcome

    def test_created_outcome_selected_by_status(self):
        restored = RUN_OUTCOME.validate_json(
            '{"status": "created", "branch_name": "refactor/bot-20240102030405",'
            ' "pull_request_url": "https://github.com/acme/widgets/pull/7",'
            ' "files": ["src/a.ts"], "change_summary": "1 file changed"}'
        )
        assert isinstance(restored, CreatedOutcome)
        assert restored.files == ["src/a.ts"]

    def test_model_failure_detail_only_with_model_failure(self):
        with pytest.raises(ValidationError):
            RUN_OUTCOME.validate_python({"status": "skipped", "reason": "model_failure"})
        with pytest.raises(ValidationError):
            RUN_OUTCOME.validate_python(
                {
                    "status": "skipped",
                    "reason": "no_patch",
                    "model_failure": {"subtype": "timeout", "failed_chunks": 1, "total_chunks": 1},
                }
            )

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            RUN_OUTCOME.validate_python({"status": "failed", "reason": "no_diff"})


class TestGenerationResult:

    def test_kind_selects_variant(self):
        assert isinstance(GENERATION_RESULT.validate_python({"kind": "no_changes"}), NoChanges)
        proposal = GENERATION_RESULT.validate_python({"kind": "patch", "patch": "--- a\n"})
        assert isinstance(proposal, PatchProposal)
        assert proposal.patch == "--- a\n"
