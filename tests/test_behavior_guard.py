"""Tests for the static behavior-risk guard."""
from refactor_pr_bot.agents.behavior_guard import assess_patch_behavior_risk, tokenize


def make_patch(path: str, removed: str, added: str) -> str:
    """Helper to create a single-hunk patch for ``path``."""
    return (
        f"diff --git a/{path} b/{path}\n"
        f"--- a/{path}\n"
        f"+++ b/{path}\n"
        "@@ -1 +1 @@\n"
        f"-{removed}\n"
        f"+{added}\n"
    )


class TestAssessPatchBehaviorRisk:

    def test_whitespace_only_source_change_is_safe(self):
        patch = make_patch("src/math.ts", "return a+b;", "return a + b;")
        assessment = assess_patch_behavior_risk(patch)
        assert assessment.safe
        assert assessment.reasons == []

    def test_operator_change_is_blocked(self):
        patch = make_patch("src/math.ts", "return a + b;", "return a - b;")
        assessment = assess_patch_behavior_risk(patch)
        assert not assessment.safe
        assert assessment.reasons == [
            "Behavior guard blocked semantic token changes in src/math.ts"
        ]

    def test_test_and_doc_files_are_exempt(self):
        patch = make_patch("src/math.test.ts", "expect(1)", "expect(2)") + make_patch(
            "README.md", "Old words", "New words"
        )
        assert assess_patch_behavior_risk(patch).safe

    def test_unsupported_file_type_is_blocked(self):
        patch = make_patch("scripts/deploy.sh", "echo hi", "echo  hi")
        assessment = assess_patch_behavior_risk(patch)
        assert not assessment.safe
        assert "unsupported source file type: scripts/deploy.sh" in assessment.reasons[0]

    def test_one_reason_per_blocked_file(self):
        patch = make_patch("src/a.ts", "x = 1", "x = 2") + make_patch("src/b.ts", "y = 1", "y = 3")
        assessment = assess_patch_behavior_risk(patch)
        assert len(assessment.reasons) == 2

    def test_tokenize_ignores_layout(self):
        assert tokenize("if(a===b){c++}") == tokenize("if (a === b) {\n  c++\n}")
