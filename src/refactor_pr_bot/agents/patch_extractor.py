"""Turn raw model output into a sanitized, structurally valid unified diff.

Models wrap diffs in prose, code fences, or both, and occasionally leak
commentary into hunk bodies. Extraction is three steps:

1. Locate diff-shaped text (labelled fence, any fence with a diff header,
   then a bare scan).
2. Sanitize it down to recognised diff syntax.
3. Validate the structure and reject null-device headers.
"""

import re

from refactor_pr_bot.agents.exceptions import InvalidOutputError, PatchValidationError
from refactor_pr_bot.models import GenerationResult, NoChanges, PatchProposal
from refactor_pr_bot.utils.diff_parser import DEV_NULL

NO_CHANGES_SIGNAL = "NO_CHANGES_NEEDED"

FENCE_RE = re.compile(r"```([A-Za-z0-9_+-]*)[^\n]*\n(.*?)```", re.DOTALL)
DIFF_HEADER_RE = re.compile(r"^(diff --git |--- )", re.MULTILINE)
HUNK_HEADER_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+\d+(?:,\d+)? @@")
NO_NEWLINE_MARKER = "\\ No newline at end of file"

METADATA_PREFIXES = (
    "index ",
    "old mode ",
    "new mode ",
    "deleted file mode ",
    "new file mode ",
    "rename from ",
    "rename to ",
    "copy from ",
    "copy to ",
    "similarity index ",
    "dissimilarity index ",
    "Binary files ",
    "GIT binary patch",
)
HUNK_LINE_PREFIXES = (" ", "+", "-")
EXCERPT_LENGTH = 80


def has_no_changes_signal(raw: str) -> bool:
    """True when the sentinel appears alone on any line."""
    return any(line.strip() == NO_CHANGES_SIGNAL for line in raw.split("\n"))


def locate_diff(raw: str) -> str | None:
    """Find the diff-shaped region of a response, or None."""
    fences = FENCE_RE.findall(raw)
    for label, body in fences:
        if label.lower() in ("diff", "patch"):
            return body
    for _label, body in fences:
        if DIFF_HEADER_RE.search(body):
            return body

    match = DIFF_HEADER_RE.search(raw)
    if match is None:
        return None
    remainder = raw[match.start():]
    closing = remainder.find("```")
    return remainder if closing == -1 else remainder[:closing]


def _starts_file_header(lines: list[str], index: int) -> bool:
    line = lines[index]
    if line.startswith("diff --git "):
        return True
    return (
        line.startswith("--- ")
        and index + 1 < len(lines)
        and lines[index + 1].startswith("+++ ")
    )


def sanitize_patch(text: str) -> str:
    """Re-emit only recognised unified diff syntax.

    Inside a hunk, lines without a valid prefix are dropped and empty lines
    become blank context lines. Outside a hunk, lines are trimmed and kept if
    non-empty.
    """
    lines = text.replace("\r\n", "\n").split("\n")
    output: list[str] = []
    in_hunk = False

    for index, line in enumerate(lines):
        if _starts_file_header(lines, index) or (
            not in_hunk and line.startswith(("--- ", "+++ "))
        ):
            in_hunk = False
            output.append(line.rstrip())
            continue
        if HUNK_HEADER_RE.match(line):
            in_hunk = True
            output.append(line.rstrip())
            continue
        if not in_hunk and line.startswith(METADATA_PREFIXES):
            output.append(line.rstrip())
            continue

        if in_hunk:
            if line == "":
                output.append(" ")
            elif line.startswith(HUNK_LINE_PREFIXES) or line == NO_NEWLINE_MARKER:
                output.append(line)
            continue

        trimmed = line.strip()
        if trimmed:
            output.append(trimmed)

    while output and output[-1] == " ":
        output.pop()
    return "\n".join(output).strip("\n")


def _excerpt(line: str) -> str:
    return line if len(line) <= EXCERPT_LENGTH else f"{line[:EXCERPT_LENGTH]}..."


def validate_unified_diff(patch: str) -> None:
    """Check unified diff structure.

    Raises:
        PatchValidationError: On a missing header pair, a missing hunk marker,
            an in-hunk line without a valid prefix, or a /dev/null header.
    """
    lines = patch.split("\n")
    has_header_pair = False
    has_hunk = False
    in_hunk = False

    for index, line in enumerate(lines):
        line_number = index + 1
        if line.startswith(("--- ", "+++ ")) and DEV_NULL in line:
            raise PatchValidationError("Patch must not use /dev/null headers")

        if _starts_file_header(lines, index):
            in_hunk = False
            if line.startswith("--- "):
                has_header_pair = True
            continue
        if line.startswith("+++ ") and index > 0 and lines[index - 1].startswith("--- "):
            continue
        if HUNK_HEADER_RE.match(line):
            has_hunk = True
            in_hunk = True
            continue
        if not in_hunk and line.startswith(METADATA_PREFIXES):
            continue

        if in_hunk and line and not line.startswith((*HUNK_LINE_PREFIXES, "\\")):
            raise PatchValidationError(
                f"Invalid hunk line {line_number}: expected ' ', '+' or '-' prefix, "
                f"got {_excerpt(line)!r}"
            )

    if not has_header_pair:
        raise PatchValidationError("Patch is missing a ---/+++ file header pair")
    if not has_hunk:
        raise PatchValidationError("Patch is missing an @@ hunk header")


def extract_patch(raw: str) -> GenerationResult:
    """Convert a raw model response into a generation result.

    Raises:
        InvalidOutputError: If the response holds neither a diff nor the sentinel.
        PatchValidationError: If the located diff is structurally invalid.
    """
    if has_no_changes_signal(raw):
        return NoChanges(raw=raw)

    located = locate_diff(raw)
    if located is None or not located.strip():
        raise InvalidOutputError(
            f"Model output is invalid: expected unified diff or {NO_CHANGES_SIGNAL}"
        )

    patch = sanitize_patch(located)
    validate_unified_diff(patch)
    return PatchProposal(patch=f"{patch}\n", raw=raw)
