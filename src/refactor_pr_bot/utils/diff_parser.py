"""Helpers for reading file paths out of unified diff text."""

import re

DEV_NULL = "/dev/null"
GIT_HEADER_RE = re.compile(r"^diff --git (.+) (b/.+)$")


def normalize_patch_path(value: str) -> str:
    """Strip whitespace, any tab-separated timestamp, and the a/ or b/ prefix."""
    trimmed = value.split("\t", 1)[0].strip()
    if trimmed == DEV_NULL:
        return trimmed
    if trimmed.startswith(("a/", "b/")):
        return trimmed[2:]
    return trimmed


def git_header_target(line: str) -> str | None:
    """Return the right-hand path of a ``diff --git a/x b/x`` header.

    Paths may contain spaces; git only quotes them for special characters.
    """
    match = GIT_HEADER_RE.match(line.rstrip("\r"))
    if match is None:
        return None
    return normalize_patch_path(match.group(2))


def extract_patched_files(patch: str) -> list[str]:
    """Return the ordered, de-duplicated set of paths a patch touches.

    Paths come from ``diff --git`` right-hand sides and ``+++`` headers.
    ``/dev/null`` is never reported.
    """
    files: list[str] = []
    seen: set[str] = set()

    def _add(path: str | None) -> None:
        if path and path != DEV_NULL and path not in seen:
            seen.add(path)
            files.append(path)

    for line in patch.split("\n"):
        if line.startswith("diff --git "):
            _add(git_header_target(line))
        elif line.startswith("+++ "):
            _add(normalize_patch_path(line[4:]))

    return files
