"""Path-based file classification shared by chunk prioritization and the behavior guard."""

import re
from enum import Enum
from pathlib import PurePosixPath

SOURCE_EXTENSIONS = frozenset({
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
    ".py", ".go", ".rs", ".java", ".kt", ".swift",
    ".php", ".rb", ".cs", ".cpp", ".c", ".h",
})
DOC_EXTENSIONS = frozenset({".md", ".mdx", ".txt", ".rst"})
CONFIG_EXTENSIONS = frozenset({".json", ".yml", ".yaml", ".toml"})

TEST_SUFFIXES = (
    ".test.ts", ".test.tsx", ".test.js", ".test.jsx",
    ".spec.ts", ".spec.tsx", ".spec.js", ".spec.jsx",
    "_test.py", "_test.go",
)
TEST_DIR_RE = re.compile(r"(^|/)(test|tests|__tests__)/")
PY_TEST_NAME_RE = re.compile(r"(^|/)test_[^/]+\.py$")

GENERATED_DIR_RE = re.compile(r"(^|/)(dist|build|coverage|node_modules|vendor|generated)/")
RULE_FIXTURE_RE = re.compile(r"(^|/)rule-\d+\.[a-z0-9]+$")
GENERATED_SUFFIXES = (".min.js", ".min.css", ".map")


class FileCategory(str, Enum):
    TEST = "test"
    DOC = "doc"
    CONFIG = "config"
    GENERATED = "generated"
    SOURCE = "source"
    OTHER = "other"


def get_extension(file_path: str) -> str:
    """Lower-cased final suffix including the dot, or "" when there is none."""
    return PurePosixPath(file_path).suffix.lower()


def is_test_file(file_path: str) -> bool:
    normalized = file_path.lower()
    return (
        TEST_DIR_RE.search(normalized) is not None
        or PY_TEST_NAME_RE.search(normalized) is not None
        or normalized.endswith(TEST_SUFFIXES)
    )


def is_doc_file(file_path: str) -> bool:
    return get_extension(file_path) in DOC_EXTENSIONS


def is_config_file(file_path: str) -> bool:
    return get_extension(file_path) in CONFIG_EXTENSIONS


def is_source_file(file_path: str) -> bool:
    return get_extension(file_path) in SOURCE_EXTENSIONS


def looks_generated(file_path: str) -> bool:
    normalized = file_path.lower()
    return (
        GENERATED_DIR_RE.search(normalized) is not None
        or RULE_FIXTURE_RE.search(normalized) is not None
        or normalized.endswith(GENERATED_SUFFIXES)
    )


def classify_file(file_path: str) -> FileCategory:
    """Classify a repository-relative path.

    Precedence is test > doc > config > generated > source > other, so a
    test file living under ``build/`` still counts as a test.
    """
    if is_test_file(file_path):
        return FileCategory.TEST
    if is_doc_file(file_path):
        return FileCategory.DOC
    if is_config_file(file_path):
        return FileCategory.CONFIG
    if looks_generated(file_path):
        return FileCategory.GENERATED
    if is_source_file(file_path):
        return FileCategory.SOURCE
    return FileCategory.OTHER
