#!/usr/bin/env python3
"""
Priority classification of candidate files.

Config and entry-point files carry the most architectural signal per
token; tests are voluminous but repetitive and go last. Classification is
an ordered table of (predicate, class) pairs evaluated top-down, first
match wins.
"""

from typing import Callable, List, Tuple

from .models import CandidateFile, PriorityClass

Predicate = Callable[[CandidateFile], bool]

ENTRY_POINT_NAMES = {"index", "main", "app", "server"}

ENTRY_POINT_EXTENSIONS = {
    ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs",
    ".py", ".go", ".rs", ".rb", ".java", ".kt", ".cs", ".php", ".swift",
}

SCHEMA_MARKERS = ("schema", "model", "prisma")
ROUTE_MARKERS = ("route", "api/", "controller")
MIDDLEWARE_MARKERS = ("middleware", "hook", "util")
COMPONENT_MARKERS = ("component",)
TEST_MARKERS = ("test", "spec", "__tests__")


def _lower_path(candidate: CandidateFile) -> str:
    return candidate.relative_path.replace("\\", "/").lower()


def is_config(candidate: CandidateFile) -> bool:
    return candidate.is_config_file


def is_entry_point(candidate: CandidateFile) -> bool:
    """Match index/main/app/server with a source extension, ignoring directories."""
    name = _lower_path(candidate).rsplit("/", 1)[-1]
    stem, dot, ext = name.rpartition(".")
    if not dot:
        return False
    return stem in ENTRY_POINT_NAMES and f".{ext}" in ENTRY_POINT_EXTENSIONS


def path_contains(*markers: str) -> Predicate:
    """Build a predicate matching any marker as a substring of the lowercased path."""
    def predicate(candidate: CandidateFile) -> bool:
        rel = _lower_path(candidate)
        return any(marker in rel for marker in markers)
    predicate.__name__ = f"path_contains({', '.join(markers)})"
    return predicate


# Order matters: tests are checked after every other heuristic bucket
CLASSIFICATION_TABLE: List[Tuple[Predicate, PriorityClass]] = [
    (is_config, PriorityClass.CONFIG),
    (is_entry_point, PriorityClass.ENTRY_POINT),
    (path_contains(*SCHEMA_MARKERS), PriorityClass.SCHEMA_OR_MODEL),
    (path_contains(*ROUTE_MARKERS), PriorityClass.ROUTE_OR_API),
    (path_contains(*MIDDLEWARE_MARKERS), PriorityClass.MIDDLEWARE_OR_UTIL),
    (path_contains(*COMPONENT_MARKERS), PriorityClass.COMPONENT),
    (path_contains(*TEST_MARKERS), PriorityClass.TEST),
]


def classify(candidate: CandidateFile) -> PriorityClass:
    """Assign a candidate its priority class.

    Args:
        candidate: File to classify

    Returns:
        The class of the first matching table entry, GENERIC if none match
    """
    for predicate, priority in CLASSIFICATION_TABLE:
        if predicate(candidate):
            return priority
    return PriorityClass.GENERIC
