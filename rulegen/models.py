#!/usr/bin/env python3
"""
Core data types shared by the scanner, selector, extractor and formatters.
"""

import json
import math
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple

# Rough token estimate: ~4 characters per token
CHARS_PER_TOKEN = 4

# Slugs are used as filenames, keep them short
MAX_SLUG_LENGTH = 50

DEFAULT_DESCRIPTION = "Generated rule"
DEFAULT_GLOBS: Tuple[str, ...] = ("**/*",)
DEFAULT_TITLE = "Generated Rule"
DEFAULT_SLUG = "generated-rule"


def estimate_tokens(content: str) -> int:
    """Estimate the token cost of a piece of text from its length alone."""
    return math.ceil(len(content) / CHARS_PER_TOKEN)


def slugify(text: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Convert text to a filename-safe slug.

    Lowercases, collapses every run of non-alphanumeric characters into a
    single hyphen, trims hyphens from both ends and truncates.

    Args:
        text: Text to slugify
        max_length: Maximum slug length

    Returns:
        Filename-safe slug, or an empty string if nothing survives
    """
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower())
    slug = slug.strip("-")
    return slug[:max_length]


class PriorityClass(IntEnum):
    """Importance tier of a candidate file. Lower sorts first."""
    CONFIG = 0
    ENTRY_POINT = 1
    SCHEMA_OR_MODEL = 2
    ROUTE_OR_API = 3
    MIDDLEWARE_OR_UTIL = 4
    COMPONENT = 5
    GENERIC = 6
    TEST = 7


@dataclass(frozen=True)
class CandidateFile:
    """A file eligible for submission to the model."""
    path: str
    relative_path: str
    content: str
    size_bytes: int
    is_config_file: bool = False
    extension: str = ""

    @property
    def estimated_tokens(self) -> int:
        return estimate_tokens(self.content)


@dataclass(frozen=True)
class SelectionResult:
    """Files chosen for the prompt, in selection order, plus unspent budget."""
    files: Tuple[CandidateFile, ...] = ()
    remaining_budget: int = 0

    @property
    def total_tokens(self) -> int:
        return sum(f.estimated_tokens for f in self.files)

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self):
        return iter(self.files)


@dataclass(frozen=True)
class UsageCounters:
    """Token usage reported by the model service. Advisory only."""
    prompt_tokens: Optional[int] = None
    response_tokens: Optional[int] = None


@dataclass(frozen=True)
class RawModelOutput:
    """Unparsed text returned by the model."""
    text: str
    usage: UsageCounters = field(default_factory=UsageCounters)


@dataclass(frozen=True)
class RuleRecord:
    """One normalized coding-convention rule."""
    title: str
    description: str
    glob_patterns: Tuple[str, ...]
    always_apply: bool
    body: str

    @property
    def slug(self) -> str:
        return slugify(self.title) or DEFAULT_SLUG


RuleSet = List[RuleRecord]


def render_rule(rule: RuleRecord) -> str:
    """Serialize a rule to the persisted front-matter text format."""
    globs = json.dumps(list(rule.glob_patterns))
    always_apply = "true" if rule.always_apply else "false"
    return (
        f"---\n"
        f"description: {rule.description}\n"
        f"globs: {globs}\n"
        f"alwaysApply: {always_apply}\n"
        f"---\n"
        f"\n"
        f"# {rule.title}\n"
        f"\n"
        f"{rule.body}\n"
    )
