#!/usr/bin/env python3
"""
Token budget manager.

Selects the most informative files that fit within the model's context
window. Candidates are ordered by priority class, then by size (larger
files show more patterns), and taken greedily. A file that does not fit
the remaining budget is skipped, not treated as the end of the list, so
a later smaller file can still use the slack.

This is greedy best-fit by priority, not a knapsack optimum: priority
order wins over byte-for-byte use of the budget.
"""

import logging
from typing import Iterable

from .classifier import classify
from .models import CandidateFile, SelectionResult

logger = logging.getLogger(__name__)


def token_ceiling(context_limit: int, prompt_reserve: int, max_output_tokens: int) -> int:
    """Token budget left for file contents after prompt scaffolding and response."""
    return max(0, context_limit - prompt_reserve - max_output_tokens)


def sort_candidates(candidates: Iterable[CandidateFile]) -> list:
    """Order candidates priority-major, size-minor.

    ``sorted`` is stable, so equal keys keep discovery order.
    """
    return sorted(candidates, key=lambda c: (classify(c), -c.size_bytes))


def select(candidates: Iterable[CandidateFile], max_files: int, ceiling: int) -> SelectionResult:
    """Pick the subset of candidates to send to the model.

    Args:
        candidates: Discovered files, in discovery order (may be empty)
        max_files: Maximum number of files to select
        ceiling: Maximum total estimated tokens

    Returns:
        SelectionResult with files in selection order and the unspent budget
    """
    selected = []
    remaining = max(0, ceiling)

    for candidate in sort_candidates(candidates):
        if len(selected) >= max_files:
            break

        tokens = candidate.estimated_tokens
        if tokens > remaining:
            logger.debug(
                "Skipping %s: %d tokens exceeds remaining budget %d",
                candidate.relative_path, tokens, remaining,
            )
            continue

        selected.append(candidate)
        remaining -= tokens

    return SelectionResult(files=tuple(selected), remaining_budget=remaining)
