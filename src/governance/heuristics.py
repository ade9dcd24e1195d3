"""
Name- and text-based heuristics that drive branching elsewhere.

Kept in one place so the aggregation and SQL code never guesses on its own:

  looks_like_date_column  -- column *names* that get month bucketing and
                             date-aware filter comparisons
  mentions_comparison     -- free-text questions that compare categories
                             ("Kentucky vs California")
"""
from __future__ import annotations

import re

# Substrings of a column name that mark it as a date column.  Not "month":
# Month columns usually hold 1-12 categories, which would parse as serials.
DATE_NAME_TOKENS = ("date",)

_COMPARISON_RE = re.compile(r"\b(vs|versus)\b", re.IGNORECASE)


def looks_like_date_column(column: str | None) -> bool:
    """True when *column*'s name suggests it holds dates (case-insensitive)."""
    if not column:
        return False
    name = column.lower()
    return any(token in name for token in DATE_NAME_TOKENS)


def mentions_comparison(question: str | None) -> bool:
    """True when the question contains the word "vs" or "versus"."""
    if not question:
        return False
    return bool(_COMPARISON_RE.search(question))
