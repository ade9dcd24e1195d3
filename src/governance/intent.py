"""
Intent normaliser -- repairs a raw query spec from the language model before
it is validated.

Repairs are deliberately small and each one is logged:

  1. query-type synonyms       (avg/mean -> average, total -> sum, group -> count)
  2. operator spellings        (== -> =, in -> IN, like -> LIKE)
  3. value/operator agreement  (list with '=' -> IN, scalar with IN -> [scalar])
  4. multi-series promotion    ("Kentucky vs California by month")
"""
from __future__ import annotations

import copy
from typing import Any

from src.governance.heuristics import looks_like_date_column, mentions_comparison
from src.core.logging import get_logger

logger = get_logger(__name__)

_TYPE_SYNONYMS: dict[str, str] = {
    "avg": "average",
    "mean": "average",
    "total": "sum",
    "group": "count",
}

_OPERATOR_SYNONYMS: dict[str, str] = {
    "==": "=",
    "eq": "=",
    "in": "IN",
    "like": "LIKE",
    "contains": "LIKE",
}

# snake_case spellings the model occasionally emits
_KEY_ALIASES: dict[str, str] = {
    "multi_series": "multiSeries",
    "series_dimension": "seriesDimension",
}


def _canonical_keys(raw: dict[str, Any]) -> dict[str, Any]:
    spec: dict[str, Any] = {}
    for key, value in raw.items():
        spec[_KEY_ALIASES.get(key, key)] = value
    return spec


def normalise_type(spec: dict[str, Any]) -> dict[str, Any]:
    qtype = spec.get("type")
    if isinstance(qtype, str):
        lowered = qtype.strip().lower()
        canonical = _TYPE_SYNONYMS.get(lowered, lowered)
        if canonical != qtype:
            logger.info("Intent repair: type %r -> %r", qtype, canonical)
        spec["type"] = canonical
    return spec


def normalise_filters(spec: dict[str, Any]) -> dict[str, Any]:
    filters = spec.get("filters")
    if not isinstance(filters, list):
        return spec

    repaired: list[Any] = []
    for f in filters:
        if not isinstance(f, dict):
            repaired.append(f)
            continue
        f = dict(f)
        op = f.get("operator")
        if isinstance(op, str):
            stripped = op.strip()
            canonical = _OPERATOR_SYNONYMS.get(stripped.lower(), stripped.upper())
            if canonical != op:
                logger.info("Intent repair: operator %r -> %r on %s", op, canonical, f.get("column"))
            f["operator"] = canonical

        value = f.get("value")
        if f.get("operator") == "=" and isinstance(value, list):
            logger.info("Intent repair: list value with '=' -> IN on %s", f.get("column"))
            f["operator"] = "IN"
        elif f.get("operator") == "IN" and not isinstance(value, list):
            f["value"] = [value]
        repaired.append(f)

    spec["filters"] = repaired
    return spec


def promote_multi_series(spec: dict[str, Any], question: str | None) -> dict[str, Any]:
    """Turn "A vs B over time" into a multi-series spec.

    Applies only when the spec is single-series, groups by a date-like
    dimension, has an IN filter over a list, and the question says vs/versus.
    The first such IN filter's column becomes the series dimension.
    """
    if spec.get("multiSeries"):
        return spec
    if not looks_like_date_column(spec.get("dimension")):
        return spec
    if not mentions_comparison(question):
        return spec

    for f in spec.get("filters") or []:
        if (
            isinstance(f, dict)
            and f.get("operator") == "IN"
            and isinstance(f.get("value"), list)
            and f.get("column")
        ):
            logger.info(
                "Intent repair: promoting to multi-series on %s (question compares values)",
                f["column"],
            )
            spec["multiSeries"] = True
            spec["seriesDimension"] = f["column"]
            break
    return spec


def repair_spec(raw: dict[str, Any], question: str | None = None) -> dict[str, Any]:
    """Return a repaired copy of *raw*; the input is left untouched."""
    spec = _canonical_keys(copy.deepcopy(raw))
    spec = normalise_type(spec)
    spec = normalise_filters(spec)
    spec = promote_multi_series(spec, question)
    return spec
