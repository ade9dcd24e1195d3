"""
Validates an untrusted query spec (the language model's output) before any
adapter runs.

Checks performed:
  1. The spec is a JSON object
  2. ``type`` is one of count | sum | average
  3. sum / average name a ``measure``
  4. ``multiSeries`` is a boolean, and when true ``seriesDimension`` is set
  5. ``measure`` / ``dimension`` / ``seriesDimension`` are strings when present
  6. ``filters`` is a list of {column, operator, value} with a known operator
     and a usable value (IN needs a non-empty list)
  7. ``chartType`` (on the full model envelope) is an allowed chart type
"""
from __future__ import annotations

import json
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from src.charting.spec import CHART_TYPES, OPERATORS, QUERY_TYPES, ChartRequest, DataQuerySpec
from src.core.errors import ValidationError
from src.governance.intent import repair_spec
from src.core.logging import get_logger

logger = get_logger(__name__)

_FENCE_START_RE = re.compile(r"^```(?:json)?\s*")
_FENCE_END_RE = re.compile(r"\s*```$")


def collect_spec_errors(spec: dict[str, Any]) -> list[tuple[str, str]]:
    """Return (field, message) pairs; an empty list means the spec is valid."""
    errors: list[tuple[str, str]] = []

    qtype = spec.get("type")
    if not qtype:
        errors.append(("type", "No query type specified."))
    elif qtype not in QUERY_TYPES:
        errors.append(("type", f"Unknown query type '{qtype}'. Allowed: {', '.join(QUERY_TYPES)}"))

    for key in ("measure", "dimension", "seriesDimension"):
        value = spec.get(key)
        if value is not None and not isinstance(value, str):
            errors.append((key, f"'{key}' must be a column name, got {value!r}."))

    if qtype in ("sum", "average") and not spec.get("measure"):
        errors.append(("measure", f"Query type '{qtype}' requires a 'measure' column."))

    multi = spec.get("multiSeries", False)
    if not isinstance(multi, bool):
        errors.append(("multiSeries", f"'multiSeries' must be true or false, got {multi!r}."))
    elif multi and not spec.get("seriesDimension"):
        errors.append(("seriesDimension", "'multiSeries' is true but no 'seriesDimension' is set."))

    filters = spec.get("filters")
    if filters is None:
        return errors
    if not isinstance(filters, list):
        errors.append(("filters", "'filters' must be a list."))
        return errors

    for i, f in enumerate(filters):
        name = f"filters[{i}]"
        if not isinstance(f, dict):
            errors.append((name, f"Filter {i} must be an object with column, operator and value."))
            continue
        column = f.get("column")
        if not isinstance(column, str) or not column.strip():
            errors.append((f"{name}.column", f"Filter {i} has no column."))
        op = f.get("operator")
        if op not in OPERATORS:
            errors.append((f"{name}.operator", f"Filter {i} has unknown operator {op!r}. Allowed: {', '.join(OPERATORS)}"))
            continue
        value = f.get("value")
        if op == "IN":
            if not isinstance(value, list) or not value:
                errors.append((f"{name}.value", f"Filter {i} uses IN and needs a non-empty list of values."))
        elif value is None or isinstance(value, (list, dict)):
            errors.append((f"{name}.value", f"Filter {i} needs a single value for operator '{op}'."))

    return errors


def _raise(errors: list[tuple[str, str]], spec: dict[str, Any] | None) -> None:
    messages = [msg for _, msg in errors]
    logger.warning("Query spec rejected: %s", messages)
    raise ValidationError(errors[0][0], messages, spec=spec)


def validate_query_spec(
    raw: Any,
    question: str | None = None,
    repair: bool = True,
) -> DataQuerySpec:
    """Repair (optionally) and validate *raw*, returning a typed spec.

    Raises
    ------
    ValidationError
        Naming the first missing / invalid field.
    """
    if not isinstance(raw, dict):
        _raise([("dataQuery", "Query spec must be a JSON object.")], None)

    spec = repair_spec(raw, question) if repair else dict(raw)

    errors = collect_spec_errors(spec)
    if errors:
        _raise(errors, spec)

    try:
        return DataQuerySpec.model_validate(spec)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "dataQuery"
        messages = [f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in exc.errors()]
        logger.warning("Query spec rejected: %s", messages)
        raise ValidationError(field, messages, spec=spec) from exc


def _decode_model_output(text: str) -> Any:
    # Strip markdown fences if present
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_START_RE.sub("", text)
        text = _FENCE_END_RE.sub("", text)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError("dataQuery", [f"Model output is not valid JSON: {exc}"]) from exc


def parse_chart_request(payload: str | dict[str, Any], question: str | None = None) -> ChartRequest:
    """Validate the model's full answer: ``{dataQuery, chartType, explanation}``."""
    data = _decode_model_output(payload) if isinstance(payload, str) else payload
    if not isinstance(data, dict):
        raise ValidationError("dataQuery", ["Model output must be a JSON object."])

    if "dataQuery" not in data:
        raise ValidationError("dataQuery", ["Model output has no 'dataQuery'."])

    chart_type = data.get("chartType", "bar")
    if chart_type not in CHART_TYPES:
        raise ValidationError(
            "chartType",
            [f"Invalid chart type '{chart_type}'. Allowed: {', '.join(CHART_TYPES)}"],
        )

    spec = validate_query_spec(data["dataQuery"], question=question)
    explanation = data.get("explanation") or ""
    return ChartRequest(data_query=spec, chart_type=chart_type, explanation=str(explanation))
