"""Turn a model's free-text response into validated domain objects.

The model is an untrusted boundary: its output is parsed, checked field by
field, and rejected as a whole on the first violation. Nothing is coerced or
silently dropped, and the only exception that leaves this module is
NormalizationError.
"""

from __future__ import annotations

import json
import re

from prsift_core.errors import NormalizationError
from prsift_core.models import SEVERITIES, Finding, TicketContent

# Bounded prefix of the raw response included in error messages.
_RAW_PREVIEW_CHARS = 500

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```$")

_STRING_FIELDS = ("title", "file", "why", "body")


def strip_code_fence(raw: str) -> str:
    """Remove the outer ```json ... ``` fence the model may wrap its answer in.

    Only a fence at the very start and end is stripped, so fenced code
    inside string values survives untouched.
    """
    cleaned = raw.strip()
    if not cleaned.startswith("```"):
        return cleaned
    cleaned = _FENCE_OPEN_RE.sub("", cleaned)
    return _FENCE_CLOSE_RE.sub("", cleaned.strip())


def _preview(raw: str) -> str:
    return raw[:_RAW_PREVIEW_CHARS]


def _load(raw) -> object:
    if not isinstance(raw, str):
        raise NormalizationError(f"Expected text from the model, got {type(raw).__name__}")
    try:
        return json.loads(strip_code_fence(raw))
    except json.JSONDecodeError as e:
        raise NormalizationError(f"Failed to parse AI response as JSON ({e.msg}):\n{_preview(raw)}") from e
    except RecursionError as e:
        raise NormalizationError(f"Failed to parse AI response as JSON (nested too deeply):\n{_preview(raw)}") from e


def _is_int(value) -> bool:
    # bool is an int subclass; `true` is not a line number.
    return isinstance(value, int) and not isinstance(value, bool)


def _validate_finding(index: int, item) -> Finding:
    where = f"finding #{index}"
    if not isinstance(item, dict):
        raise NormalizationError(f"{where} is not an object")

    severity = item.get("severity")
    if severity not in SEVERITIES:
        raise NormalizationError(f"{where} has invalid severity {severity!r}; expected one of {', '.join(SEVERITIES)}")

    confidence = item.get("confidence")
    if not _is_int(confidence) or not 0 <= confidence <= 100:
        raise NormalizationError(f"{where} has invalid confidence {confidence!r}; expected an integer 0-100")

    line = item.get("line")
    if not _is_int(line) or line < 1:
        raise NormalizationError(f"{where} has invalid line {line!r}; expected a positive integer")

    for name in _STRING_FIELDS:
        value = item.get(name)
        if not isinstance(value, str) or not value.strip():
            raise NormalizationError(f"{where} is missing required field {name!r}")

    return Finding(
        id=index,
        severity=severity,
        confidence=confidence,
        title=item["title"],
        file=item["file"],
        line=line,
        why=item["why"],
        body=item["body"],
        approved=None,
    )


def normalize_findings(raw: str) -> list[Finding]:
    """Parse the model's review response into Findings.

    Ids are assigned 1..n in the order the model listed the findings, and
    ``approved`` always starts unknown regardless of what the model emitted.
    """
    data = _load(raw)
    if not isinstance(data, list):
        raise NormalizationError(f"AI response is not an array of findings:\n{_preview(raw)}")
    try:
        return [_validate_finding(i, item) for i, item in enumerate(data, 1)]
    except NormalizationError as e:
        raise NormalizationError(f"{e}\n{_preview(raw)}") from e


def normalize_ticket(raw: str) -> TicketContent:
    """Parse a ticket-generation response into a TicketContent."""
    data = _load(raw)
    if not isinstance(data, dict):
        raise NormalizationError(f"AI response is not a ticket object:\n{_preview(raw)}")
    title = data.get("title")
    description = data.get("description")
    if not isinstance(title, str) or not title.strip() or not isinstance(description, str) or not description.strip():
        raise NormalizationError(f"AI response missing required fields (title, description):\n{_preview(raw)}")
    return TicketContent(title=title, description=description)
