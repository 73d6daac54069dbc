"""Conversion between widget state and the single answer string per question."""
from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Optional, Sequence

log = logging.getLogger(__name__)

Slot = Optional[int]


def decode_list(value: Optional[str]) -> List[Any]:
    """Decode a JSON list answer. Anything unreadable decodes to []."""
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        log.debug("Answer value is not JSON: %r", value)
        return []
    if not isinstance(parsed, list):
        return []
    return parsed


def encode_list(items: Iterable[Any]) -> str:
    return json.dumps(list(items), ensure_ascii=False, separators=(",", ":"))


def decode_string_list(value: Optional[str]) -> List[str]:
    return ["" if item is None else str(item) for item in decode_list(value)]


def decode_selection(value: Optional[str]) -> frozenset[str]:
    """Multi-select answers compare by membership, not order."""
    return frozenset(decode_string_list(value))


def unpack_legacy_blanks(value: str) -> List[str]:
    if not value:
        return []
    return value.split("\n")


def pack_legacy_blanks(values: Sequence[str]) -> str:
    cleaned = [(v or "").strip() for v in values]
    while cleaned and cleaned[-1] == "":
        cleaned.pop()
    return "\n".join(cleaned)


def _fit(values: List[str], blank_count: int) -> List[str]:
    if blank_count < 0:
        return values
    if len(values) < blank_count:
        return values + [""] * (blank_count - len(values))
    return values[:blank_count]


def decode_blanks(value: Optional[str], blank_count: int = -1) -> List[str]:
    """
    Decode a multi-blank answer into one entry per blank.

    JSON lists are the current format; newline-joined strings written by
    older clients are still accepted. ``blank_count`` pads or truncates the
    result to the prompt's blank count when given.
    """
    if not value:
        return _fit([], blank_count)
    stripped = value.strip()
    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            values = ["" if item is None else str(item) for item in parsed]
            return _fit(values, blank_count)
    return _fit(unpack_legacy_blanks(value), blank_count)


def encode_blanks(values: Sequence[str], blank_count: int = -1) -> str:
    return encode_list(_fit([v or "" for v in values], blank_count))


def reconcile_ordered_slots(
    saved_labels: Sequence[str], canonical_steps: Sequence[str]
) -> List[Slot]:
    """Map each saved label to its 1-based position among the canonical steps."""
    slots: List[Slot] = []
    for label in saved_labels:
        try:
            slots.append(list(canonical_steps).index(label) + 1)
        except ValueError:
            slots.append(None)
    return slots


def project_slots_to_labels(
    slots: Sequence[Slot], canonical_steps: Sequence[str]
) -> List[str]:
    """Inverse of reconcile_ordered_slots; unset and out-of-range slots are skipped."""
    labels = []
    for position in slots:
        if not isinstance(position, int) or not 1 <= position <= len(canonical_steps):
            continue
        labels.append(canonical_steps[position - 1])
    return labels
