from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Sequence

from .models import LogEntry, SheetState

LOGGER = logging.getLogger(__name__)

FIRST_DATA_ROW = 2
STATUS_COLUMN = 0
TIME_COLUMN = 1
IMAGE_COLUMN = 2
ANSWER_COLUMN = 3
LOG_COLUMN = 4

_IMAGE_FORMULA_RE = re.compile(r'^=IMAGE\(\s*"([^"]+)"(?:[,;].*)?\)$', re.IGNORECASE)


def _cell(row: Sequence[Any] | None, idx: int) -> Any:
    if row is None or idx >= len(row):
        return None
    return row[idx]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def unwrap_image_formula(value: Any) -> Any:
    """Return the URL wrapped by an ``=IMAGE("...")`` formula, else the trimmed value.

    Non-string values pass through unchanged and ``None`` becomes ``""``.
    """

    if value is None:
        return ""
    if not isinstance(value, str):
        return value
    trimmed = value.strip()
    match = _IMAGE_FORMULA_RE.match(trimmed)
    if match:
        return match.group(1).strip()
    return trimmed


def resolve_image_value(rows: Sequence[Sequence[Any]]) -> Any:
    """Prefer the image cell of the second data row, falling back to the first."""

    if not rows:
        return ""
    status_row = rows[0]
    image_row = rows[1] if len(rows) > 1 else status_row
    value = _cell(image_row, IMAGE_COLUMN)
    if value is None:
        value = _cell(status_row, IMAGE_COLUMN)
    return unwrap_image_formula(value)


def collect_logs(rows: Sequence[Sequence[Any]]) -> List[LogEntry]:
    """Return the non-blank log lines of column E keyed by spreadsheet row number."""

    entries: Dict[int, str] = {}
    for index, row in enumerate(rows):
        text = _as_text(_cell(row, LOG_COLUMN))
        if not text.strip():
            continue
        entries[index + FIRST_DATA_ROW] = text
    return [LogEntry(row=row, text=text) for row, text in sorted(entries.items())]


def normalize_rows(rows: Sequence[Sequence[Any]]) -> SheetState:
    """Shape the raw ``A2:E`` range into the fixed-field sheet state."""

    status_row = rows[0] if rows else None
    state = SheetState(
        a2=_as_text(_cell(status_row, STATUS_COLUMN)),
        b2=_as_text(_cell(status_row, TIME_COLUMN)),
        c2=unwrap_image_formula(_cell(status_row, IMAGE_COLUMN)),
        d2=_as_text(_cell(status_row, ANSWER_COLUMN)),
        e2=_as_text(_cell(status_row, LOG_COLUMN)),
        image_url=resolve_image_value(rows),
        logs=collect_logs(rows),
    )
    LOGGER.debug("Normalized %s rows into %s log entries", len(rows), len(state.logs))
    return state
