"""Tolerant parsing of the ``get-state`` payload.

Older deployments of the sheet API (and sheets wired to them) emitted the log in
several shapes: a list of strings, a list of ``{row|index, text|value}``
objects, one multiline string, or flat ``E<N>`` keys. Each shape has its own
extraction strategy. Strategies run in ``LOG_STRATEGIES`` order and later ones
overwrite rows assigned by earlier ones, so explicitly named fields (``log``,
``logs``) win over lettered cells.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .models import ClientSheetState, LogEntry

FIRST_LOG_ROW = 2

LogStrategy = Callable[[Mapping[str, Any]], Iterable[Tuple[int, Any]]]

_LETTERED_LOG_KEY = re.compile(r"^E(\d+)$", re.IGNORECASE)
_LINE_SPLIT = re.compile(r"\r?\n")


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return int(number) if number.is_integer() else None
    return None


def _string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _row_for_item(item: Mapping[str, Any], position: int) -> int:
    row = _as_int(item.get("row"))
    if row is not None and row > 0:
        return row
    index = _as_int(item.get("index"))
    if index is not None:
        return index + FIRST_LOG_ROW
    return position + FIRST_LOG_ROW


def _from_array(items: List[Any]) -> Iterator[Tuple[int, Any]]:
    for position, item in enumerate(items):
        if isinstance(item, str):
            yield position + FIRST_LOG_ROW, item
        elif isinstance(item, Mapping) and ("row" in item or "index" in item or "text" in item):
            text = _string(item.get("text"))
            if text is None:
                text = _string(item.get("value"))
            if text:
                yield _row_for_item(item, position), text


def lettered_cells(raw: Mapping[str, Any]) -> Iterator[Tuple[int, Any]]:
    """``{"E2": "...", "E3": "..."}``"""
    for key, value in raw.items():
        match = _LETTERED_LOG_KEY.match(str(key))
        if match:
            yield int(match.group(1)), value


def multiline_log(raw: Mapping[str, Any]) -> Iterator[Tuple[int, Any]]:
    """``{"log": "first\\nsecond"}``"""
    text = raw.get("log")
    if not isinstance(text, str):
        return
    lines = [line.strip() for line in _LINE_SPLIT.split(text)]
    for offset, line in enumerate(line for line in lines if line):
        yield offset + FIRST_LOG_ROW, line


def log_array(raw: Mapping[str, Any]) -> Iterator[Tuple[int, Any]]:
    """``{"log": ["first", {"row": 3, "text": "second"}]}``"""
    items = raw.get("log")
    if isinstance(items, list):
        yield from _from_array(items)


def logs_array(raw: Mapping[str, Any]) -> Iterator[Tuple[int, Any]]:
    """``{"logs": [{"row": 2, "text": "first"}]}``, the current shape."""
    items = raw.get("logs")
    if isinstance(items, list):
        yield from _from_array(items)


# Lowest priority first.
LOG_STRATEGIES: Tuple[LogStrategy, ...] = (
    lettered_cells,
    multiline_log,
    log_array,
    logs_array,
)


def collect_logs(
    raw: Mapping[str, Any],
    strategies: Iterable[LogStrategy] = LOG_STRATEGIES,
) -> List[LogEntry]:
    """Merge every strategy's output into one sorted, de-duplicated log."""

    entries: Dict[int, str] = {}
    for strategy in strategies:
        for row, value in strategy(raw):
            if isinstance(value, str) and value.strip():
                entries[row] = value
    return [LogEntry(row=row, text=text) for row, text in sorted(entries.items())]


def _first_string(raw: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = _string(raw.get(key))
        if value is not None:
            return value
    return None


def parse_state(data: Any) -> ClientSheetState:
    """Re-derive every console field from whatever shape the API returned."""

    if isinstance(data, list):
        raw: Mapping[str, Any] = {"logs": data}
    elif isinstance(data, Mapping):
        raw = data
    else:
        raw = {}

    return ClientSheetState(
        action=_first_string(raw, "action", "A2"),
        time=_first_string(raw, "time", "B2"),
        image_url=_first_string(raw, "imageUrl", "C3", "C2"),
        answer=_first_string(raw, "answer", "D2"),
        log=_first_string(raw, "log", "E2"),
        logs=collect_logs(raw),
    )
