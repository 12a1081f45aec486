from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sheet_bridge.config import AppConfig, SheetsConfig


class _FakeRequest:
    def __init__(self, callback: Callable[[], Any]) -> None:
        self._callback = callback

    def execute(self):
        return self._callback()


class _FakeValues:
    def __init__(self, service: "FakeSheetsService") -> None:
        self._service = service

    def get(self, spreadsheetId: str, range: str, valueRenderOption: str | None = None):  # noqa: N803 - API compatibility
        self._service.calls.append(("get", spreadsheetId, range, valueRenderOption))
        return _FakeRequest(lambda: self._service._handle_get(range))

    def update(self, spreadsheetId: str, range: str, valueInputOption: str, body: Dict[str, Any]):  # noqa: N803 - API compatibility
        self._service.calls.append(("update", spreadsheetId, range, valueInputOption, body))
        return _FakeRequest(lambda: self._service._handle_update(range, body))


class _FakeSpreadsheets:
    def __init__(self, service: "FakeSheetsService") -> None:
        self._service = service

    def values(self) -> _FakeValues:
        return _FakeValues(self._service)


class FakeSheetsService:
    """In-memory stand-in for the Sheets v4 resource (rows start at A1)."""

    def __init__(self, rows: Optional[List[List[Any]]] = None, error: Exception | None = None) -> None:
        self.sheet_rows: List[List[Any]] = [list(row) for row in rows] if rows else []
        self.calls: List[tuple] = []
        self.error = error

    def spreadsheets(self) -> _FakeSpreadsheets:
        return _FakeSpreadsheets(self)

    @staticmethod
    def _cell_range(range_spec: str) -> str:
        return range_spec.rsplit("!", 1)[-1]

    def _handle_get(self, range_spec: str) -> Dict[str, Any]:
        if self.error is not None:
            raise self.error
        match = re.match(r"[A-Z]+(\d+)", self._cell_range(range_spec))
        start = int(match.group(1)) - 1 if match else 0
        rows = []
        for row in self.sheet_rows[start:]:
            trimmed = list(row)
            while trimmed and trimmed[-1] in ("", None):
                trimmed.pop()
            rows.append(trimmed)
        while rows and not rows[-1]:
            rows.pop()
        if not rows:
            return {"range": range_spec}
        return {"range": range_spec, "values": rows}

    def _handle_update(self, range_spec: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if self.error is not None:
            raise self.error
        match = re.match(r"([A-Z]+)(\d+)$", self._cell_range(range_spec))
        assert match, range_spec
        column = ord(match.group(1)) - ord("A")
        row = int(match.group(2)) - 1
        value = body["values"][0][0]
        # USER_ENTERED turns digit strings into numbers.
        if isinstance(value, str) and value.isdigit():
            value = int(value)
        while len(self.sheet_rows) <= row:
            self.sheet_rows.append([])
        target = self.sheet_rows[row]
        while len(target) <= column:
            target.append("")
        target[column] = value
        return {"updatedCells": 1}


class ManualScheduler:
    """Scheduler whose ticks are fired explicitly by the test."""

    def __init__(self) -> None:
        self.timers: List["ManualTimer"] = []

    def call_every(self, interval: float, callback: Callable[[], None]) -> "ManualTimer":
        timer = ManualTimer(interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> List["ManualTimer"]:
        return [timer for timer in self.timers if not timer.cancelled]

    def tick(self) -> None:
        for timer in self.active:
            timer.callback()


class ManualTimer:
    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@pytest.fixture
def sheets_config() -> SheetsConfig:
    return SheetsConfig(spreadsheet_id="sheet-123", sheet_name="Login")


@pytest.fixture
def app_config(sheets_config: SheetsConfig) -> AppConfig:
    return AppConfig(sheets=sheets_config)


@pytest.fixture
def manual_scheduler() -> ManualScheduler:
    return ManualScheduler()
