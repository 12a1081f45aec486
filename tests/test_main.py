from __future__ import annotations

import io
from typing import Iterator, List

from conftest import ManualScheduler
from sheet_bridge.main import CONSOLE_HELP, main, run_console
from sheet_bridge.models import ClientSheetState
from sheet_bridge.screen import Screen


class _RecordingClient:
    def __init__(self) -> None:
        self.writes: List[tuple[str, str]] = []

    def fetch_state(self) -> ClientSheetState:
        return ClientSheetState(action="RUN")

    def trigger_run(self) -> None:
        self.writes.append(("A2", "RUN"))

    def submit_answer(self, answer: str) -> None:
        self.writes.append(("D2", answer))


def _scripted(lines: List[str]):
    feed: Iterator[str] = iter(lines)

    def _read(prompt: str) -> str:
        try:
            return next(feed)
        except StopIteration:
            raise EOFError from None

    return _read


def test_console_commands_drive_the_screen() -> None:
    client = _RecordingClient()
    scheduler = ManualScheduler()
    out = io.StringIO()
    screen = Screen(client, scheduler=scheduler)  # type: ignore[arg-type]

    code = run_console(screen, read_line=_scripted(["run", "send 12x3", "stop", "help", "quit", "run"]), out=out)

    assert code == 0
    assert client.writes == [("A2", "RUN"), ("D2", "123")]
    assert scheduler.active == []
    assert out.getvalue().count(CONSOLE_HELP) == 2


def test_console_stops_at_end_of_input() -> None:
    client = _RecordingClient()
    screen = Screen(client, scheduler=ManualScheduler())  # type: ignore[arg-type]

    assert run_console(screen, read_line=_scripted([]), out=io.StringIO()) == 0
    assert client.writes == []


def test_console_without_api_url_exits_early(monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SHEET_API_URL", raising=False)

    assert main(["console"]) == 2
