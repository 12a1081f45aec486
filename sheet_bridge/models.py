from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True, slots=True)
class LogEntry:
    """A single non-empty log line and the spreadsheet row it came from."""

    row: int  # spreadsheet 1-based row number, data starts at 2
    text: str

    def to_payload(self) -> Dict[str, Any]:
        return {"row": self.row, "text": self.text}


@dataclass(slots=True)
class SheetState:
    """Normalized control row as served by the sheet API."""

    a2: str = ""
    b2: str = ""
    c2: Any = ""
    d2: str = ""
    e2: str = ""
    image_url: Any = ""
    logs: List[LogEntry] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "A2": self.a2,
            "B2": self.b2,
            "C2": self.c2,
            "C3": self.image_url,
            "imageUrl": self.image_url,
            "D2": self.d2,
            "E2": self.e2,
            "logs": [entry.to_payload() for entry in self.logs],
        }


@dataclass(slots=True)
class ClientSheetState:
    """Sheet state as seen by the console after defensive re-normalization."""

    action: Optional[str] = None
    time: Optional[str] = None
    image_url: Optional[str] = None
    answer: Optional[str] = None
    log: Optional[str] = None
    logs: List[LogEntry] = field(default_factory=list)

    @property
    def is_running(self) -> bool:
        return (self.action or "").strip().upper() == "RUN"


@dataclass(slots=True)
class PollSession:
    """Ephemeral in-memory state owned by a polling controller."""

    state: Optional[ClientSheetState] = None
    polling: bool = False
    loading: bool = False
    error: Optional[str] = None
