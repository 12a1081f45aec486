from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

from .client import SheetClient, is_valid_answer
from .config import DEFAULT_POLL_INTERVAL
from .errors import SheetBridgeError
from .models import LogEntry, PollSession
from .polling import PollingController, Scheduler

LOGGER = logging.getLogger(__name__)

IMAGE_PLACEHOLDER = "No image available."
LOG_LOADING = "Loading log..."
LOG_EMPTY = "No log entries yet."
ANSWER_LENGTH = 3

_NON_DIGITS = re.compile(r"[^0-9]")


@dataclass(frozen=True, slots=True)
class Feedback:
    kind: str  # "success" | "error"
    message: str


def display_image_source(value: Optional[str]) -> Optional[str]:
    """Return something an image widget can load, or ``None`` for the placeholder."""

    if not value:
        return None
    if value.startswith(("http://", "https://", "data:")):
        return value
    return f"data:image/png;base64,{value}"


def sanitize_answer(value: str) -> str:
    return _NON_DIGITS.sub("", value or "")[:ANSWER_LENGTH]


class Screen:
    """View model for the single operator screen.

    Creating a screen mounts it: the polling controller lives exactly as long
    as the screen and is released by :meth:`close`.
    """

    def __init__(
        self,
        client: SheetClient,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        scheduler: Scheduler | None = None,
        on_render: Callable[["Screen"], None] | None = None,
    ) -> None:
        self._client = client
        self._on_render = on_render
        self._lock = threading.RLock()
        self.answer = ""
        self.running = False
        self.submitting = False
        self.feedback: Optional[Feedback] = None
        self.error_dismissed = False
        self.logs: List[LogEntry] = []
        self._session = PollSession()
        self.controller = PollingController(
            client.fetch_state,
            interval=interval,
            scheduler=scheduler,
            on_change=self._on_session,
        )

    # Lifecycle -----------------------------------------------------------------
    def close(self) -> None:
        self.controller.stop_polling()

    def __enter__(self) -> "Screen":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _on_session(self, session: PollSession) -> None:
        with self._lock:
            if session.error != self._session.error:
                self.error_dismissed = False
            self._session = session
            if session.state is not None:
                self.logs = list(session.state.logs)
        self._render()

    def _render(self) -> None:
        if self._on_render is not None:
            self._on_render(self)

    # Derived view state --------------------------------------------------------
    @property
    def session(self) -> PollSession:
        with self._lock:
            return self._session

    @property
    def image_source(self) -> Optional[str]:
        state = self.session.state
        return display_image_source(state.image_url if state else None)

    @property
    def error(self) -> Optional[str]:
        if self.error_dismissed:
            return None
        return self.session.error

    @property
    def run_disabled(self) -> bool:
        return self.running

    @property
    def submit_disabled(self) -> bool:
        return self.submitting or len(self.answer) != ANSWER_LENGTH

    def log_placeholder(self) -> Optional[str]:
        if self.logs:
            return None
        return LOG_LOADING if self.session.loading else LOG_EMPTY

    # Actions -------------------------------------------------------------------
    def set_answer(self, value: str) -> str:
        self.answer = sanitize_answer(value)
        return self.answer

    def dismiss(self) -> None:
        self.feedback = None
        self.error_dismissed = True
        self._render()

    def handle_run(self) -> None:
        if self.running:
            return
        self.feedback = None
        self.running = True
        self._render()
        try:
            self._client.trigger_run()
            self.feedback = Feedback("success", "Set A2 = RUN. Please check the Google Sheet.")
            self.controller.start_polling()
        except SheetBridgeError as exc:
            LOGGER.error("RUN LOGIN failed: %s", exc)
            self.feedback = Feedback("error", str(exc))
            self.controller.stop_polling()
        finally:
            self.running = False
            self._render()

    def handle_submit(self) -> None:
        trimmed = self.answer.strip()
        if not is_valid_answer(trimmed):
            self.feedback = Feedback("error", "Please enter exactly 3 digits before sending.")
            self._render()
            return

        self.feedback = None
        self.submitting = True
        self._render()
        try:
            self._client.submit_answer(trimmed)
            self.feedback = Feedback("success", "Captcha code saved to cell D2.")
            self.answer = ""
            self.controller.reload()
        except SheetBridgeError as exc:
            LOGGER.error("Submitting captcha failed: %s", exc)
            self.feedback = Feedback("error", str(exc))
            self.controller.stop_polling()
        finally:
            self.submitting = False
            self._render()


def render_text(screen: Screen, *, max_log_lines: int = 15) -> str:
    """Render the screen as plain text, the log scrolled to its newest lines."""

    session = screen.session
    lines: List[str] = ["=== Auto Login ==="]

    if screen.feedback is not None:
        tag = "OK" if screen.feedback.kind == "success" else "ERROR"
        lines.append(f"[{tag}] {screen.feedback.message}")
    if screen.error:
        lines.append(f"[ERROR] {screen.error}")

    status = ""
    if screen.running:
        status = " (Running...)"
    elif session.polling:
        status = " (Polling...)"
    lines.append(f"-- Control Panel{status}")
    lines.append("   [run] " + ("Sending..." if screen.run_disabled else "RUN LOGIN"))

    lines.append("-- Captcha Image")
    image = screen.image_source
    if image and len(image) > 72:
        image = image[:69] + "..."
    lines.append(f"   {image or IMAGE_PLACEHOLDER}")

    lines.append("-- Enter Captcha")
    send_hint = "disabled" if screen.submit_disabled else "ready"
    lines.append(f"   [{screen.answer or '000'}] send: {send_hint}")

    updating = " (Updating...)" if session.loading else ""
    lines.append(f"-- Log{updating}")
    placeholder = screen.log_placeholder()
    if placeholder is not None:
        lines.append(f"   {placeholder}")
    else:
        for entry in screen.logs[-max_log_lines:]:
            lines.append(f"   {entry.row:>4} | {entry.text}")

    return "\n".join(lines)
