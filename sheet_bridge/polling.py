"""Timer-driven polling of the sheet state.

The controller is a two-state machine (idle / polling). ``start_polling`` is
the only way into the polling state; a fetched status other than ``RUN``, a
fetch error, or ``stop_polling`` lead back to idle. Poll cycles never overlap:
a tick that fires while a fetch is still in flight is skipped.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Callable, Optional, Protocol

from .config import DEFAULT_POLL_INTERVAL
from .models import ClientSheetState, PollSession

LOGGER = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle: ...


class _RepeatingTimer:
    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self._interval = interval
        self._callback = callback
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name="sheet-poll", daemon=True)

    def start(self) -> "_RepeatingTimer":
        self._thread.start()
        return self

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            try:
                self._callback()
            except Exception:
                LOGGER.exception("Poll tick failed")

    def cancel(self) -> None:
        self._stopped.set()


class ThreadingScheduler:
    """Runs callbacks on a background thread every ``interval`` seconds."""

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        return _RepeatingTimer(interval, callback).start()


Fetcher = Callable[[], ClientSheetState]
Listener = Callable[[PollSession], None]


class PollingController:
    def __init__(
        self,
        fetch: Fetcher,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        scheduler: Scheduler | None = None,
        on_change: Listener | None = None,
    ) -> None:
        self._fetch = fetch
        self._interval = interval
        self._scheduler = scheduler or ThreadingScheduler()
        self._on_change = on_change
        self._session = PollSession()
        self._timer: Optional[TimerHandle] = None
        self._generation = 0
        self._lock = threading.RLock()
        self._fetch_lock = threading.Lock()

    # State -------------------------------------------------------------------
    @property
    def session(self) -> PollSession:
        """A snapshot of the current session."""
        with self._lock:
            return replace(self._session)

    @property
    def polling(self) -> bool:
        with self._lock:
            return self._session.polling

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.session)

    # Transitions -------------------------------------------------------------
    def start_polling(self) -> None:
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            generation = self._generation
            self._session.polling = True
            self._timer = self._scheduler.call_every(
                self._interval, lambda: self._poll(generation)
            )
        LOGGER.info("Polling started (every %.1fs)", self._interval)
        self._notify()
        self._poll(generation)

    def stop_polling(self) -> None:
        with self._lock:
            if self._timer is None and not self._session.polling:
                return
            self._stop_locked()
        LOGGER.info("Polling stopped")
        self._notify()

    def close(self) -> None:
        self.stop_polling()

    def __enter__(self) -> "PollingController":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _stop_locked(self) -> None:
        self._cancel_timer()
        self._generation += 1
        self._session.polling = False

    # Poll cycles -------------------------------------------------------------
    def _poll(self, generation: int) -> None:
        if not self._fetch_lock.acquire(blocking=False):
            LOGGER.debug("Skipping poll tick; previous fetch still in flight")
            return
        try:
            with self._lock:
                if generation != self._generation:
                    return
                self._begin_fetch_locked()
            self._notify()
            self._run_fetch(generation)
        finally:
            self._fetch_lock.release()

    def reload(self) -> None:
        """Fetch once and apply the result without starting the timer."""

        with self._fetch_lock:
            with self._lock:
                self._begin_fetch_locked()
            self._notify()
            self._run_fetch(None)

    def _begin_fetch_locked(self) -> None:
        self._session.loading = True
        self._session.error = None

    def _run_fetch(self, generation: Optional[int]) -> None:
        try:
            state = self._fetch()
        except Exception as exc:
            LOGGER.error("Fetching sheet state failed: %s", exc)
            with self._lock:
                self._session.loading = False
                if generation is None or generation == self._generation:
                    self._session.error = str(exc)
                    self._stop_locked()
            self._notify()
            return

        with self._lock:
            self._session.loading = False
            if generation is not None and generation != self._generation:
                LOGGER.debug("Discarding sheet state from a stopped poll session")
            else:
                self._session.state = state
                if not state.is_running:
                    if self._session.polling:
                        LOGGER.info("Status is %r; polling finished", state.action)
                    self._stop_locked()
        self._notify()
