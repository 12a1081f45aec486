from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

import requests

from .config import ClientConfig
from .errors import ConfigurationError, NetworkError, RemoteError
from .log_shapes import parse_state
from .models import ClientSheetState

LOGGER = logging.getLogger(__name__)

STATUS_CELL = "A2"
ANSWER_CELL = "D2"
RUN_COMMAND = "RUN"

_ANSWER_RE = re.compile(r"[0-9]{3}")


def is_valid_answer(answer: str) -> bool:
    """Return ``True`` when ``answer`` is exactly three ASCII digits."""

    return isinstance(answer, str) and bool(_ANSWER_RE.fullmatch(answer))


class SheetClient:
    """Console-side wrapper around the sheet API."""

    def __init__(
        self,
        base_url: Optional[str],
        *,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, conf: ClientConfig, **kwargs: Any) -> "SheetClient":
        return cls(conf.base_url, timeout=conf.request_timeout, **kwargs)

    def _url(self) -> str:
        if not self._base_url:
            raise ConfigurationError(
                "Missing environment variable SHEET_API_URL pointing to the sheet API endpoint."
            )
        return self._base_url

    def _request(self, action: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = self._url()
        body: Dict[str, Any] = {"action": action, **(payload or {})}
        LOGGER.info("Sheet request %s -> %s", action, url)

        try:
            response = self._session.post(url, json=body, timeout=self._timeout)
        except requests.RequestException as exc:
            LOGGER.error("Sheet request %s failed: %s", action, exc)
            raise NetworkError(f"Sheet request failed: {exc}") from exc

        if not response.ok:
            LOGGER.error(
                "Sheet request %s failed with status %s %s",
                action,
                response.status_code,
                response.reason,
            )
            raise NetworkError(
                f"Sheet request failed: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        try:
            envelope = response.json()
        except ValueError:
            envelope = {}
        if not isinstance(envelope, dict):
            envelope = {"data": envelope}

        if envelope.get("success") is False:
            LOGGER.error("Sheet response error for %s: %s", action, envelope.get("error"))
            error = envelope.get("error")
            raise RemoteError(
                error if isinstance(error, str) else "Sheet request returned an error."
            )

        LOGGER.debug("Sheet response success for %s (keys=%s)", action, sorted(envelope))
        data = envelope.get("data")
        return envelope if data is None else data

    # Operations ----------------------------------------------------------------
    def fetch_state(self) -> ClientSheetState:
        return parse_state(self._request("get-state"))

    def update_cell(self, cell: str, value: Any) -> None:
        self._request("update-cell", {"cell": cell, "value": value})

    def trigger_run(self) -> None:
        self.update_cell(STATUS_CELL, RUN_COMMAND)

    def submit_answer(self, answer: str) -> None:
        """Write ``answer`` into D2.

        The caller is responsible for checking :func:`is_valid_answer` first;
        no validation happens here.
        """
        self.update_cell(ANSWER_CELL, answer)
