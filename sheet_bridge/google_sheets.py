from __future__ import annotations

from typing import Any, Callable, List

import logging
import re
import ssl

from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import Resource
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import HttpRequest
from httplib2 import HttpLib2Error

from .config import SheetsConfig
from .credentials import load_service_account
from .errors import AuthError, ConfigurationError, UpstreamError, ValidationError

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

LOGGER = logging.getLogger(__name__)

STATE_RANGE = "A2:E"

_CELL_REF_RE = re.compile(r"^[A-Za-z]{1,3}[1-9][0-9]{0,6}$")
_TRANSPORT_EXCEPTIONS = (ssl.SSLError, HttpLib2Error, OSError)


def is_valid_cell_ref(cell_ref: object) -> bool:
    return isinstance(cell_ref, str) and bool(_CELL_REF_RE.match(cell_ref.strip()))


def quote_sheet_name(sheet_name: str) -> str:
    """Return ``sheet_name`` quoted according to A1 notation rules."""

    safe = sheet_name.replace("'", "''")
    return f"'{safe}'"


def _describe_http_error(exc: HttpError) -> str:
    status = getattr(exc.resp, "status", None)
    reason = getattr(exc, "reason", None) or str(exc)
    if status is None:
        return reason
    return f"Google Sheets API error {status}: {reason}"


class GoogleSheetsClient:
    """Gateway with exclusive authorized access to the control spreadsheet."""

    def __init__(self, conf: SheetsConfig, *, service: Resource | None = None) -> None:
        self._conf = conf
        self._service = service

    @property
    def sheet_name(self) -> str:
        return self._conf.sheet_name

    def _spreadsheet_id(self) -> str:
        if not self._conf.spreadsheet_id:
            raise ConfigurationError("Missing GOOGLE_SHEET_ID on server")
        return self._conf.spreadsheet_id

    def _service_client(self) -> Resource:
        if self._service is None:
            info = load_service_account(self._conf)
            try:
                creds = Credentials.from_service_account_info(info, scopes=SCOPES)
            except (ValueError, GoogleAuthError):
                raise AuthError("Service account credentials could not be authorized") from None
            self._service = build("sheets", "v4", credentials=creds, cache_discovery=False)
        return self._service

    # Reading -----------------------------------------------------------------
    def read_range(self) -> List[List[Any]]:
        """Load every row from ``A2`` to the end of column ``E`` as unformatted values."""

        spreadsheet_id = self._spreadsheet_id()
        target_range = f"{quote_sheet_name(self._conf.sheet_name)}!{STATE_RANGE}"

        def _build_request() -> HttpRequest:
            service = self._service_client()
            return (
                service.spreadsheets()
                .values()
                .get(
                    spreadsheetId=spreadsheet_id,
                    range=target_range,
                    valueRenderOption="UNFORMATTED_VALUE",
                )
            )

        result = self._execute(_build_request, operation="read state range")
        rows = result.get("values", []) if result else []
        LOGGER.info(
            "Fetched %s rows from sheet %s/%s",
            len(rows),
            spreadsheet_id,
            self._conf.sheet_name,
        )
        return [list(row) for row in rows]

    # Writing -----------------------------------------------------------------
    def write_cell(self, cell_ref: str, value: Any) -> bool:
        """Write ``value`` into a single cell, letting Sheets interpret it as typed."""

        if not is_valid_cell_ref(cell_ref):
            raise ValidationError(f"Invalid cell reference: {cell_ref!r}")

        spreadsheet_id = self._spreadsheet_id()
        target_range = f"{quote_sheet_name(self._conf.sheet_name)}!{cell_ref.strip().upper()}"
        payload = {"values": [["" if value is None else value]]}

        def _update_request() -> HttpRequest:
            service = self._service_client()
            return (
                service.spreadsheets()
                .values()
                .update(
                    spreadsheetId=spreadsheet_id,
                    range=target_range,
                    valueInputOption="USER_ENTERED",
                    body=payload,
                )
            )

        self._execute(_update_request, operation=f"update cell {cell_ref}")
        return True

    # Internal ----------------------------------------------------------------
    def _execute(
        self,
        request_builder: Callable[[], HttpRequest],
        *,
        operation: str,
    ) -> dict:
        """Execute a Sheets API request, mapping library failures onto our error types."""

        try:
            return request_builder().execute()
        except HttpError as exc:
            LOGGER.error("Sheets API %s failed: %s", operation, exc)
            raise UpstreamError(_describe_http_error(exc)) from exc
        except GoogleAuthError:
            LOGGER.error("Sheets API %s failed: credentials were rejected", operation)
            self._service = None
            raise AuthError("Service account credentials could not be authorized") from None
        except _TRANSPORT_EXCEPTIONS as exc:
            LOGGER.error("Sheets API %s failed: %s", operation, exc)
            self._service = None
            raise UpstreamError(f"Google Sheets API unreachable: {exc}") from exc
