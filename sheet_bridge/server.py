"""
Flask backend exposing the control sheet to the operator console.

POST /sheet   {"action": "get-state"} | {"action": "update-cell", "cell": "A2", "value": "RUN"}
GET  /health  liveness probe, never touches the sheet
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from .config import AppConfig
from .errors import SheetBridgeError, ValidationError
from .google_sheets import GoogleSheetsClient
from .normalizer import normalize_rows

LOGGER = logging.getLogger(__name__)

GET_STATE = "get-state"
UPDATE_CELL = "update-cell"

_SCALAR_TYPES = (str, int, float, bool)


def _error(message: str, status: int) -> Tuple[Response, int]:
    return jsonify({"success": False, "error": message}), status


def _value_preview(value: Any) -> Any:
    if isinstance(value, str):
        return value[:20]
    return value


def create_app(config: AppConfig, gateway: GoogleSheetsClient | None = None) -> Flask:
    """Build the sheet API around a gateway constructed from ``config``."""

    app = Flask(__name__)
    app.json.sort_keys = False
    CORS(app, origins=config.server.cors_origins)

    sheets = gateway or GoogleSheetsClient(config.sheets)

    if not config.sheets.spreadsheet_id:
        LOGGER.warning(
            "Missing GOOGLE_SHEET_ID. Set it in your environment before starting the API server."
        )
    if not config.sheets.has_credentials and gateway is None:
        LOGGER.warning(
            "Missing GOOGLE_SERVICE_ACCOUNT_B64. Set it to the base64-encoded service account JSON."
        )

    def handle_get_state() -> Tuple[Response, int]:
        LOGGER.info("Incoming get-state request")
        rows = sheets.read_range()
        state = normalize_rows(rows)
        return jsonify({"success": True, "data": state.to_payload()}), 200

    def handle_update_cell(payload: Dict[str, Any]) -> Tuple[Response, int]:
        cell = payload.get("cell")
        value = payload.get("value")
        LOGGER.info(
            "Incoming update-cell request (cell=%s, value=%r)", cell, _value_preview(value)
        )
        if not isinstance(cell, str):
            raise ValidationError("Missing cell field (e.g., 'A2')")
        if value is None:
            value = ""
        if not isinstance(value, _SCALAR_TYPES):
            raise ValidationError("Field 'value' must be a string, number or boolean")
        sheets.write_cell(cell, value)
        return jsonify({"success": True}), 200

    @app.route("/sheet", methods=["POST"])
    def sheet():
        """
        POST /sheet
        Dispatches on the ``action`` field of the JSON body.
        """
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            payload = {}
        action = payload.get("action")
        LOGGER.info("Received /sheet request (action=%s)", action)

        try:
            if action == GET_STATE:
                return handle_get_state()
            if action == UPDATE_CELL:
                return handle_update_cell(payload)
        except ValidationError as exc:
            LOGGER.warning("%s rejected: %s", action, exc)
            return _error(str(exc), 400)
        except SheetBridgeError as exc:
            LOGGER.error("%s error: %s", action, exc)
            return _error(str(exc), 500)
        except Exception:
            LOGGER.exception("%s failed unexpectedly", action)
            return _error("Unknown error when accessing sheet", 500)

        return _error("Unknown action", 400)

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"ok": True})

    return app
