"""Decode and validate Google service account credentials.

Credentials arrive either as a base64-encoded JSON blob (the
``GOOGLE_SERVICE_ACCOUNT_B64`` environment variable) or as a JSON file on
disk. Error messages raised from here never include the payload itself.
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path
from typing import Dict, Iterable, Mapping

from .config import SheetsConfig
from .errors import AuthError

__all__ = [
    "REQUIRED_FIELDS",
    "decode_service_account",
    "load_service_account_file",
    "load_service_account",
]

REQUIRED_FIELDS: Iterable[str] = ("client_email", "private_key")


def _normalise_private_key(key: str) -> str:
    key = key.replace("\r\n", "\n").replace("\r", "\n")
    key = key.replace("\\n", "\n")
    if not key.endswith("\n"):
        key += "\n"
    return key


def _parse_json(payload_text: str, *, source: str) -> Mapping[str, object]:
    payload_text = payload_text.lstrip("\ufeff").strip()
    if not payload_text:
        raise AuthError(f"Service account JSON from {source} is empty")

    try:
        payload = json.loads(payload_text)
    except json.JSONDecodeError as exc:
        raise AuthError(f"Service account JSON from {source} could not be parsed: {exc.msg}") from None

    if not isinstance(payload, dict):
        raise AuthError(f"Service account JSON from {source} must be an object")
    return payload


def _validate_payload(payload: Mapping[str, object]) -> Dict[str, object]:
    data: Dict[str, object] = dict(payload)
    missing = [
        field
        for field in REQUIRED_FIELDS
        if not isinstance(data.get(field), str) or not str(data.get(field)).strip()
    ]
    if missing:
        raise AuthError(f"Service account JSON missing fields: {', '.join(sorted(missing))}")

    data["private_key"] = _normalise_private_key(str(data["private_key"]))
    # google-auth insists on the token endpoint being present.
    data.setdefault("token_uri", "https://oauth2.googleapis.com/token")
    data.setdefault("type", "service_account")
    return data


def decode_service_account(encoded: str) -> Dict[str, object]:
    """Return validated service account data from a base64-encoded JSON string."""

    if not encoded or not encoded.strip():
        raise AuthError("Missing GOOGLE_SERVICE_ACCOUNT_B64")

    try:
        raw = base64.b64decode(encoded.strip(), validate=False)
        text = raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise AuthError("GOOGLE_SERVICE_ACCOUNT_B64 is not valid base64-encoded UTF-8") from None

    return _validate_payload(_parse_json(text, source="GOOGLE_SERVICE_ACCOUNT_B64"))


def load_service_account_file(path: Path) -> Dict[str, object]:
    """Return validated service account data read from ``path``."""

    try:
        with path.open("r", encoding="utf-8-sig") as handle:
            raw = handle.read()
    except OSError as exc:
        raise AuthError(f"Service account file could not be read: {exc.strerror or exc}") from None

    return _validate_payload(_parse_json(raw, source=path.name))


def load_service_account(conf: SheetsConfig) -> Dict[str, object]:
    """Load credentials from the configured source, preferring the base64 variable."""

    if conf.service_account_b64:
        return decode_service_account(conf.service_account_b64)
    if conf.credentials_file is not None:
        return load_service_account_file(conf.credentials_file)
    raise AuthError("Missing GOOGLE_SERVICE_ACCOUNT_B64")
