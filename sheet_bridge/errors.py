from __future__ import annotations


class SheetBridgeError(Exception):
    """Base error for every failure raised by this package."""


class ConfigurationError(SheetBridgeError):
    """Raised when a required setting (sheet id, API URL) is missing."""


class AuthError(SheetBridgeError):
    """Raised when service account credentials are missing or unusable."""


class ValidationError(SheetBridgeError):
    """Raised when client input is malformed (e.g. a bad cell reference)."""


class UpstreamError(SheetBridgeError):
    """Raised when the Google Sheets API call fails."""


class NetworkError(SheetBridgeError):
    """Raised when the sheet API is unreachable or answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteError(SheetBridgeError):
    """Raised when the sheet API reports ``success: false``."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
