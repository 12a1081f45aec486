from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_SHEET_NAME = "Login_NhutPT"
DEFAULT_PORT = 4000
DEFAULT_POLL_INTERVAL = 2.0

# Environment variable -> (section, field)
_ENV_OVERRIDES: Dict[str, tuple[str, str]] = {
    "GOOGLE_SHEET_ID": ("sheets", "spreadsheet_id"),
    "GOOGLE_SHEET_NAME": ("sheets", "sheet_name"),
    "GOOGLE_SERVICE_ACCOUNT_B64": ("sheets", "service_account_b64"),
    "GOOGLE_SERVICE_ACCOUNT_FILE": ("sheets", "credentials_file"),
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    "SHEET_API_URL": ("client", "base_url"),
    "SHEET_POLL_INTERVAL": ("client", "poll_interval"),
}


class SheetsConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    spreadsheet_id: Optional[str] = Field(
        None, description="ID of the spreadsheet used as the control surface"
    )
    sheet_name: str = Field(DEFAULT_SHEET_NAME, description="Tab name inside the spreadsheet")
    service_account_b64: Optional[str] = Field(
        None,
        description="Base64-encoded service account JSON",
        repr=False,
    )
    credentials_file: Optional[Path] = Field(
        None, description="Path to the Google service account JSON credentials"
    )

    @field_validator("spreadsheet_id", "service_account_b64")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("sheet_name")
    @classmethod
    def _default_sheet_name(cls, value: str) -> str:
        return value.strip() or DEFAULT_SHEET_NAME

    @field_validator("credentials_file")
    @classmethod
    def _expand_credentials_path(cls, value: Optional[Path]) -> Optional[Path]:
        if value is None:
            return None
        return value.expanduser().resolve()

    @property
    def has_credentials(self) -> bool:
        return bool(self.service_account_b64 or self.credentials_file)


class ServerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = Field("0.0.0.0", description="Interface the sheet API binds to")
    port: int = Field(DEFAULT_PORT, gt=0, lt=65536, description="Port the sheet API listens on")
    cors_origins: str = Field("*", description="Origins allowed to call the sheet API")


class ClientConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: Optional[str] = Field(
        None, description="URL of the sheet API endpoint used by the console"
    )
    poll_interval: float = Field(
        DEFAULT_POLL_INTERVAL, gt=0, description="Seconds between two poll cycles"
    )
    request_timeout: float = Field(15.0, gt=0, description="Timeout in seconds for API requests")

    @field_validator("base_url")
    @classmethod
    def _blank_url_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    sheets: SheetsConfig = Field(default_factory=SheetsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)


def _apply_env_overrides(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    merged = {section: dict(values or {}) for section, values in data.items()}
    for env_name, (section, field) in _ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        merged.setdefault(section, {})[field] = value
    return merged


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Build the application configuration from an optional YAML file and the environment."""

    data: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path).expanduser().resolve()
        if not config_path.exists():
            msg = f"Configuration file not found: {config_path}"
            raise FileNotFoundError(msg)

        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)

        if data is None:
            msg = f"Configuration file is empty: {config_path}"
            raise ValueError(msg)
        if not isinstance(data, dict):
            msg = f"Configuration file must contain a mapping: {config_path}"
            raise ValueError(msg)

    merged = _apply_env_overrides(data, os.environ if environ is None else environ)
    try:
        return AppConfig.model_validate(merged)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
