"""Configuration loader.

Process settings come from environment variables and `.env`; the
monitoring parameters (SKU, stores, recipient, email settings) come from
a JSON file read once at startup.
"""

from __future__ import annotations

import json
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Tuple

from dotenv import load_dotenv

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


# ---- Process settings --------------------------------------------------------

# Path of the JSON configuration file, relative to the working directory.
CONFIG_PATH: str = _get_env("CONFIG_PATH", "config.json")

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO")

# Timeout for the stocktrack.ca request (seconds).
HTTP_TIMEOUT_SECONDS: int = _parse_int(_get_env("HTTP_TIMEOUT_SECONDS"), 20)

# Total attempts per availability request. 1 means no retry.
FETCH_ATTEMPTS: int = max(1, _parse_int(_get_env("FETCH_ATTEMPTS"), 1))

# Timeout for the SMTP conversation or the sendmail process (seconds).
MAIL_TIMEOUT_SECONDS: int = _parse_int(_get_env("MAIL_TIMEOUT_SECONDS"), 30)

PROVIDERS = ("smtp", "console")
TRANSPORTS = ("smtp", "sendmail")


class ConfigLoadError(Exception):
    """Raised when the configuration file is missing, unreadable or invalid."""


@dataclass(frozen=True)
class EmailConfig:
    provider: str = "console"
    host: Optional[str] = None
    port: Optional[int] = None
    secure: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    from_email: Optional[str] = None
    from_name: Optional[str] = None
    # "smtp" talks to host:port directly, "sendmail" hands off to the local relay.
    transport: str = "smtp"
    sendmail_path: str = shutil.which("sendmail") or "/usr/sbin/sendmail"


@dataclass(frozen=True)
class Config:
    email: str
    check_interval_minutes: int
    stores: Tuple[str, ...]
    sku: str
    email_config: EmailConfig

    @property
    def check_interval_seconds(self) -> int:
        return self.check_interval_minutes * 60


# ---- Field helpers -----------------------------------------------------------

def _require_str(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigLoadError(f"'{key}' must be a non-empty string")
    return value


def _optional_str(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigLoadError(f"'emailConfig.{key}' must be a string")
    return value or None


def _optional_bool(data: dict, key: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ConfigLoadError(f"'emailConfig.{key}' must be true or false")
    return value


def _as_int(value: Any, key: str) -> int:
    # bool is an int subclass; JSON true/false is never a valid number here.
    if isinstance(value, bool):
        raise ConfigLoadError(f"'{key}' must be an integer")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if not isinstance(value, int):
        raise ConfigLoadError(f"'{key}' must be an integer")
    return value


def _parse_stores(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, list) or not value:
        raise ConfigLoadError("'stores' must be a non-empty list of store ids")
    for store in value:
        if not isinstance(store, str) or not store.strip():
            raise ConfigLoadError(f"invalid store id in 'stores': {store!r}")
    return tuple(value)


def _parse_email_config(value: Any) -> EmailConfig:
    if value is None:
        value = {}
    if not isinstance(value, dict):
        raise ConfigLoadError("'emailConfig' must be an object")

    provider = value.get("provider", "console")
    if provider not in PROVIDERS:
        raise ConfigLoadError(f"'emailConfig.provider' must be one of {PROVIDERS}, got {provider!r}")

    transport = value.get("transport", "smtp")
    if transport not in TRANSPORTS:
        raise ConfigLoadError(f"'emailConfig.transport' must be one of {TRANSPORTS}, got {transport!r}")

    port = value.get("port")
    if port is not None:
        port = _as_int(port, "emailConfig.port")

    password = _optional_str(value, "password") or _get_env("SMTP_PASSWORD")

    kwargs = {}
    sendmail_path = _optional_str(value, "sendmailPath")
    if sendmail_path:
        kwargs["sendmail_path"] = sendmail_path

    return EmailConfig(
        provider=provider,
        host=_optional_str(value, "host"),
        port=port,
        secure=_optional_bool(value, "secure"),
        username=_optional_str(value, "username"),
        password=password,
        from_email=_optional_str(value, "fromEmail"),
        from_name=_optional_str(value, "fromName"),
        transport=transport,
        **kwargs,
    )


def parse_config(data: Any) -> Config:
    """Build a Config from an already-decoded JSON document."""
    if not isinstance(data, dict):
        raise ConfigLoadError("configuration root must be a JSON object")

    interval = _as_int(data.get("checkIntervalMinutes"), "checkIntervalMinutes")
    if interval <= 0:
        raise ConfigLoadError("'checkIntervalMinutes' must be positive")

    return Config(
        email=_require_str(data, "email"),
        check_interval_minutes=interval,
        stores=_parse_stores(data.get("stores")),
        sku=_require_str(data, "sku"),
        email_config=_parse_email_config(data.get("emailConfig")),
    )


def load_config(path: str | os.PathLike = CONFIG_PATH) -> Config:
    """Read and validate the JSON configuration file.

    Raises ConfigLoadError on any problem; the caller treats it as fatal.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigLoadError(f"cannot read {path}: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigLoadError(f"{path} is not valid JSON: {e}") from e
    return parse_config(data)


__all__ = [
    "CONFIG_PATH",
    "LOG_LEVEL",
    "HTTP_TIMEOUT_SECONDS",
    "FETCH_ATTEMPTS",
    "MAIL_TIMEOUT_SECONDS",
    "ConfigLoadError",
    "EmailConfig",
    "Config",
    "parse_config",
    "load_config",
]
