"""Loading of the updater settings from a JSON file and the environment."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from ynab_updater.errors import ConfigError

LOGGER = logging.getLogger(__name__)

# Get project root (2 levels up from this file: src/ynab_updater/config.py -> root)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

CONFIG_ENV_VAR = "YNAB_CONFIG"
DEFAULT_REDIRECT_PORT = 9999
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_KNOWN_KEYS = (
    "ynab_bearer_token",
    "ynab_budget_id",
    "ynab_reconciliation_payee_id",
    "pushover_api_key",
    "pushover_user_key",
    "saxo_client_id",
    "saxo_client_secret",
    "saxo_redirect_uri",
    "saxo_access_token_path",
    "saxo_redirect_host",
    "saxo_redirect_port",
    "saxo_redirect_timeout",
    "ynab_saxo_account_id",
    "ynab_saxo_reconciliation_payee_id",
    "hl_username",
    "hl_date_of_birth",
    "hl_password",
    "hl_secure_numbers",
    "ynab_hl_account_id",
    "ynab_hl_reconciliation_payee_id",
    "log_level",
)


@dataclass(frozen=True)
class YnabSettings:
    bearer_token: str
    budget_id: str
    reconciliation_payee_id: Optional[str] = None


@dataclass(frozen=True)
class PushoverSettings:
    api_key: str
    user_key: str


@dataclass(frozen=True)
class SaxoSettings:
    client_id: str
    client_secret: str
    redirect_uri: str
    access_token_path: Path
    account_id: str
    redirect_host: str = "127.0.0.1"
    redirect_port: int = DEFAULT_REDIRECT_PORT
    redirect_timeout: Optional[float] = None
    reconciliation_payee_id: Optional[str] = None

    @property
    def redirect_bind_addr(self) -> Tuple[str, int]:
        return (self.redirect_host, self.redirect_port)


@dataclass(frozen=True)
class HLSettings:
    username: str
    date_of_birth: str
    password: str
    secure_numbers: Tuple[str, ...]
    account_id: str
    reconciliation_payee_id: Optional[str] = None


@dataclass(frozen=True)
class Settings:
    """Everything a run needs, built once at startup and passed around explicitly."""

    ynab: YnabSettings
    pushover: PushoverSettings
    saxo: Optional[SaxoSettings] = None
    hl: Optional[HLSettings] = None
    log_level: str = "INFO"


def load_config(path: str | Path) -> Dict:
    """Read the raw JSON config file."""

    try:
        with open(path, "r", encoding="utf-8") as config_file:
            payload = json.load(config_file)
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return payload


def resolve_config_path(path: str | Path | None = None, environ: Mapping[str, str] | None = None) -> Path:
    environ = os.environ if environ is None else environ
    if path:
        return Path(path)
    config_env = environ.get(CONFIG_ENV_VAR)
    return Path(config_env) if config_env else PROJECT_ROOT / "config" / "config.json"


def load_settings(path: str | Path | None = None, environ: Mapping[str, str] | None = None) -> Settings:
    """Load settings from the config file, letting environment variables win.

    Every key may be overridden by an environment variable with the same name
    in upper case, e.g. ``YNAB_BEARER_TOKEN`` for ``ynab_bearer_token``.
    """

    environ = os.environ if environ is None else environ
    config_path = resolve_config_path(path, environ)
    raw = load_config(config_path)
    LOGGER.debug("Loaded config from %s", config_path)
    return build_settings(_apply_env_overrides(raw, environ), environ)


def build_settings(raw: Mapping[str, Any], environ: Mapping[str, str] | None = None) -> Settings:
    environ = os.environ if environ is None else environ
    ynab = YnabSettings(
        bearer_token=_require_str(raw, "ynab_bearer_token"),
        budget_id=_require_str(raw, "ynab_budget_id"),
        reconciliation_payee_id=_optional_str(raw, "ynab_reconciliation_payee_id"),
    )
    pushover = PushoverSettings(
        api_key=_require_str(raw, "pushover_api_key"),
        user_key=_require_str(raw, "pushover_user_key"),
    )
    saxo = _build_saxo(raw, environ) if _has_section(raw, "saxo_") else None
    hl = _build_hl(raw) if _has_section(raw, "hl_") else None
    log_level = (_optional_str(raw, "log_level") or "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"Setting 'log_level' must be one of {', '.join(LOG_LEVELS)}")
    return Settings(ynab=ynab, pushover=pushover, saxo=saxo, hl=hl, log_level=log_level)


def _build_saxo(raw: Mapping[str, Any], environ: Mapping[str, str]) -> SaxoSettings:
    host = _optional_str(raw, "saxo_redirect_host") or environ.get("TAILSCALE_IP") or "127.0.0.1"
    timeout = raw.get("saxo_redirect_timeout")
    return SaxoSettings(
        client_id=_require_str(raw, "saxo_client_id"),
        client_secret=_require_str(raw, "saxo_client_secret"),
        redirect_uri=_require_str(raw, "saxo_redirect_uri"),
        access_token_path=Path(_require_str(raw, "saxo_access_token_path")),
        account_id=_require_str(raw, "ynab_saxo_account_id"),
        redirect_host=host,
        redirect_port=_to_int(raw.get("saxo_redirect_port", DEFAULT_REDIRECT_PORT), "saxo_redirect_port"),
        redirect_timeout=None if timeout in (None, "") else _to_float(timeout, "saxo_redirect_timeout"),
        reconciliation_payee_id=_optional_str(raw, "ynab_saxo_reconciliation_payee_id"),
    )


def _build_hl(raw: Mapping[str, Any]) -> HLSettings:
    secure_numbers = raw.get("hl_secure_numbers")
    if isinstance(secure_numbers, str):
        secure_numbers = list(secure_numbers.strip())
    if not isinstance(secure_numbers, (list, tuple)) or len(secure_numbers) != 6:
        raise ConfigError("'hl_secure_numbers' must contain exactly 6 digits")
    return HLSettings(
        username=_require_str(raw, "hl_username"),
        date_of_birth=_require_str(raw, "hl_date_of_birth"),
        password=_require_str(raw, "hl_password"),
        secure_numbers=tuple(str(digit) for digit in secure_numbers),
        account_id=_require_str(raw, "ynab_hl_account_id"),
        reconciliation_payee_id=_optional_str(raw, "ynab_hl_reconciliation_payee_id"),
    )


def _apply_env_overrides(raw: Mapping[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    merged = dict(raw)
    for key in _KNOWN_KEYS:
        value = environ.get(key.upper())
        if value:
            merged[key] = value
    return merged


def _has_section(raw: Mapping[str, Any], prefix: str) -> bool:
    return any(key.startswith(prefix) or key.startswith(f"ynab_{prefix}") for key in raw)


def _require_str(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None or value == "":
        raise ConfigError(f"Missing required setting '{key}'")
    if not isinstance(value, (str, int)):
        raise ConfigError(f"Setting '{key}' must be a string")
    return str(value)


def _optional_str(raw: Mapping[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _to_int(value: Any, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Setting '{key}' must be an integer") from exc


def _to_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Setting '{key}' must be a number") from exc
