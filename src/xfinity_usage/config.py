from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, Field, model_validator

from .portal.selectors import DEFAULT_LANDING_URL, DEFAULT_LOGIN_URL, DEFAULT_USAGE_URL


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

DEFAULT_STORE_PATH = "~/.config/xfin/config.json"


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def _default_config_from_env() -> dict:
    """
    Env-only config so most users only need `.env`; YAML remains an optional override.
    """
    return {
        "portal": {
            "login_url": os.getenv("XFIN_LOGIN_URL", DEFAULT_LOGIN_URL),
            "landing_url": os.getenv("XFIN_LANDING_URL", DEFAULT_LANDING_URL),
            "usage_url": os.getenv("XFIN_USAGE_URL", DEFAULT_USAGE_URL),
            "settle_ms": _env_int("XFIN_SETTLE_MS", 5_000),
            "element_timeout_ms": _env_int("XFIN_ELEMENT_TIMEOUT_MS", 30_000),
            "navigation_timeout_ms": _env_int("XFIN_NAVIGATION_TIMEOUT_MS", 60_000),
            "overall_timeout_s": _env_int("XFIN_TIMEOUT_S", 180),
            "slow_mo_ms": _env_int("XFIN_SLOWMO_MS", 0),
            "debug_dir": os.getenv("XFIN_DEBUG_DIR", ""),
        },
        "credentials": {
            "email": os.getenv("XFIN_EMAIL", ""),
            "password": os.getenv("XFIN_PASSWORD", ""),
        },
        "store": {
            "path": os.getenv("XFIN_STORE_PATH", DEFAULT_STORE_PATH),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", ""),
        },
    }


class PortalConfig(BaseModel):
    """
    URLs and timings for the portal session.

    The URLs are the portal's own (undocumented) endpoints; override them only if Xfinity moves them.
    """

    login_url: str = DEFAULT_LOGIN_URL
    landing_url: str = DEFAULT_LANDING_URL
    usage_url: str = DEFAULT_USAGE_URL

    # Blind wait used only where the portal gives no element to wait on (post-login landing page).
    settle_ms: int = 5_000
    # Bounded wait for login fields to become visible.
    element_timeout_ms: int = 30_000
    navigation_timeout_ms: int = 60_000
    # Upper bound on a whole extraction (login + navigation + capture).
    overall_timeout_s: float = 180
    # How long to wait for a late usage response after the driver has finished.
    capture_grace_ms: int = 3_000

    # Playwright slow motion (debug): delay between browser actions.
    slow_mo_ms: int = 0

    # If set, screenshots/HTML are written here when an extraction fails.
    debug_dir: str = ""

    @model_validator(mode="after")
    def _validate(self) -> "PortalConfig":
        for name in ("element_timeout_ms", "navigation_timeout_ms", "overall_timeout_s"):
            if getattr(self, name) <= 0:
                raise ValueError(f"portal.{name} must be positive")
        for name in ("settle_ms", "capture_grace_ms", "slow_mo_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"portal.{name} must not be negative")
        for name in ("login_url", "landing_url", "usage_url"):
            if not str(getattr(self, name) or "").startswith(("http://", "https://")):
                raise ValueError(f"portal.{name} must be a full http(s) URL")
        return self


class CredentialsConfig(BaseModel):
    email: str = ""
    password: str = Field(default="", repr=False)


class StoreConfig(BaseModel):
    path: str = DEFAULT_STORE_PATH

    def resolved_path(self) -> Path:
        return Path(os.path.expanduser(self.path))


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = ""


class AppConfig(BaseModel):
    portal: PortalConfig = PortalConfig()
    credentials: CredentialsConfig = CredentialsConfig()
    store: StoreConfig = StoreConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
