"""
CONFIG.PY — SINGLE SOURCE OF TRUTH (SSOT)

This module is the ONLY place allowed to read environment variables.

All config is loaded ONCE at import and cached in a single in-memory Config
object. No dynamic reload. Every key is env-only and carries a default so the
exporter can be embedded as a library without a .env file; malformed values
still fail early with ConfigError.

To use a config value, import:

    from report_exporter.config import config

Do not access os.getenv directly from any other module.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv


# Determine project root correctly (directory containing the top-level package)
PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Load variables from .env if it exists; OS env overrides these automatically
load_dotenv(PROJECT_ROOT / ".env")

if os.getenv("DEBUG_CONFIG") == "1":
    print("[CONFIG] Loaded .env from:", PROJECT_ROOT / ".env")


logger = logging.getLogger(__name__)

ENV_PREFIX = "REPORT_EXPORT_"

DEFAULTS: dict[str, str] = {
    "JSON_LOG_FILE": "",
    "DIAGNOSTICS_DIR": "",
    "HEADLESS": "true",
    "BROWSER_BACKEND": "bundled_chromium",
    "CHROME_EXECUTABLE": "",
    "LOCALE": "pt-BR",
    "NAV_TIMEOUT_MS": "120000",
    "FRAME_TIMEOUT_MS": "90000",
    "SELECTOR_TIMEOUT_MS": "60000",
    "STRATEGY_PROBE_TIMEOUT_MS": "1500",
    "CLIENT_SEARCH_TIMEOUT_MS": "60000",
    "MODAL_TIMEOUT_MS": "90000",
    "READINESS_TIMEOUT_MS": "180000",
    "READINESS_INTERVAL_MS": "500",
    "CAPTURE_TIMEOUT_MS": "120000",
    "POLL_INTERVAL_MS": "500",
    "MAX_CLIENT_CANDIDATES": "300",
    "ALLOW_COORDINATE_FALLBACK": "true",
}

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


def _read(environ: Mapping[str, str], key: str) -> str:
    value = environ.get(f"{ENV_PREFIX}{key}")
    if value is None:
        return DEFAULTS[key]
    return value.strip()


def _parse_bool(value: str, *, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    message = f"Config key {key} must be a boolean string; got {value!r}"
    logger.error(message)
    raise ConfigError(message)


def _parse_int(value: str, *, key: str, minimum: int = 0) -> int:
    try:
        parsed = int(value.strip())
    except (TypeError, ValueError):
        message = f"Config key {key} must be an integer; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    if parsed < minimum:
        message = f"Config key {key} must be >= {minimum}; got {parsed}"
        logger.error(message)
        raise ConfigError(message)
    return parsed


def _parse_choice(value: str, *, key: str, choices: set[str]) -> str:
    normalized = value.strip().lower()
    if normalized not in choices:
        message = f"Config key {key} must be one of {sorted(choices)}; got {value!r}"
        logger.error(message)
        raise ConfigError(message)
    return normalized


@dataclass(slots=True, frozen=True)
class Config:
    json_log_file: str
    diagnostics_dir: str
    headless: bool
    browser_backend: str
    chrome_executable: str
    locale: str

    nav_timeout_ms: int
    frame_timeout_ms: int
    selector_timeout_ms: int
    strategy_probe_timeout_ms: int
    client_search_timeout_ms: int
    modal_timeout_ms: int
    readiness_timeout_ms: int
    readiness_interval_ms: int
    capture_timeout_ms: int
    poll_interval_ms: int
    max_client_candidates: int
    allow_coordinate_fallback: bool

    @classmethod
    def load_from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        env = os.environ if environ is None else environ

        def _ms(key: str, *, minimum: int = 0) -> int:
            return _parse_int(_read(env, key), key=f"{ENV_PREFIX}{key}", minimum=minimum)

        return cls(
            json_log_file=_read(env, "JSON_LOG_FILE"),
            diagnostics_dir=_read(env, "DIAGNOSTICS_DIR"),
            headless=_parse_bool(_read(env, "HEADLESS"), key=f"{ENV_PREFIX}HEADLESS"),
            browser_backend=_parse_choice(
                _read(env, "BROWSER_BACKEND"),
                key=f"{ENV_PREFIX}BROWSER_BACKEND",
                choices={"bundled_chromium", "local_chrome"},
            ),
            chrome_executable=_read(env, "CHROME_EXECUTABLE"),
            locale=_read(env, "LOCALE") or DEFAULTS["LOCALE"],
            nav_timeout_ms=_ms("NAV_TIMEOUT_MS", minimum=1),
            frame_timeout_ms=_ms("FRAME_TIMEOUT_MS"),
            selector_timeout_ms=_ms("SELECTOR_TIMEOUT_MS"),
            strategy_probe_timeout_ms=_ms("STRATEGY_PROBE_TIMEOUT_MS"),
            client_search_timeout_ms=_ms("CLIENT_SEARCH_TIMEOUT_MS"),
            modal_timeout_ms=_ms("MODAL_TIMEOUT_MS"),
            readiness_timeout_ms=_ms("READINESS_TIMEOUT_MS"),
            readiness_interval_ms=_ms("READINESS_INTERVAL_MS", minimum=1),
            capture_timeout_ms=_ms("CAPTURE_TIMEOUT_MS", minimum=1),
            poll_interval_ms=_ms("POLL_INTERVAL_MS", minimum=1),
            max_client_candidates=_ms("MAX_CLIENT_CANDIDATES", minimum=1),
            allow_coordinate_fallback=_parse_bool(
                _read(env, "ALLOW_COORDINATE_FALLBACK"),
                key=f"{ENV_PREFIX}ALLOW_COORDINATE_FALLBACK",
            ),
        )


config = Config.load_from_env()
