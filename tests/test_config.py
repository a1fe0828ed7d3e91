from pathlib import Path

import pytest

from report_exporter.config import DEFAULTS, ENV_PREFIX, Config, ConfigError
from report_exporter.dashboard_export.settings import ExportSettings


def _env(**values: str) -> dict[str, str]:
    return {f"{ENV_PREFIX}{key}": value for key, value in values.items()}


def test_defaults_apply_when_nothing_is_set() -> None:
    cfg = Config.load_from_env({})

    assert cfg.headless is True
    assert cfg.browser_backend == "bundled_chromium"
    assert cfg.locale == "pt-BR"
    assert cfg.nav_timeout_ms == int(DEFAULTS["NAV_TIMEOUT_MS"])
    assert cfg.max_client_candidates == 300
    assert cfg.allow_coordinate_fallback is True


def test_environment_values_override_defaults() -> None:
    cfg = Config.load_from_env(
        _env(
            HEADLESS="no",
            BROWSER_BACKEND=" Local_Chrome ",
            CHROME_EXECUTABLE="/opt/chrome/chrome",
            NAV_TIMEOUT_MS="5000",
            ALLOW_COORDINATE_FALLBACK="off",
            DIAGNOSTICS_DIR="/tmp/diag",
        )
    )

    assert cfg.headless is False
    assert cfg.browser_backend == "local_chrome"
    assert cfg.chrome_executable == "/opt/chrome/chrome"
    assert cfg.nav_timeout_ms == 5000
    assert cfg.allow_coordinate_fallback is False
    assert cfg.diagnostics_dir == "/tmp/diag"


@pytest.mark.parametrize(
    ("key", "value", "fragment"),
    [
        ("HEADLESS", "maybe", "boolean"),
        ("NAV_TIMEOUT_MS", "fast", "integer"),
        ("POLL_INTERVAL_MS", "0", ">= 1"),
        ("BROWSER_BACKEND", "firefox", "must be one of"),
    ],
)
def test_malformed_values_raise_config_error(key, value, fragment) -> None:
    with pytest.raises(ConfigError) as excinfo:
        Config.load_from_env(_env(**{key: value}))

    assert fragment in str(excinfo.value)
    assert f"{ENV_PREFIX}{key}" in str(excinfo.value)


def test_export_settings_follow_config() -> None:
    cfg = Config.load_from_env(
        _env(
            SELECTOR_TIMEOUT_MS="1234",
            ALLOW_COORDINATE_FALLBACK="false",
            DIAGNOSTICS_DIR="artifacts/diag",
            CHROME_EXECUTABLE="   ",
        )
    )

    settings = ExportSettings.from_config(cfg, capture_timeout_ms=10)

    assert settings.selector_timeout_ms == 1234
    assert settings.allow_unreliable_strategies is False
    assert settings.diagnostics_dir == Path("artifacts/diag")
    assert settings.chrome_executable is None
    assert settings.capture_timeout_ms == 10
