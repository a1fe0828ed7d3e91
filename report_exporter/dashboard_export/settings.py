from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .page_selectors import (
    DEFAULT_PROFILE,
    DEFAULT_SETTLE_DELAYS,
    DashboardProfile,
    SettleDelays,
)


@dataclass
class ExportSettings:
    """Per-export knobs: timeouts, vendor profile and settle delays."""

    nav_timeout_ms: int = 120_000
    frame_timeout_ms: int = 90_000
    selector_timeout_ms: int = 60_000
    strategy_probe_timeout_ms: int = 1_500
    client_search_timeout_ms: int = 60_000
    modal_timeout_ms: int = 90_000
    readiness_timeout_ms: int = 180_000
    readiness_interval_ms: int = 500
    capture_timeout_ms: int = 120_000
    poll_interval_ms: int = 500
    frame_read_timeout_ms: int = 2_000
    click_timeout_ms: int = 30_000
    max_client_candidates: int = 300
    allow_unreliable_strategies: bool = True
    headless: bool = True
    browser_backend: str = "bundled_chromium"
    chrome_executable: Optional[str] = None
    locale: str = "pt-BR"
    diagnostics_dir: Optional[Path] = None
    profile: DashboardProfile = field(default_factory=lambda: DEFAULT_PROFILE)
    settle: SettleDelays = field(default_factory=lambda: DEFAULT_SETTLE_DELAYS)

    @classmethod
    def from_config(cls, cfg: Any = None, **overrides: Any) -> "ExportSettings":
        if cfg is None:
            from report_exporter.config import config as cfg

        diagnostics_dir = (cfg.diagnostics_dir or "").strip()
        values: dict[str, Any] = {
            "nav_timeout_ms": cfg.nav_timeout_ms,
            "frame_timeout_ms": cfg.frame_timeout_ms,
            "selector_timeout_ms": cfg.selector_timeout_ms,
            "strategy_probe_timeout_ms": cfg.strategy_probe_timeout_ms,
            "client_search_timeout_ms": cfg.client_search_timeout_ms,
            "modal_timeout_ms": cfg.modal_timeout_ms,
            "readiness_timeout_ms": cfg.readiness_timeout_ms,
            "readiness_interval_ms": cfg.readiness_interval_ms,
            "capture_timeout_ms": cfg.capture_timeout_ms,
            "poll_interval_ms": cfg.poll_interval_ms,
            "max_client_candidates": cfg.max_client_candidates,
            "allow_unreliable_strategies": cfg.allow_coordinate_fallback,
            "headless": cfg.headless,
            "browser_backend": cfg.browser_backend,
            "chrome_executable": (cfg.chrome_executable or "").strip() or None,
            "locale": cfg.locale,
            "diagnostics_dir": Path(diagnostics_dir) if diagnostics_dir else None,
        }
        values.update(overrides)
        return cls(**values)
