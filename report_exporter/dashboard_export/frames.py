"""Locate the frame hosting the dashboard controls and detect sign-in walls.

Embedded dashboards frequently render their filter bar inside an iframe, and
the iframe tree is only complete once the SPA has booted, so the frame tree
is re-enumerated on every poll tick.
"""
from __future__ import annotations

import asyncio
from typing import Any, Iterable, Optional

from report_exporter.common.text_utils import normalize_text
from report_exporter.errors import WaitTimeoutError

from .json_logger import JsonLogger, log_event
from .page_selectors import DashboardProfile
from .polling import poll_until

__all__ = [
    "find_dashboard_frame",
    "frame_text",
    "is_login_wall",
    "login_url_detected",
    "describe_frame",
]


async def frame_text(frame: Any, *, timeout_ms: int) -> str:
    """Best-effort visible text of ``frame``; empty when unreadable in time."""

    try:
        text = await asyncio.wait_for(
            frame.locator("body").inner_text(timeout=timeout_ms),
            timeout=max(timeout_ms, 1) / 1000,
        )
    except asyncio.CancelledError:
        raise
    except Exception:
        return ""
    return text or ""


def describe_frame(frame: Any) -> dict[str, Any]:
    return {"name": getattr(frame, "name", None), "url": getattr(frame, "url", None)}


async def find_dashboard_frame(
    page: Any,
    marker_texts: Iterable[str],
    *,
    timeout_ms: int,
    interval_ms: int = 500,
    read_timeout_ms: int = 2_000,
    logger: JsonLogger,
) -> Any:
    """Return the frame whose text contains one of ``marker_texts``.

    Falls back to ``page.main_frame`` when no frame qualifies before the
    deadline; dashboards rendered without an iframe are legitimate.
    """

    markers = [normalize_text(marker) for marker in marker_texts if normalize_text(marker)]
    scanned = 0

    async def _scan() -> Optional[Any]:
        nonlocal scanned
        for frame in list(page.frames):
            scanned += 1
            text = normalize_text(await frame_text(frame, timeout_ms=read_timeout_ms))
            if text and any(marker in text for marker in markers):
                return frame
        return None

    try:
        frame = await poll_until(
            _scan,
            timeout_ms=timeout_ms,
            interval_ms=interval_ms,
            description="dashboard frame",
        )
    except WaitTimeoutError as exc:
        log_event(
            logger=logger,
            phase="frame_ready",
            status="warn",
            message="No frame showed the dashboard markers; using the main frame",
            markers=list(marker_texts),
            frames_scanned=scanned,
            elapsed_ms=exc.elapsed_ms,
        )
        return page.main_frame

    log_event(
        logger=logger,
        phase="frame_ready",
        message="Dashboard frame located",
        frame=describe_frame(frame),
        is_main_frame=frame is page.main_frame,
    )
    return frame


def login_url_detected(page: Any, profile: DashboardProfile) -> bool:
    url = (getattr(page, "url", "") or "").lower()
    return any(fragment.lower() in url for fragment in profile.login_url_fragments)


async def is_login_wall(page: Any, profile: DashboardProfile, *, read_timeout_ms: int = 2_000) -> bool:
    """Return True when the page shows a sign-in or consent wall.

    Public reports still render a "sign in" button in their header, so the
    text markers only count when the dashboard markers are absent.
    """

    if login_url_detected(page, profile):
        return True

    text = normalize_text(await frame_text(page.main_frame, timeout_ms=read_timeout_ms))
    if not text:
        return False
    if any(normalize_text(marker) in text for marker in profile.frame_markers):
        return False
    return any(normalize_text(marker) in text for marker in profile.login_markers)
