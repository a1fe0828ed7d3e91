from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

__all__ = ["DiagnosticSnapshot", "capture_diagnostic_snapshot"]


@dataclass
class DiagnosticSnapshot:
    """Screenshot and DOM dump taken when an export stage fails."""

    stage: str
    message: str
    screenshot: Optional[bytes] = None
    dom: Optional[str] = None
    screenshot_path: Optional[str] = None
    html_path: Optional[str] = None
    page_url: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    captured_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def describe(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "stage": self.stage,
            "captured_at": self.captured_at,
            "has_screenshot": self.screenshot is not None,
            "has_dom": self.dom is not None,
        }
        if self.page_url:
            payload["page_url"] = self.page_url
        if self.screenshot_path:
            payload["screenshot"] = self.screenshot_path
        if self.html_path:
            payload["html_dump"] = self.html_path
        if self.errors:
            payload["errors"] = list(self.errors)
        return payload


async def capture_diagnostic_snapshot(
    page: Any,
    *,
    stage: str,
    message: str,
    artifacts_dir: Path | None = None,
    prefix: str = "export_failure",
) -> DiagnosticSnapshot:
    """Grab what the page looks like right now. Never raises."""

    snapshot = DiagnosticSnapshot(stage=stage, message=message)
    if page is None:
        snapshot.errors.append("no page")
        return snapshot

    snapshot.page_url = getattr(page, "url", None)

    try:
        snapshot.screenshot = await page.screenshot(full_page=True)
    except Exception as exc:
        snapshot.errors.append(f"screenshot: {exc}")

    try:
        snapshot.dom = await page.content()
    except Exception as exc:
        snapshot.errors.append(f"content: {exc}")

    if artifacts_dir is None:
        return snapshot

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    base_name = f"{prefix}_{stage}_{timestamp}"
    try:
        artifacts_dir.mkdir(parents=True, exist_ok=True)
        if snapshot.screenshot is not None:
            screenshot_path = artifacts_dir / f"{base_name}.png"
            screenshot_path.write_bytes(snapshot.screenshot)
            snapshot.screenshot_path = str(screenshot_path)
        if snapshot.dom is not None:
            html_path = artifacts_dir / f"{base_name}.html"
            html_path.write_text(snapshot.dom, encoding="utf-8")
            snapshot.html_path = str(html_path)
    except Exception as exc:
        snapshot.errors.append(f"write: {exc}")
    return snapshot
