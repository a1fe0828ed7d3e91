"""Overflow menu -> download modal -> readiness -> PDF capture."""
from __future__ import annotations

import asyncio
import contextlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote

from report_exporter.errors import DownloadFailureError, SelectorExhaustedError, WaitTimeoutError

from .json_logger import JsonLogger, log_event
from .page_selectors import PDF_CONTENT_TYPE
from .polling import poll_until
from .selector_chain import SelectorChain
from .settings import ExportSettings

__all__ = ["DownloadArtifact", "ExportDownloadController"]

APPLIED = "applied"
MENU_OPENED = "menu_opened"
DOWNLOAD_ITEM_CLICKED = "download_item_clicked"
MODAL_VISIBLE = "modal_visible"
PREPARING = "preparing"
READY = "ready"
CAPTURED = "captured"

_FILENAME_RE = re.compile(r"filename\*?=(?:UTF-8'')?\"?([^\";]+)\"?", re.IGNORECASE)
_HTML_PREFIXES = (b"<!doctype html", b"<html", b"<head", b"<body")


@dataclass(frozen=True)
class DownloadArtifact:
    content: bytes
    file_name: str
    source: str

    @property
    def size(self) -> int:
        return len(self.content)


def _is_pdf_response(response: Any) -> bool:
    try:
        content_type = response.headers.get("content-type", "")
    except Exception:
        return False
    return PDF_CONTENT_TYPE in (content_type or "").lower()


def _looks_like_html(payload: bytes) -> bool:
    head = payload[:512].lstrip().lower()
    return head.startswith(_HTML_PREFIXES)


def _filename_from_disposition(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    match = _FILENAME_RE.search(value)
    if not match:
        return None
    return Path(unquote(match.group(1).strip())).name or None


class ExportDownloadController:
    def __init__(
        self,
        page: Any,
        scope: Any,
        chain: SelectorChain,
        *,
        settings: ExportSettings,
        logger: JsonLogger,
    ) -> None:
        self.page = page
        self.scope = scope
        self.chain = chain
        self.settings = settings
        self.logger = logger
        self.state = APPLIED

    async def open_export_menu(self) -> None:
        element = await self.chain.click(
            self.scope,
            "export_menu_trigger",
            timeout_ms=self.settings.selector_timeout_ms,
        )
        await asyncio.sleep(self.settings.settle.menu_open)
        self.state = MENU_OPENED
        log_event(
            logger=self.logger,
            phase="export_menu",
            message="Export menu opened",
            via=repr(element),
        )

    async def click_download_item(self) -> None:
        in_iframe = self.scope is not self.page.main_frame
        budget = self.settings.selector_timeout_ms // 2 if in_iframe else self.settings.selector_timeout_ms
        try:
            await self.chain.click(self.scope, "download_report_item", timeout_ms=budget)
        except SelectorExhaustedError:
            if not in_iframe:
                raise
            # Menus are portalled to the top document in some embeds.
            log_event(
                logger=self.logger,
                phase="export_menu",
                status="warn",
                message="Download entry not in the dashboard frame; trying the top document",
            )
            await self.chain.click(self.page.main_frame, "download_report_item", timeout_ms=budget)
        await asyncio.sleep(self.settings.settle.modal_open)
        self.state = DOWNLOAD_ITEM_CLICKED
        log_event(logger=self.logger, phase="export_menu", message="Download entry clicked")

    async def wait_for_confirm_button(self) -> Any:
        button = await self.chain.resolve(
            self.page,
            "confirm_download_button",
            timeout_ms=self.settings.modal_timeout_ms,
        )
        self.state = MODAL_VISIBLE
        log_event(logger=self.logger, phase="download", message="Download modal visible")
        return button

    async def await_readiness(self, button: Any) -> None:
        """Wait until the confirm control is enabled; probe errors count as disabled."""

        self.state = PREPARING

        async def _enabled() -> bool:
            return not await button.is_disabled()

        try:
            await poll_until(
                _enabled,
                timeout_ms=self.settings.readiness_timeout_ms,
                interval_ms=self.settings.readiness_interval_ms,
                description="download button to become enabled",
                logger=self.logger,
                phase="download",
            )
        except WaitTimeoutError as exc:
            raise DownloadFailureError(
                "Report was never ready to download",
                details={"elapsed_ms": exc.elapsed_ms, "target": exc.target},
            ) from exc
        self.state = READY
        log_event(logger=self.logger, phase="download", message="Download button enabled")

    async def capture_artifact(self, button: Any) -> DownloadArtifact:
        """Click ``button`` and keep whichever of download/PDF response lands first."""

        timeout = self.settings.capture_timeout_ms
        download_task = asyncio.ensure_future(self.page.wait_for_event("download", timeout=timeout))
        response_task = asyncio.ensure_future(
            self.page.wait_for_event("response", predicate=_is_pdf_response, timeout=timeout)
        )
        pending = {download_task, response_task}
        signal: Any = None
        source = ""
        errors: list[str] = []
        try:
            # Let both waiters subscribe before the click fires the export.
            await asyncio.sleep(0)
            await button.click(timeout=self.settings.click_timeout_ms)
            while pending and signal is None:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                # Same-tick completions resolve in a fixed order, download first.
                for task in (download_task, response_task):
                    if task not in done or task.cancelled():
                        continue
                    exc = task.exception()
                    if exc is not None:
                        errors.append(f"{type(exc).__name__}: {exc}")
                        continue
                    if signal is None:
                        signal = task.result()
                        source = "download" if task is download_task else "response"
        finally:
            for task in pending:
                task.cancel()
            for task in pending:
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task

        if signal is None:
            raise DownloadFailureError(
                "Neither a download nor a PDF response arrived",
                details={"timeout_ms": timeout, "errors": errors},
            )

        if source == "download":
            content, file_name = await self._read_download(signal)
        else:
            content, file_name = await self._read_response(signal)
        artifact = DownloadArtifact(content=content, file_name=file_name, source=source)
        self._validate(artifact)
        self.state = CAPTURED
        log_event(
            logger=self.logger,
            phase="download",
            message="Report captured",
            source=source,
            file_name=file_name,
            size=artifact.size,
        )
        return artifact

    async def _read_download(self, download: Any) -> tuple[bytes, str]:
        failure = getattr(download, "failure", None)
        if failure is not None:
            reason = await failure()
            if reason:
                raise DownloadFailureError(f"Browser download failed: {reason}")
        path = await download.path()
        if not path:
            raise DownloadFailureError("Browser download has no file on disk")
        try:
            content = Path(path).read_bytes()
        except OSError as exc:
            raise DownloadFailureError(f"Could not read downloaded file: {exc}") from exc
        file_name = getattr(download, "suggested_filename", None) or self.settings.profile.default_file_name
        return content, file_name

    async def _read_response(self, response: Any) -> tuple[bytes, str]:
        try:
            content = await response.body()
        except Exception as exc:
            raise DownloadFailureError(f"Could not read PDF response body: {exc}") from exc
        disposition = response.headers.get("content-disposition")
        file_name = _filename_from_disposition(disposition) or self.settings.profile.default_file_name
        return content, file_name

    def _validate(self, artifact: DownloadArtifact) -> None:
        if not artifact.content:
            raise DownloadFailureError("Downloaded report is empty", details={"source": artifact.source})
        if _looks_like_html(artifact.content):
            raise DownloadFailureError(
                "Downloaded payload is an HTML page, not a PDF",
                details={"source": artifact.source, "file_name": artifact.file_name},
            )
        if not artifact.content.startswith(b"%PDF"):
            log_event(
                logger=self.logger,
                phase="download",
                status="warn",
                message="Downloaded payload has no PDF header",
                source=artifact.source,
                head=artifact.content[:16].hex(),
            )
