"""Sequential export state machine.

One :class:`SessionOrchestrator` drives one export end to end. Every stage
runs strictly after the previous one succeeded; the first failure moves the
machine to ``failed``, captures a diagnostic snapshot and re-raises the error
annotated with the stage that failed. The browser session is always closed.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, List, Mapping, Optional, Union

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from report_exporter.common.date_utils import format_calendar_date
from report_exporter.errors import (
    AutomationError,
    ExportError,
    LoginRequiredError,
    WaitTimeoutError,
)
from report_exporter.request import ExportRequest

from .account_filter import AccountFilterController
from .browser import AutomationSession, open_automation_session
from .calendar_navigator import CalendarNavigator
from .diagnostics import DiagnosticSnapshot, capture_diagnostic_snapshot
from .export_download import DownloadArtifact, ExportDownloadController
from .frames import find_dashboard_frame, is_login_wall, login_url_detected
from .json_logger import JsonLogger, get_logger, log_event, log_export_error
from .selector_chain import SelectorChain
from .settings import ExportSettings

__all__ = [
    "STAGES",
    "SessionOrchestrator",
    "export_report",
    "export_report_artifact",
]

INIT = "init"
LOADED = "loaded"
FRAME_READY = "frame_ready"
ACCOUNT_CLEARED = "account_cleared"
ACCOUNT_SELECTED = "account_selected"
PERIOD_OPENED = "period_opened"
DATES_SET = "dates_set"
APPLIED = "applied"
MENU_HANDLED = "menu_handled"
DOWNLOADED = "downloaded"
FAILED = "failed"

STAGES = (
    INIT,
    LOADED,
    FRAME_READY,
    ACCOUNT_CLEARED,
    ACCOUNT_SELECTED,
    PERIOD_OPENED,
    DATES_SET,
    APPLIED,
    MENU_HANDLED,
    DOWNLOADED,
)

SessionFactory = Callable[..., Any]


class SessionOrchestrator:
    def __init__(
        self,
        request: Union[ExportRequest, Mapping[str, Any]],
        *,
        settings: ExportSettings | None = None,
        logger: JsonLogger | None = None,
        session_factory: SessionFactory | None = None,
        chain: SelectorChain | None = None,
    ) -> None:
        self._raw_request = request
        self.request: Optional[ExportRequest] = None
        self.settings = settings or ExportSettings.from_config()
        self._owns_logger = logger is None
        self._base_logger = logger or get_logger()
        self.logger = self._base_logger
        self.session_factory = session_factory or open_automation_session
        self._chain = chain
        self.chain: Optional[SelectorChain] = chain
        self.state = INIT
        self.history: List[str] = []
        self.session: Optional[AutomationSession] = None
        self.snapshot: Optional[DiagnosticSnapshot] = None
        self._stage_started = time.perf_counter()

    def _enter(self, stage: str) -> None:
        self.state = stage
        self.history.append(stage)

    async def run(self) -> DownloadArtifact:
        try:
            return await self._run()
        finally:
            if self._owns_logger:
                self._base_logger.close()

    async def _run(self) -> DownloadArtifact:
        self._enter(INIT)
        self._stage_started = time.perf_counter()
        try:
            self.request = ExportRequest.from_payload(self._raw_request)
        except ExportError as exc:
            self._fail(exc, INIT)
            raise

        self.logger = self._base_logger.bind(client_name=self.request.client_name)
        self.chain = self._chain or SelectorChain(settings=self.settings, logger=self.logger)
        log_event(
            logger=self.logger,
            phase=INIT,
            message="Export requested",
            dashboard_url=self.request.dashboard_url,
            start=format_calendar_date(self.request.start_date),
            end=format_calendar_date(self.request.end_date),
        )

        try:
            async with self.session_factory(settings=self.settings, logger=self.logger) as session:
                self.session = session
                try:
                    return await self._run_stages(session)
                except Exception as exc:
                    error = _as_export_error(exc)
                    await self._on_failure(error, session.page)
                    if error is exc:
                        raise
                    raise error from exc
        except ExportError:
            raise
        except Exception as exc:
            # Browser launch or teardown failed outside any stage.
            error = _as_export_error(exc)
            self._fail(error, self._next_stage())
            raise error from exc

    async def _run_stages(self, session: AutomationSession) -> DownloadArtifact:
        assert self.request is not None
        settings = self.settings
        page = session.page

        await page.goto(
            self.request.dashboard_url,
            wait_until="domcontentloaded",
            timeout=settings.nav_timeout_ms,
        )
        await asyncio.sleep(settings.settle.initial_render)
        if login_url_detected(page, settings.profile):
            raise LoginRequiredError(details={"url": page.url})
        self._advance(LOADED, "Dashboard loaded", url=page.url)

        session.frame = await self._resolve_frame(session)
        self._advance(FRAME_READY, "Dashboard frame ready")

        accounts = AccountFilterController(
            await self._ensure_frame(session),
            page,
            self.chain,
            settings=settings,
            logger=self.logger,
        )
        await accounts.open()
        await accounts.clear_all()
        self._advance(ACCOUNT_CLEARED, "Account filter cleared")

        await accounts.search(self.request.client_name)
        selected_label = await accounts.select_client(self.request.client_name)
        await accounts.close()
        self._advance(ACCOUNT_SELECTED, "Account selected", label=selected_label)

        scope = await self._ensure_frame(session)
        await self.chain.click(scope, "period_trigger", timeout_ms=settings.selector_timeout_ms)
        await asyncio.sleep(settings.settle.period_open)
        self._advance(PERIOD_OPENED, "Date range picker opened")

        calendar = CalendarNavigator(self.chain, settings=settings, logger=self.logger)
        start = await calendar.set_date(scope, settings.profile.start_field_label, self.request.start_date)
        end = await calendar.set_date(scope, settings.profile.end_field_label, self.request.end_date)
        self._advance(
            DATES_SET,
            "Period selected",
            start_converged=start.converged,
            end_converged=end.converged,
        )

        await self.chain.click(scope, "apply_button", timeout_ms=settings.selector_timeout_ms)
        await asyncio.sleep(settings.settle.apply)
        self._advance(APPLIED, "Period applied")

        exporter = ExportDownloadController(
            page,
            await self._ensure_frame(session),
            self.chain,
            settings=settings,
            logger=self.logger,
        )
        await exporter.open_export_menu()
        await exporter.click_download_item()
        button = await exporter.wait_for_confirm_button()
        self._advance(MENU_HANDLED, "Download modal reached")

        await exporter.await_readiness(button)
        artifact = await exporter.capture_artifact(button)
        if self.request.file_name:
            artifact = DownloadArtifact(
                content=artifact.content,
                file_name=self.request.file_name,
                source=artifact.source,
            )
        self._advance(
            DOWNLOADED,
            "Report exported",
            file_name=artifact.file_name,
            size=artifact.size,
            source=artifact.source,
        )
        return artifact

    def _advance(self, stage: str, message: str, **extras: Any) -> None:
        now = time.perf_counter()
        stage_ms = int((now - self._stage_started) * 1000)
        self._stage_started = now
        self._enter(stage)
        log_event(logger=self.logger, phase=stage, message=message, stage_ms=stage_ms, **extras)

    def _next_stage(self) -> str:
        idx = STAGES.index(self.state) if self.state in STAGES else 0
        return STAGES[min(idx + 1, len(STAGES) - 1)]

    async def _resolve_frame(self, session: AutomationSession) -> Any:
        page = session.page
        frame = await find_dashboard_frame(
            page,
            self.settings.profile.frame_markers,
            timeout_ms=self.settings.frame_timeout_ms,
            interval_ms=self.settings.poll_interval_ms,
            read_timeout_ms=self.settings.frame_read_timeout_ms,
            logger=self.logger,
        )
        if frame is page.main_frame and await is_login_wall(
            page,
            self.settings.profile,
            read_timeout_ms=self.settings.frame_read_timeout_ms,
        ):
            raise LoginRequiredError(details={"url": page.url})
        return frame

    async def _ensure_frame(self, session: AutomationSession) -> Any:
        frame = session.frame
        detached = frame is None
        if frame is not None:
            try:
                detached = frame.is_detached()
            except Exception:
                detached = True
        if detached:
            log_event(
                logger=self.logger,
                phase=self.state,
                status="warn",
                message="Dashboard frame went stale; resolving it again",
            )
            session.frame = await self._resolve_frame(session)
        return session.frame

    def _fail(self, error: ExportError, stage: str) -> None:
        self._enter(FAILED)
        if error.stage is None:
            error.stage = stage
        log_export_error(logger=self.logger, error=error, phase=stage)

    async def _on_failure(self, error: ExportError, page: Any) -> None:
        stage = self._next_stage()
        self._fail(error, stage)
        self.snapshot = await capture_diagnostic_snapshot(
            page,
            stage=stage,
            message=error.message,
            artifacts_dir=self.settings.diagnostics_dir,
        )
        error.snapshot = self.snapshot
        log_event(
            logger=self.logger,
            phase="diagnostics",
            status="warn" if self.snapshot.errors else "ok",
            message="Diagnostic snapshot captured",
            **self.snapshot.describe(),
        )


def _as_export_error(exc: BaseException) -> ExportError:
    if isinstance(exc, ExportError):
        return exc
    if isinstance(exc, (PlaywrightTimeoutError, asyncio.TimeoutError)):
        target = str(exc).splitlines()[0] if str(exc) else "browser operation"
        return WaitTimeoutError(target, elapsed_ms=0, last_error=exc)
    if isinstance(exc, PlaywrightError):
        return AutomationError(f"Browser automation failed: {exc.message}")
    return AutomationError(f"{type(exc).__name__}: {exc}")


async def export_report_artifact(
    request: Union[ExportRequest, Mapping[str, Any]],
    *,
    settings: ExportSettings | None = None,
    logger: JsonLogger | None = None,
    session_factory: SessionFactory | None = None,
) -> DownloadArtifact:
    orchestrator = SessionOrchestrator(
        request,
        settings=settings,
        logger=logger,
        session_factory=session_factory,
    )
    return await orchestrator.run()


async def export_report(
    request: Union[ExportRequest, Mapping[str, Any]],
    *,
    settings: ExportSettings | None = None,
    logger: JsonLogger | None = None,
    session_factory: SessionFactory | None = None,
) -> bytes:
    """Export the dashboard PDF described by ``request`` and return its bytes."""

    artifact = await export_report_artifact(
        request,
        settings=settings,
        logger=logger,
        session_factory=session_factory,
    )
    return artifact.content
