from __future__ import annotations

import contextlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Dict

from playwright.async_api import Browser, async_playwright

from .json_logger import JsonLogger, log_event
from .page_selectors import CHROMIUM_ARGS, VIEWPORT
from .settings import ExportSettings

__all__ = ["AutomationSession", "launch_browser", "open_automation_session"]


@dataclass
class AutomationSession:
    """One isolated browser context for one export. ``frame`` is looked up, not owned."""

    browser: Any
    context: Any
    page: Any
    frame: Any = None


async def launch_browser(*, playwright: Any, settings: ExportSettings, logger: JsonLogger) -> Browser:
    backend = (settings.browser_backend or "").lower()
    chrome_exec = settings.chrome_executable
    headless = settings.headless
    launch_kwargs: Dict[str, Any] = {"headless": headless, "args": list(CHROMIUM_ARGS)}

    if backend == "local_chrome":
        if chrome_exec and Path(chrome_exec).is_file():
            launch_kwargs["executable_path"] = chrome_exec
            log_event(
                logger=logger,
                phase="init",
                message="Launching Playwright with local Chrome executable",
                backend=backend,
                executable_path=chrome_exec,
                headless=headless,
            )
        else:
            log_event(
                logger=logger,
                phase="init",
                status="warn",
                message="Configured local Chrome executable missing; falling back to bundled Chromium",
                backend=backend,
                executable_path=chrome_exec,
                headless=headless,
            )
    else:
        log_event(
            logger=logger,
            phase="init",
            message="Launching Playwright with bundled Chromium",
            backend=backend or "bundled_chromium",
            headless=headless,
        )

    try:
        return await playwright.chromium.launch(**launch_kwargs)
    except Exception as exc:
        if launch_kwargs.pop("executable_path", None) is not None:
            log_event(
                logger=logger,
                phase="init",
                status="warn",
                message="Local Chrome launch failed; retrying with bundled Chromium",
                backend=backend,
                executable_path=chrome_exec,
                error=str(exc),
            )
            return await playwright.chromium.launch(**launch_kwargs)
        raise


@contextlib.asynccontextmanager
async def open_automation_session(
    *, settings: ExportSettings, logger: JsonLogger
) -> AsyncIterator[AutomationSession]:
    """Yield a fresh browser, context and page; all of them are closed on exit."""

    async with async_playwright() as playwright:
        browser = await launch_browser(playwright=playwright, settings=settings, logger=logger)
        context = None
        try:
            context = await browser.new_context(
                accept_downloads=True,
                viewport=dict(VIEWPORT),
                locale=settings.locale,
            )
            page = await context.new_page()
            yield AutomationSession(browser=browser, context=context, page=page)
        finally:
            if context is not None:
                with contextlib.suppress(Exception):
                    await context.close()
            with contextlib.suppress(Exception):
                await browser.close()
            log_event(logger=logger, phase="teardown", message="Browser session closed")
