"""Drive the dashboard's multi-select account filter.

The filter opens with an unknown prior selection, so the flow is always
open -> clear all -> search -> select exactly one -> close.
"""
from __future__ import annotations

import asyncio
import re
from typing import Any, List, Optional, Tuple

from report_exporter.common.text_utils import normalize_text
from report_exporter.errors import ClientNotFoundError, SelectorExhaustedError, WaitTimeoutError

from .json_logger import JsonLogger, log_event
from .page_selectors import (
    CLIENT_CANDIDATE_SAMPLE_SIZE,
    CLIENT_OPTION_CLICKABLE,
    CLIENT_OPTION_CONTAINER,
    CLIENT_OPTION_LABEL_ATTRIBUTE,
    CLIENT_OPTION_LABEL_SELECTOR,
)
from .polling import poll_until
from .selector_chain import SelectorChain
from .settings import ExportSettings

__all__ = ["AccountFilterController"]

CLOSED = "closed"
OPENED = "opened"
CLEARED = "cleared"
SEARCHING = "searching"
SELECTED = "selected"


class AccountFilterController:
    def __init__(
        self,
        scope: Any,
        page: Any,
        chain: SelectorChain,
        *,
        settings: ExportSettings,
        logger: JsonLogger,
    ) -> None:
        self.scope = scope
        self.page = page
        self.chain = chain
        self.settings = settings
        self.logger = logger
        self.state = CLOSED
        self._cleared = False

    async def open(self) -> None:
        await self.chain.click(
            self.scope,
            "account_filter_trigger",
            timeout_ms=self.settings.selector_timeout_ms,
        )
        await asyncio.sleep(self.settings.settle.panel_open)
        self.state = OPENED
        self._cleared = False
        log_event(logger=self.logger, phase="account_filter", message="Account filter opened")

    async def clear_all(self) -> None:
        """Click the select/deselect-all toggle once per opened panel."""

        if self._cleared:
            log_event(
                logger=self.logger,
                phase="account_filter",
                status="warn",
                message="Selection already cleared for this panel; skipping toggle",
            )
            return
        await self.chain.click(
            self.scope,
            "select_all_toggle",
            timeout_ms=self.settings.selector_timeout_ms,
        )
        self._cleared = True
        await asyncio.sleep(self.settings.settle.panel_clear)
        self.state = CLEARED
        log_event(logger=self.logger, phase="account_filter", message="Cleared prior account selection")

    async def search(self, term: str) -> bool:
        try:
            search_input = await self.chain.resolve(
                self.scope,
                "client_search_input",
                timeout_ms=self.settings.strategy_probe_timeout_ms,
            )
        except SelectorExhaustedError:
            log_event(
                logger=self.logger,
                phase="account_filter",
                status="warn",
                message="No search box in the account filter; scanning the full list",
            )
            return False

        await search_input.fill("")
        await search_input.fill(term)
        await asyncio.sleep(self.settings.settle.search)
        self.state = SEARCHING
        log_event(logger=self.logger, phase="account_filter", message="Searched account list", term=term)
        return True

    async def select_client(self, name: str) -> str:
        """Click the option whose label matches ``name`` and return that label.

        Exact normalized equality wins; otherwise the first option containing
        the raw name (case-insensitive) is used.
        """

        wanted = normalize_text(name)
        seen: List[str] = []

        async def _probe() -> Optional[Tuple[Any, str, str]]:
            labels = self.scope.locator(CLIENT_OPTION_LABEL_SELECTOR)
            count = min(await labels.count(), self.settings.max_client_candidates)
            sample: List[str] = []
            for idx in range(count):
                node = labels.nth(idx)
                label = await node.get_attribute(CLIENT_OPTION_LABEL_ATTRIBUTE)
                if not label:
                    label = await node.inner_text()
                label = (label or "").strip()
                if len(sample) < CLIENT_CANDIDATE_SAMPLE_SIZE:
                    sample.append(label)
                if normalize_text(label) == wanted:
                    return node.locator(CLIENT_OPTION_CLICKABLE).first, label, "exact"
            seen[:] = sample

            containers = self.scope.locator(
                CLIENT_OPTION_CONTAINER,
                has_text=re.compile(re.escape(name.strip()), re.IGNORECASE),
            )
            if await containers.count():
                item = containers.first
                label = (await item.inner_text() or "").strip()
                return item, label, "contains"
            return None

        try:
            clickable, label, match = await poll_until(
                _probe,
                timeout_ms=self.settings.client_search_timeout_ms,
                interval_ms=self.settings.poll_interval_ms,
                description=f"account option {name!r}",
            )
        except WaitTimeoutError:
            log_event(
                logger=self.logger,
                phase="account_filter",
                status="error",
                message=f"Client {name} not found",
                candidates=seen,
            )
            raise ClientNotFoundError(name, candidates=seen) from None

        await clickable.click(timeout=self.settings.click_timeout_ms)
        self.state = SELECTED
        log_event(
            logger=self.logger,
            phase="account_filter",
            message="Selected account",
            label=label,
            match=match,
        )
        return label

    async def close(self) -> None:
        try:
            await self.page.keyboard.press("Escape")
        except Exception as exc:
            log_event(
                logger=self.logger,
                phase="account_filter",
                status="warn",
                message="Escape did not dismiss the account filter",
                error=str(exc),
            )
        await asyncio.sleep(self.settings.settle.panel_close)
        self.state = CLOSED
