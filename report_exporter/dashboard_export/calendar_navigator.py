"""Month-by-month navigation of the date range picker calendars."""
from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from report_exporter.common.date_utils import CalendarDate
from report_exporter.errors import SelectorExhaustedError

from .json_logger import JsonLogger, log_event
from .page_selectors import (
    CALENDAR_HEADER_PATTERN,
    DATE_FIELD_CONTAINER_XPATH,
    MAX_CALENDAR_STEPS,
    MAX_DAY_CELLS,
    MONTH_ABBREVIATIONS,
    OUTSIDE_MONTH_CLASS_MARKERS,
)
from .selector_chain import SelectorChain
from .settings import ExportSettings

__all__ = ["CalendarNavigator", "CalendarResult", "parse_calendar_header"]

_HEADER_RE = re.compile(CALENDAR_HEADER_PATTERN, re.IGNORECASE)


def parse_calendar_header(text: Optional[str]) -> Optional[Tuple[int, int]]:
    """Return ``(month, year)`` for headers such as ``"DEZ. DE 2025"``."""

    if not text:
        return None
    for match in _HEADER_RE.finditer(text):
        month = MONTH_ABBREVIATIONS.get(match.group(1).upper())
        if month:
            return month, int(match.group(2))
    return None


async def _outside_month(cell: Any) -> bool:
    if (await cell.get_attribute("aria-disabled") or "").lower() == "true":
        return True
    classes = (await cell.get_attribute("class") or "").lower()
    return any(marker in classes for marker in OUTSIDE_MONTH_CLASS_MARKERS)


@dataclass(frozen=True)
class CalendarResult:
    field_label: str
    converged: bool
    steps: int
    displayed: Optional[Tuple[int, int]]


class CalendarNavigator:
    def __init__(self, chain: SelectorChain, *, settings: ExportSettings, logger: JsonLogger) -> None:
        self.chain = chain
        self.settings = settings
        self.logger = logger

    async def _in_month_day(self, container: Any, day: int) -> Any:
        """First visible day button labelled ``day`` that belongs to the shown month."""

        cells = container.get_by_role("button", name=re.compile(rf"^\s*{day}\s*$"))
        try:
            count = min(await cells.count(), MAX_DAY_CELLS)
            for idx in range(count):
                cell = cells.nth(idx)
                if await cell.is_visible() and not await _outside_month(cell):
                    return cell
        except Exception as exc:
            log_event(
                logger=self.logger,
                phase="calendar",
                status="warn",
                message="Could not inspect day cells; using the selector chain",
                day=day,
                error=str(exc),
            )
        return None

    async def _field_container(self, scope: Any, field_label: str) -> Any:
        label = await self.chain.click(
            scope,
            "date_field_label",
            label=field_label,
            timeout_ms=self.settings.selector_timeout_ms,
        )
        await asyncio.sleep(self.settings.settle.calendar_open)
        try:
            container = label.locator(DATE_FIELD_CONTAINER_XPATH).first
            if await container.count():
                return container
        except Exception as exc:
            log_event(
                logger=self.logger,
                phase="calendar",
                status="warn",
                message="Could not read the date field container",
                field=field_label,
                error=str(exc),
            )
        log_event(
            logger=self.logger,
            phase="calendar",
            status="warn",
            message="Date field has no own calendar container; using the dialog scope",
            field=field_label,
        )
        return scope

    async def _read_header(self, container: Any) -> Optional[Tuple[int, int]]:
        try:
            header = container.get_by_text(_HEADER_RE).first
            if not await header.count():
                return None
            text = await header.text_content(timeout=self.settings.strategy_probe_timeout_ms)
        except Exception:
            return None
        return parse_calendar_header(text)

    async def set_date(self, scope: Any, field_label: str, target: CalendarDate) -> CalendarResult:
        """Bring the calendar under ``field_label`` to ``target`` and click its day.

        Navigation is best effort: an unreadable header, a missing arrow or
        running out of steps falls through to the day click.
        """

        container = await self._field_container(scope, field_label)
        steps = 0
        converged = False
        displayed = await self._read_header(container)

        while steps < MAX_CALENDAR_STEPS:
            if displayed is None:
                log_event(
                    logger=self.logger,
                    phase="calendar",
                    status="warn",
                    message="Calendar header unreadable; stopping navigation",
                    field=field_label,
                    steps=steps,
                )
                break
            month, year = displayed
            current = year * 12 + month
            if current == target.ordinal:
                converged = True
                break
            arrow = "calendar_next" if current < target.ordinal else "calendar_previous"
            try:
                await self.chain.click(container, arrow, timeout_ms=0)
            except SelectorExhaustedError:
                log_event(
                    logger=self.logger,
                    phase="calendar",
                    status="warn",
                    message=f"No {arrow} arrow found; stopping navigation",
                    field=field_label,
                    steps=steps,
                )
                break
            steps += 1
            await asyncio.sleep(self.settings.settle.calendar_step)
            displayed = await self._read_header(container)
        else:
            converged = displayed is not None and displayed[1] * 12 + displayed[0] == target.ordinal

        if not converged:
            log_event(
                logger=self.logger,
                phase="calendar",
                status="warn",
                message="Calendar did not reach the target month; clicking the day anyway",
                field=field_label,
                displayed=displayed,
                target=f"{target.month:02d}/{target.year}",
                steps=steps,
            )

        cell = await self._in_month_day(container, target.day)
        if cell is not None:
            await cell.click(timeout=self.settings.click_timeout_ms)
        else:
            await self.chain.click(
                container,
                "calendar_day",
                label=str(target.day),
                timeout_ms=self.settings.selector_timeout_ms,
            )
        await asyncio.sleep(self.settings.settle.day_click)
        log_event(
            logger=self.logger,
            phase="calendar",
            message=f"Set {field_label}",
            field=field_label,
            day=target.day,
            month=target.month,
            year=target.year,
            steps=steps,
            converged=converged,
        )
        return CalendarResult(field_label=field_label, converged=converged, steps=steps, displayed=displayed)
