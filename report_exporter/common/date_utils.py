"""Parsing helpers for the report period dates."""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any

from report_exporter.errors import InvalidInputError

__all__ = ["CalendarDate", "parse_calendar_date", "format_calendar_date"]

_ISO_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_BR_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


@dataclass(frozen=True, slots=True)
class CalendarDate:
    day: int
    month: int
    year: int

    @property
    def ordinal(self) -> int:
        """Month ordinal used to compare calendar pages (``year * 12 + month``)."""

        return self.year * 12 + self.month

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)

    @classmethod
    def from_date(cls, value: date) -> "CalendarDate":
        return cls(day=value.day, month=value.month, year=value.year)


def parse_calendar_date(value: Any) -> CalendarDate:
    """Parse ``YYYY-MM-DD`` or ``DD/MM/YYYY`` into a :class:`CalendarDate`.

    Anything else, including impossible dates such as ``2025-02-30``, raises
    :class:`InvalidInputError`.
    """

    if isinstance(value, CalendarDate):
        return value
    if isinstance(value, date):
        return CalendarDate.from_date(value)

    raw = str(value or "").strip()
    if not raw:
        raise InvalidInputError("Date value is empty; use YYYY-MM-DD or DD/MM/YYYY")

    match = _ISO_PATTERN.match(raw)
    if match:
        year, month, day = (int(part) for part in match.groups())
    else:
        match = _BR_PATTERN.match(raw)
        if not match:
            raise InvalidInputError(
                f"Invalid date {raw!r}; use YYYY-MM-DD or DD/MM/YYYY",
                details={"value": raw},
            )
        day, month, year = (int(part) for part in match.groups())

    try:
        date(year, month, day)
    except ValueError as exc:
        raise InvalidInputError(
            f"Invalid date {raw!r}: {exc}",
            details={"value": raw},
        ) from exc
    return CalendarDate(day=day, month=month, year=year)


def format_calendar_date(value: CalendarDate, style: str = "iso") -> str:
    if style == "iso":
        return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
    if style == "br":
        return f"{value.day:02d}/{value.month:02d}/{value.year:04d}"
    raise ValueError(f"Unknown date style {style!r}")
