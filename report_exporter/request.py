from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from report_exporter.common.date_utils import CalendarDate, parse_calendar_date
from report_exporter.errors import InvalidInputError

__all__ = ["ExportRequest"]


class ExportRequest(BaseModel):
    """One export: which dashboard, which account and which period."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
        arbitrary_types_allowed=True,
    )

    dashboard_url: str = Field(
        validation_alias=AliasChoices("dashboard_url", "dashboardUrl", "looker_url", "lookerUrl"),
        min_length=1,
    )
    client_name: str = Field(
        validation_alias=AliasChoices("client_name", "clientName"),
        min_length=1,
    )
    start_date: CalendarDate = Field(validation_alias=AliasChoices("start_date", "startDate"))
    end_date: CalendarDate = Field(validation_alias=AliasChoices("end_date", "endDate"))
    file_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("file_name", "fileName"),
    )

    @field_validator("dashboard_url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("dashboard URL must start with http:// or https://")
        return value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> CalendarDate:
        return parse_calendar_date(value)

    @field_validator("file_name")
    @classmethod
    def _blank_file_name(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @model_validator(mode="after")
    def _ordered_period(self) -> "ExportRequest":
        if self.start_date.to_date() > self.end_date.to_date():
            raise ValueError("start date is after end date")
        return self

    @classmethod
    def from_payload(cls, payload: Any) -> "ExportRequest":
        """Validate a raw mapping, raising :class:`InvalidInputError` on any problem."""

        if isinstance(payload, cls):
            return payload
        if not isinstance(payload, Mapping):
            raise InvalidInputError(
                "Export request must be a mapping",
                stage="init",
                details={"received": type(payload).__name__},
            )
        try:
            return cls.model_validate(dict(payload))
        except ValidationError as exc:
            raise _as_invalid_input(exc) from exc


def _as_invalid_input(exc: ValidationError) -> InvalidInputError:
    missing: List[str] = []
    problems: List[Dict[str, Any]] = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "request"
        if error.get("type") == "missing":
            missing.append(field)
            continue
        message = str(error.get("msg", "invalid value"))
        problems.append({"field": field, "message": message.removeprefix("Value error, ")})

    if missing:
        message = "Missing required fields: " + ", ".join(missing)
    else:
        message = "; ".join(f"{problem['field']}: {problem['message']}" for problem in problems)
    details: Dict[str, Any] = {}
    if missing:
        details["missing"] = missing
    if problems:
        details["errors"] = problems
    return InvalidInputError(message, stage="init", details=details)
