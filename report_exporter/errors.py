"""Error taxonomy for dashboard report exports.

Every failure surfaced by an export carries a stable ``kind`` so the calling
boundary can map it to a response without inspecting messages. The
orchestrator stamps ``stage`` (and ``snapshot`` when one was captured) before
re-raising.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

__all__ = [
    "ExportError",
    "InvalidInputError",
    "WaitTimeoutError",
    "SelectorExhaustedError",
    "ClientNotFoundError",
    "LoginRequiredError",
    "DownloadFailureError",
    "AutomationError",
]


class ExportError(RuntimeError):
    """Base class for every export failure."""

    kind = "export_error"

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.details: Dict[str, Any] = dict(details or {})
        self.snapshot: Any = None

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.kind,
            "message": self.message,
            "stage": self.stage,
        }
        if self.details:
            payload["details"] = self.details
        if self.snapshot is not None:
            describe = getattr(self.snapshot, "describe", None)
            payload["diagnostics"] = describe() if callable(describe) else str(self.snapshot)
        return payload


class InvalidInputError(ExportError, ValueError):
    """Malformed or missing request fields. Never retried, no browser launched."""

    kind = "invalid_input"


class WaitTimeoutError(ExportError):
    """A bounded wait ran out before its condition held."""

    kind = "timeout"

    def __init__(
        self,
        target: str,
        *,
        elapsed_ms: int,
        last_error: BaseException | None = None,
        stage: str | None = None,
    ) -> None:
        details: Dict[str, Any] = {"target": target, "elapsed_ms": elapsed_ms}
        if last_error is not None:
            details["last_error"] = repr(last_error)
        super().__init__(
            f"Timed out after {elapsed_ms} ms waiting for {target}",
            stage=stage,
            details=details,
        )
        self.target = target
        self.elapsed_ms = elapsed_ms
        self.last_error = last_error


class SelectorExhaustedError(ExportError):
    """Every strategy configured for a logical UI target failed."""

    kind = "selector_exhausted"

    def __init__(self, logical_target: str, *, attempts: Iterable[Dict[str, Any]] = ()) -> None:
        attempt_list = [dict(attempt) for attempt in attempts]
        super().__init__(
            f"No selector strategy located {logical_target!r}",
            details={"logical_target": logical_target, "attempts": attempt_list},
        )
        self.logical_target = logical_target
        self.attempts = attempt_list


class ClientNotFoundError(ExportError):
    """The account list never showed an exact or substring match."""

    kind = "client_not_found"

    def __init__(self, client_name: str, *, candidates: Iterable[str] = ()) -> None:
        sample = list(candidates)
        super().__init__(
            f"Client {client_name!r} not found in the account filter",
            details={"client_name": client_name, "candidates": sample},
        )
        self.client_name = client_name
        self.candidates = sample


class LoginRequiredError(ExportError):
    """The dashboard URL rendered a sign-in or consent wall."""

    kind = "login_required"

    def __init__(self, message: str = "Dashboard requires sign-in; make the report link public", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class DownloadFailureError(ExportError):
    """The export never became downloadable or its payload was unusable."""

    kind = "download_failure"


class AutomationError(ExportError):
    """A browser-automation failure outside the taxonomy above."""

    kind = "automation_error"
