"""Newline-delimited JSON events for export sessions.

One export owns one root logger. Components receive children from
:meth:`JsonLogger.bind`, so every line carries the ``request_id`` plus
whatever the orchestrator stamped on it (``client_name``). Children write to
the root's stream and file but never close them.
"""
from __future__ import annotations

import json
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from report_exporter.errors import ExportError

__all__ = ["JsonLogger", "get_logger", "log_event", "log_export_error", "new_request_id"]


def new_request_id() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{stamp}_{uuid.uuid4().hex[:8]}"


def _default_log_file_path() -> str | None:
    from report_exporter.config import config

    raw = config.json_log_file.strip()
    return raw or None


_AUTO = object()


class _Sink:
    """Stream and optional NDJSON file shared by a root logger and its children."""

    def __init__(self, stream: TextIO, log_file_path: str | None) -> None:
        self.stream = stream
        self.log_file_path = log_file_path
        self.file_handle = open(log_file_path, "a", encoding="utf-8") if log_file_path else None
        self.closed = False

    def write(self, line: str) -> None:
        if self.closed:
            return
        self.stream.write(line + "\n")
        self.stream.flush()
        if self.file_handle:
            self.file_handle.write(line + "\n")
            self.file_handle.flush()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.file_handle:
            self.file_handle.close()
            self.file_handle = None


class JsonLogger:
    """Emit one JSON object per line to stdout (or ``stream``) and the log file."""

    def __init__(
        self,
        request_id: Optional[str] = None,
        stream: TextIO | None = None,
        *,
        log_file_path: str | None | object = _AUTO,
        _sink: _Sink | None = None,
    ):
        self.request_id = request_id or new_request_id()
        self.default_context: Dict[str, Any] = {"request_id": self.request_id}
        self._is_root = _sink is None
        if _sink is None:
            raw_path = _default_log_file_path() if log_file_path is _AUTO else log_file_path
            _sink = _Sink(stream or sys.stdout, self._resolve_path(raw_path))
        self._sink = _sink

    def bind(self, **kwargs: Any) -> "JsonLogger":
        child = JsonLogger(request_id=self.request_id, _sink=self._sink)
        child.default_context = {**self.default_context, **kwargs}
        return child

    @staticmethod
    def _resolve_path(raw_path: Any) -> str | None:
        if not raw_path:
            return None
        path = Path(str(raw_path)).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)

    @property
    def log_file_path(self) -> str | None:
        return self._sink.log_file_path

    @property
    def closed(self) -> bool:
        return self._sink.closed

    def info(self, *, phase: str, status: str = "ok", message: str = "", **fields: Any) -> None:
        event = {**self.default_context, "phase": phase, "status": status, "message": message, **fields}
        event.setdefault("ts", datetime.now(timezone.utc).isoformat())
        self._sink.write(json.dumps(event, default=str, ensure_ascii=False))

    def close(self) -> None:
        """Close the shared sink; a no-op on bound children."""

        if self._is_root:
            self._sink.close()


def get_logger(request_id: Optional[str] = None) -> JsonLogger:
    return JsonLogger(request_id=request_id)


def log_event(*, logger: JsonLogger, phase: str, status: str = "ok", message: str = "", **extras: Any) -> None:
    logger.info(phase=phase, status=status, message=message, **extras)


def log_export_error(*, logger: JsonLogger, error: ExportError, phase: str) -> None:
    """Emit the single error line for a failed export: kind, stage and details."""

    log_event(
        logger=logger,
        phase=phase,
        status="error",
        message=error.message,
        error_kind=error.kind,
        stage=error.stage,
        details=error.details or None,
    )
