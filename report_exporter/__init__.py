"""Top-level package for exporting dashboard reports as PDF."""

from typing import Any

__all__ = ["export_report", "export_report_artifact", "ExportRequest"]


def __getattr__(name: str) -> Any:
    if name in {"export_report", "export_report_artifact"}:
        from report_exporter.dashboard_export import orchestrator

        return getattr(orchestrator, name)
    if name == "ExportRequest":
        from report_exporter.request import ExportRequest

        return ExportRequest
    raise AttributeError(name)
