from __future__ import annotations

from report_exporter.dashboard_export.cli import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
