import io
import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from report_exporter.dashboard_export.json_logger import JsonLogger  # noqa: E402
from report_exporter.dashboard_export.settings import ExportSettings  # noqa: E402
from tests.dashboard_export.fake_dom import fast_settings  # noqa: E402


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO) -> JsonLogger:
    return JsonLogger(request_id="test-run", stream=log_stream, log_file_path=None)


@pytest.fixture
def read_logs(log_stream: io.StringIO):
    def _read() -> list[dict]:
        return [json.loads(line) for line in log_stream.getvalue().splitlines() if line.strip()]

    return _read


@pytest.fixture
def settings() -> ExportSettings:
    return fast_settings()
