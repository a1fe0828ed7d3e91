from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from report_exporter.errors import ExportError, InvalidInputError

from .json_logger import get_logger, new_request_id


async def _run_async(args: argparse.Namespace) -> int:
    from .orchestrator import export_report_artifact
    from .settings import ExportSettings

    request_id = args.request_id or new_request_id()
    logger = get_logger(request_id=request_id)
    overrides: dict[str, object] = {}
    if args.strict_selectors:
        overrides["allow_unreliable_strategies"] = False
    if args.headed:
        overrides["headless"] = False

    payload = {
        "dashboard_url": args.url,
        "client_name": args.client,
        "start_date": args.start,
        "end_date": args.end,
        "file_name": args.file_name,
    }
    try:
        settings = ExportSettings.from_config(**overrides)
        artifact = await export_report_artifact(payload, settings=settings, logger=logger)
    except ExportError as exc:
        print(json.dumps(exc.to_dict(), ensure_ascii=False, default=str), file=sys.stderr)
        return 2 if isinstance(exc, InvalidInputError) else 1
    finally:
        logger.close()

    output = Path(args.output) if args.output else Path(artifact.file_name)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(artifact.content)
    print(str(output), flush=True)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="report_exporter", description="Export a dashboard report as PDF")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Export one account/period report and exit")
    export_parser.add_argument("--url", required=True, help="Public dashboard URL")
    export_parser.add_argument("--client", required=True, help="Account name as shown in the filter")
    export_parser.add_argument("--start", required=True, help="Start date (YYYY-MM-DD or DD/MM/YYYY)")
    export_parser.add_argument("--end", required=True, help="End date (YYYY-MM-DD or DD/MM/YYYY)")
    export_parser.add_argument("--output", default=None, help="Where to write the PDF")
    export_parser.add_argument("--file-name", dest="file_name", default=None, help="Override the report file name")
    export_parser.add_argument("--request-id", dest="request_id", default=None, help="Override generated request id")
    export_parser.add_argument(
        "--strict-selectors",
        dest="strict_selectors",
        action="store_true",
        help="Never fall back to the fixed-coordinate click for the export menu",
    )
    export_parser.add_argument("--headed", action="store_true", help="Show the browser window")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "export":
        return asyncio.run(_run_async(args))

    parser.error("Unknown command")
    return 1
