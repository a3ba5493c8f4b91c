#!/usr/bin/env python3
"""
WebIntel - CLI entry point
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any, Optional

from .config import Settings, get_settings
from .documents import Table, read_table, results_filename, table_format, write_table
from .errors import WebIntelError
from .logging_utils import configure_logging
from .models import ENRICHMENT_COLUMNS
from .pipeline import RowScheduler, analyze_domain, analyze_rows


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="webintel",
        description="Enrich website lists with CDN, security and traffic information",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: WEBINTEL_LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_analyze = sub.add_parser("analyze", help="Enrich a .xlsx/.xlsm/.csv file")
    p_analyze.add_argument("file", help="Spreadsheet to analyze")
    p_analyze.add_argument(
        "--output", "-o", default=None, help="Output path (default: WebIntel_Results.<ext>)"
    )
    p_analyze.add_argument(
        "--workers", "-w", type=int, default=None, help="Rows analyzed in parallel (default: 5)"
    )
    p_analyze.add_argument(
        "--timeout", "-t", type=float, default=None, help="Per-detector deadline in seconds (default: 45)"
    )
    p_analyze.add_argument(
        "--json", "-j", action="store_true", help="Print enriched rows as JSON instead of writing a file"
    )

    p_domain = sub.add_parser("domain", help="CDN and WAF lookup for a single domain")
    p_domain.add_argument("domain", help="Domain or URL")
    p_domain.add_argument("--json", "-j", action="store_true", help="Output as JSON")

    p_serve = sub.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=None, help="Port (default: PORT or 5050)")

    return parser


def _settings_with(settings: Settings, workers: Optional[int], timeout: Optional[float]) -> Settings:
    changes: dict[str, Any] = {}
    if workers is not None:
        changes["max_concurrency"] = max(1, workers)
    if timeout is not None:
        changes["detector_timeout"] = timeout
    return dataclasses.replace(settings, **changes) if changes else settings


def cmd_analyze(args: argparse.Namespace, settings: Settings) -> int:
    path = Path(args.file)
    fmt = table_format(path.name)
    table = read_table(path.read_bytes(), path.name)

    scheduler = RowScheduler.from_settings(_settings_with(settings, args.workers, args.timeout))
    rows = analyze_rows(table.rows, scheduler)
    out = Table.from_rows(rows, [*table.columns, *ENRICHMENT_COLUMNS.values()])

    if args.json and not args.output:
        print(json.dumps(out.rows, indent=2, ensure_ascii=False, default=str))
        return 0

    output = Path(args.output or results_filename(fmt))
    output.write_bytes(write_table(out, table_format(output.name)))
    print(f"✅ {len(out.rows)} rows written to {output}", file=sys.stderr)
    return 0


def cmd_domain(args: argparse.Namespace, settings: Settings) -> int:
    result = analyze_domain(args.domain, RowScheduler.from_settings(settings))
    if args.json:
        print(json.dumps(result, indent=2))
    else:
        print_domain_result(result)
    return 0


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    from .api import main as serve

    serve(host=args.host, port=args.port or settings.port)
    return 0


def print_domain_result(result: dict[str, str]) -> None:
    """Print human-readable output."""
    print("\n🔍 WebIntel Report")
    print(f"{'=' * 50}")
    print(f"Domain:   {result['domain']}")
    print(f"{'=' * 50}")
    print(f"CDN:      {result['cdn']}")
    print(f"Security: {result['waf']}")


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except WebIntelError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        raise SystemExit(2) from e
    configure_logging(args.log_level or settings.log_level)

    handlers = {"analyze": cmd_analyze, "domain": cmd_domain, "serve": cmd_serve}
    try:
        exit_code = handlers[args.command](args, settings)
    except WebIntelError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        exit_code = 1
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 1

    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
