"""
ccem-usage: token usage and cost summary for coding-assistant session logs.

Example:
  ccem-usage                      # full incremental pass, text report
  ccem-usage --cached --line      # instant one-line summary from the last pass
  ccem-usage --format json
  ccem-usage --cached --heatmap   # daily calendar heatmap
  ccem-usage --serve --port 8765  # HTTP API
"""

import argparse
import asyncio
import shutil
import sys

from ccem.config import settings
from ccem.observability.logger import get_logger, setup_logging
from ccem.usage.engine import UsageEngine
from ccem.usage.errors import UsageAborted
from ccem.usage.report import render_calendar_heatmap, render_usage_detail, render_usage_line

log = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ccem-usage", description="Token usage and cost statistics")
    parser.add_argument("--cached", action="store_true", help="Aggregate the last saved cache only, no parsing")
    parser.add_argument("--format", choices=["text", "markdown", "json"], default="text", help="Report format")
    parser.add_argument("--line", action="store_true", help="Print the one-line summary instead of the report")
    parser.add_argument("--heatmap", action="store_true", help="Print the daily calendar heatmap instead of the report")
    parser.add_argument("--months", type=int, default=6, help="Months of history in the heatmap")
    parser.add_argument("--serve", action="store_true", help="Run the HTTP API")
    parser.add_argument("--host", default=settings.api_host)
    parser.add_argument("--port", type=int, default=settings.api_port)
    parser.add_argument("--log-level", default=settings.log_level)
    return parser


def run(args: argparse.Namespace, engine: UsageEngine, out=sys.stdout) -> int:
    if args.cached:
        stats = engine.snapshot_from_cache()
        if stats is None:
            print("No usage data available", file=sys.stderr)
            return 1
    else:
        try:
            stats = asyncio.run(engine.compute_snapshot())
        except UsageAborted:
            print("Usage pass aborted", file=sys.stderr)
            return 130

    if args.line:
        width = shutil.get_terminal_size((80, 24)).columns
        out.write(render_usage_line(stats, width=width) + "\n")
    elif args.heatmap:
        out.write(render_calendar_heatmap(stats, months=args.months) + "\n")
    else:
        out.write(render_usage_detail(stats, fmt=args.format) + "\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, settings.log_json)

    if args.serve:
        import uvicorn

        uvicorn.run("ccem.main:app", host=args.host, port=args.port)
        return 0

    engine = UsageEngine.from_settings(settings)
    try:
        return run(args, engine)
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
