"""Command-line inspector for errors stored locally by the API error sentinel."""

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace

from error_sentinel.config import MODE_LOCAL, load_config
from error_sentinel.engine import SentinelEngine
from error_sentinel.errors import ConfigurationError
from error_sentinel.formatter import format_table, teams_deep_link
from error_sentinel.inspector import ErrorInspector

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect errors captured by the API error sentinel",
    )
    parser.add_argument("--config", metavar="FILE", help="YAML settings file")
    parser.add_argument("--db-path", help="SQLite file holding local errors")
    parser.add_argument("--max-local-errors", type=int, help="Local store capacity")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List stored errors")
    report = sub.add_parser("report", help="Print stored errors grouped by team")
    report.add_argument(
        "--teams",
        action="store_true",
        help="Print a Teams link pre-filled with the report instead",
    )
    export = sub.add_parser("export", help="Export stored errors as JSON")
    export.add_argument("--output", metavar="FILE", help="Write to FILE instead of stdout")
    sub.add_parser("clear", help="Delete all stored errors")
    time_range = sub.add_parser("range", help="List errors between two timestamps (ms)")
    time_range.add_argument("--start", type=int, required=True)
    time_range.add_argument("--end", type=int, required=True)
    return parser


async def run(args, config) -> int:
    engine = SentinelEngine(config)
    await engine.start()
    inspector = ErrorInspector()
    engine.attach_inspector(inspector)

    try:
        if args.command == "list":
            print(await inspector.render())
        elif args.command == "report":
            report = await inspector.render_report()
            if not args.teams:
                print(report or "No errors recorded.")
            elif not config.teams_channel_url:
                logger.error("No Teams channel URL configured (teams_channel_url)")
                return 1
            elif not report:
                print("No errors recorded.")
            else:
                print(teams_deep_link(config.teams_channel_url, report))
        elif args.command == "export":
            if args.output:
                count = await engine.export_to_file(args.output)
                print(f"Exported {count} error(s) to {args.output}")
            else:
                print(await engine.export_local_errors())
        elif args.command == "clear":
            await inspector.clear()
            print("Cleared stored errors.")
        elif args.command == "range":
            errors = await engine.get_errors_by_time_range(args.start, args.end)
            print(format_table(errors))
    finally:
        engine.destroy()
    return 0


def main(argv=None):
    logging.basicConfig(
        level=os.environ.get("SENTINEL_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    argv = sys.argv[1:] if argv is None else argv
    args = build_parser().parse_args(argv)

    try:
        config = load_config(argv)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    # The inspector always reads the durable local store
    config = replace(config, mode=MODE_LOCAL, durable=True)
    return asyncio.run(run(args, config))


if __name__ == "__main__":
    sys.exit(main())
