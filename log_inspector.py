"""CLI log inspector — list lograil log files, show parsed entries, summarize health."""

import argparse
import json
import logging
import os
import sys

from lograil.config import load_config
from lograil.health import health_indicator
from lograil.inspector import entry_to_dict, list_log_files, summarize_health
from lograil.parsing import parse_log_file

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    config = load_config()
    parser = argparse.ArgumentParser(
        prog="lograil-inspect",
        description="Inspect lograil log files",
    )
    parser.add_argument("--base-dir", default=config.base_dir,
                        help="Base directory holding the logs/ tree")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List log files and archives")

    show = sub.add_parser("show", help="Show parsed entries of a log file")
    show.add_argument("file", help="Log file path")
    show.add_argument("--json", action="store_true", help="Emit NDJSON, one entry per line")

    health = sub.add_parser("health", help="Summarize health per context id")
    health.add_argument("file", help="Log file path")
    return parser


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def _load(path: str):
    try:
        result = parse_log_file(path)
    except FileNotFoundError:
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    for err in result.errors:
        logger.warning("Parse error: %s", err)
    return result


def cmd_list(args):
    config = load_config()
    files = list_log_files(args.base_dir, config.paths.logs_subdir, config.files.log_file_extension)
    if not files:
        print("No log files found.")
        return
    logs_dir = os.path.join(args.base_dir, config.paths.logs_subdir)
    for name in files:
        size = os.path.getsize(os.path.join(logs_dir, name))
        print(f"  {name}  ({_format_size(size)})")


def cmd_show(args):
    result = _load(args.file)
    for entry in result.entries:
        if args.json:
            print(json.dumps(entry_to_dict(entry), ensure_ascii=False))
            continue
        ts = entry.timestamp.strftime("%Y-%m-%d %H:%M:%S") if entry.timestamp else "?"
        print(f"[{ts}] {entry.level:<9} {entry.component}  {entry.normalized_health:>4}%  {entry.event}")


def cmd_health(args):
    config = load_config()
    result = _load(args.file)
    summaries = summarize_health(result.entries)
    if not summaries:
        print("No entries found.")
        return
    for summary in summaries.values():
        indicator = health_indicator(summary.normalized_health, config.health.ranges)
        levels = ", ".join(f"{level}={count}" for level, count in sorted(summary.levels.items()))
        print(f"  {summary.context_id}  {summary.component}")
        print(f"    entries: {summary.entries}  ({levels})")
        print(f"    health: {summary.normalized_health}% (raw: {summary.raw_health}) {indicator}")


COMMANDS = {
    "list": cmd_list,
    "show": cmd_show,
    "health": cmd_health,
}


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [lograil] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    parser = build_parser()
    args = parser.parse_args(argv)
    COMMANDS[args.command](args)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
