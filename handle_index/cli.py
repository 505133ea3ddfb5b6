# ==================================================
# handle_index/cli.py
# ==================================================
"""ts-db: build and query the user id <-> screen name index."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from loguru import logger

from .config import resolve_config
from .errors import HandleIndexError
from .ingest import import_lines, ingest_archive
from .mapping import Mapping

_LEVELS = ("WARNING", "INFO", "DEBUG", "TRACE")


def init_logging(verbose: int) -> None:
    level = _LEVELS[min(max(verbose, 0), len(_LEVELS) - 1)]
    logger.remove()
    logger.add(sys.stderr, level=level)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ts-db", description=__doc__)
    p.add_argument("-v", "--verbose", action="count", default=0,
                   help="level of verbosity (repeat for more)")
    p.add_argument("-p", "--path", help="path to the index directory")
    p.add_argument("-c", "--config", type=Path, help="YAML configuration file")

    sub = p.add_subparsers(dest="command", required=True)
    user_info = sub.add_parser("user-info", help="index the users in a .tar or .zip archive")
    user_info.add_argument("archive")
    user_info.add_argument("--skip-errors", action="store_true", default=None,
                           help="skip malformed records instead of stopping")
    by_name = sub.add_parser("query-screen-name", help="print the ids seen with a screen name")
    by_name.add_argument("value")
    by_id = sub.add_parser("query-user-id", help="print the screen names seen for an id")
    by_id.add_argument("value", type=int)
    sub.add_parser("import", help="read id,screen_name lines from stdin")
    sub.add_parser("stats", help="print key counts")
    sub.add_parser("compact", help="merge every key down to one value")
    return p


def run(args: argparse.Namespace) -> None:
    config = resolve_config(args.config).with_overrides(
        path=args.path, skip_errors=getattr(args, "skip_errors", None))

    with Mapping.from_config(config) as db:
        if args.command == "user-info":
            ingest_archive(db, args.archive, skip_errors=config.skip_errors)
        elif args.command == "query-user-id":
            for screen_name in db.lookup_by_id(args.value):
                print(screen_name)
        elif args.command == "query-screen-name":
            for user_id in db.lookup_by_screen_name(args.value):
                print(user_id)
        elif args.command == "stats":
            print(f"Estimated total key count: {db.get_estimated_key_count()}")
            id_keys, screen_name_keys = db.get_key_counts()
            print(f"User ID keys: {id_keys}\nScreen name keys: {screen_name_keys}")
        elif args.command == "import":
            count = import_lines(db, sys.stdin)
            logger.info("Imported {} pairs", count)
        elif args.command == "compact":
            count = db.compact()
            logger.info("Compacted {} keys", count)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    init_logging(args.verbose)
    try:
        run(args)
    except HandleIndexError as exc:
        print(f"ts-db: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
