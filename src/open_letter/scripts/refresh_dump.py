"""Run one ingestion of the NationStates daily dump from the command line.

Intended for cron or a one-off refresh:

    open-letter-refresh-dump --batch-size 1000

Exit code:
  0 = the dump was ingested
  1 = the run failed (details are logged)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from open_letter.core.settings import settings
from open_letter.services.dump_ingest import (
    DumpIngestionPipeline,
    load_dump_ingestion_config,
)

logger = logging.getLogger("open_letter.scripts.refresh_dump")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Download the NationStates nations dump and refresh the nation cache",
    )
    parser.add_argument("--url", default=None, help="Override the dump URL")
    parser.add_argument(
        "--download-dir",
        default=None,
        help="Directory for the transient dump file (defaults to the system temp dir)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Number of nations written per upsert statement",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall time limit for the run, in seconds",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (default: %(default)s)",
    )
    return parser


def build_pipeline(args: argparse.Namespace) -> DumpIngestionPipeline:
    """Create a pipeline from settings with any command-line overrides applied."""
    config = load_dump_ingestion_config()
    overrides: dict[str, object] = {}
    if args.url:
        overrides["dump_url"] = args.url
    if args.download_dir:
        overrides["download_dir"] = Path(args.download_dir)
    if args.batch_size is not None:
        overrides["batch_size"] = max(1, args.batch_size)
    if args.timeout is not None:
        overrides["timeout_seconds"] = args.timeout
    return DumpIngestionPipeline(replace(config, **overrides))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    result = asyncio.run(build_pipeline(args).run())
    if result.success:
        logger.info("%s", result.message)
        return 0
    logger.error("%s", result.message)
    return 1


if __name__ == "__main__":
    sys.exit(main())
