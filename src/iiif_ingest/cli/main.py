from __future__ import annotations

import argparse
import logging

from rich.console import Console

from iiif_ingest import __version__
from iiif_ingest.cli.commands import config_cmd, paths_cmd, run_cmd
from iiif_ingest.cli.context import CLIContext
from iiif_ingest.core.errors import IngestError
from iiif_ingest.core.logging import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="iiif-ingest",
        description="Split, convert and place inbound documents announced on a queue",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0)

    subparsers = parser.add_subparsers(dest="command", required=True)
    run_cmd.register(subparsers)
    config_cmd.register(subparsers)
    paths_cmd.register(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose, base=getattr(args, "log_base", logging.WARNING))
    console = Console()
    ctx = CLIContext(console=console)

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 2

    try:
        return handler(args, ctx)
    except IngestError as exc:
        logger.error(str(exc))
        return 1
