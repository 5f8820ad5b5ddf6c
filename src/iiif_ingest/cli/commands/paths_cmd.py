from __future__ import annotations

import argparse

from rich.table import Table

from iiif_ingest.cli.context import CLIContext
from iiif_ingest.core.naming import destination_relpath, document_id_from_filename, partition_directory


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("paths", help="Preview destination paths for document identifiers or file names")
    parser.add_argument("names", nargs="+", help="Identifiers or source file names (e.g. c0002345.tif)")
    parser.add_argument("--partition", action="store_true", help="Partition the output directory")
    parser.add_argument("--suffix", default="jp2", help="Converted file suffix (default: jp2)")
    parser.set_defaults(handler=run_paths)


def run_paths(args: argparse.Namespace, ctx: CLIContext) -> int:
    suffix = args.suffix.lstrip(".")
    out = Table(title="Destination Paths")
    out.add_column("Identifier")
    out.add_column("Directory")
    out.add_column("Destination", overflow="fold")
    for name in args.names:
        document_id = document_id_from_filename(name)
        out.add_row(
            document_id,
            partition_directory(document_id, args.partition),
            destination_relpath(document_id, name, convert_suffix=suffix, partition=args.partition),
        )
    ctx.console.print(out)
    return 0
