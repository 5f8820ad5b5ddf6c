from __future__ import annotations

import argparse

from rich.panel import Panel
from rich.table import Table

from iiif_ingest.cli.context import CLIContext
from iiif_ingest.core.errors import ConfigurationError


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("config", help="Validate the environment and show the resolved configuration")
    parser.set_defaults(handler=run_config)


def run_config(args: argparse.Namespace, ctx: CLIContext) -> int:
    try:
        config = ctx.load_config()
    except ConfigurationError as exc:
        ctx.console.print(Panel.fit(str(exc), title="Configuration", border_style="red"))
        return 1

    table = Table(title="Resolved Configuration")
    table.add_column("Setting")
    table.add_column("Value", overflow="fold")
    for name, value in config.describe():
        table.add_row(name, value)
    ctx.console.print(table)
    return 0
