import io
import logging
from pathlib import Path

from rich.console import Console

from iiif_ingest.cli.context import CLIContext
from iiif_ingest.cli.main import build_parser
from iiif_ingest.core.logging import level_for_verbosity


def _ctx(env: dict[str, str] | None = None) -> tuple[CLIContext, io.StringIO]:
    buffer = io.StringIO()
    console = Console(file=buffer, width=200, color_system=None)
    return CLIContext(console=console, env=env or {}), buffer


def test_paths_command_previews_partitioned_destination() -> None:
    args = build_parser().parse_args(["paths", "c0002345.tif", "--partition"])
    ctx, buffer = _ctx()

    assert args.handler(args, ctx) == 0

    output = buffer.getvalue()
    assert "00/02/34/5" in output
    assert "00/02/34/5/c0002345.jp2" in output


def test_config_command_reports_problems() -> None:
    args = build_parser().parse_args(["config"])
    ctx, buffer = _ctx({"IIIF_INGEST_WORKERS": "0"})

    assert args.handler(args, ctx) == 1
    assert "IIIF_INGEST_IN_QUEUE" in buffer.getvalue()


def test_config_command_prints_resolved_settings(tmp_path: Path) -> None:
    env = {
        "IIIF_INGEST_IN_QUEUE": "iiif-inbound",
        "IIIF_INGEST_QUEUE_POLL_TIMEOUT": "10",
        "IIIF_INGEST_WORK_DIR": str(tmp_path),
        "IIIF_INGEST_WORK_QUEUE_SIZE": "1",
        "IIIF_INGEST_WORKERS": "1",
        "IIIF_INGEST_CONVERT_BIN": "convert",
        "IIIF_INGEST_CONVERT_SUFFIX": "jp2",
        "IIIF_INGEST_OUTPUT_BUCKET": "iiif-images",
    }
    args = build_parser().parse_args(["config"])
    ctx, buffer = _ctx(env)

    assert args.handler(args, ctx) == 0
    output = buffer.getvalue()
    assert "Resolved Configuration" in output
    assert "iiif-images" in output


def test_run_command_defaults_to_info_logging() -> None:
    args = build_parser().parse_args(["run", "--max-notifications", "3"])
    assert args.log_base == logging.INFO
    assert args.max_notifications == 3


def test_verbosity_lowers_level_but_not_below_debug() -> None:
    assert level_for_verbosity(0) == logging.WARNING
    assert level_for_verbosity(1) == logging.INFO
    assert level_for_verbosity(5) == logging.DEBUG
    assert level_for_verbosity(1, base=logging.INFO) == logging.DEBUG
