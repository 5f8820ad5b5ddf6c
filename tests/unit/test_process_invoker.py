import subprocess
from pathlib import Path

import pytest

from iiif_ingest.core.config import ToolConfig
from iiif_ingest.core.errors import ProcessInvocationError
from iiif_ingest.infrastructure.process import invoker
from iiif_ingest.infrastructure.process.invoker import (
    OptionsCommand,
    ProcessInvoker,
    TemplateCommand,
    command_builder_for,
)


def test_options_command_places_options_between_input_and_output() -> None:
    builder = OptionsCommand(binary="convert", options="-quality 90  -strip")
    assert builder.build("/w/in.tif", "/w/out.jp2") == [
        "convert",
        "/w/in.tif",
        "-quality",
        "90",
        "-strip",
        "/w/out.jp2",
    ]


def test_template_command_substitutes_placeholders() -> None:
    builder = TemplateCommand(
        binary="kdu_compress",
        template="-i {IN} -o {OUT} 'Cprecincts={256,256}'",
        input_placeholder="{IN}",
        output_placeholder="{OUT}",
    )
    assert builder.build("/w/in.tif", "/w/out.jp2") == [
        "kdu_compress",
        "-i",
        "/w/in.tif",
        "-o",
        "/w/out.jp2",
        "Cprecincts={256,256}",
    ]


def test_builder_strategy_follows_configuration() -> None:
    plain = ToolConfig(binary="convert", suffix="jp2", options="-strip")
    templated = ToolConfig(
        binary="kdu_compress",
        suffix="jp2",
        command_template="-i IN -o OUT",
        input_placeholder="IN",
        output_placeholder="OUT",
    )
    assert isinstance(command_builder_for(plain), OptionsCommand)
    assert isinstance(command_builder_for(templated), TemplateCommand)


def test_invoke_returns_result_on_success(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[list[str]] = []

    def _fake_run(cmd: list[str]) -> subprocess.CompletedProcess[str]:
        seen.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="converted 1 image\n")

    monkeypatch.setattr(invoker, "_run", _fake_run)
    tool = ProcessInvoker("convert", OptionsCommand(binary="convert"))

    result = tool.invoke(Path("/w/in.tif"), Path("/w/out.jp2"), worker_id=3)

    assert seen == [["convert", "/w/in.tif", "/w/out.jp2"]]
    assert result.returncode == 0
    assert result.output == "converted 1 image"


def test_invoke_raises_on_nonzero_exit(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        invoker,
        "_run",
        lambda cmd: subprocess.CompletedProcess(cmd, 2, stdout="bad input\n"),
    )
    tool = ProcessInvoker("split", OptionsCommand(binary="tiffsplit"))

    with pytest.raises(ProcessInvocationError, match="status 2"):
        tool.invoke("/w/in.tif", "/w/in-%03d.tif")


def test_invoke_raises_when_binary_cannot_start(monkeypatch: pytest.MonkeyPatch) -> None:
    def _missing(cmd: list[str]) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    monkeypatch.setattr(invoker, "_run", _missing)
    tool = ProcessInvoker("convert", OptionsCommand(binary="/no/such/convert"))

    with pytest.raises(ProcessInvocationError, match="cannot run"):
        tool.invoke("/w/in.tif", "/w/out.jp2")
