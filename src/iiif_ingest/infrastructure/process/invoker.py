"""Run external split/convert binaries.

Commands are built by one of two strategies, chosen by the shape of the tool
configuration: a templated command line with input/output placeholder tokens,
or fixed ``binary input [options...] output`` arguments.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from iiif_ingest.core.config import ToolConfig
from iiif_ingest.core.errors import ProcessInvocationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TemplateCommand:
    binary: str
    template: str
    input_placeholder: str
    output_placeholder: str

    def build(self, input_path: str, output_path: str) -> list[str]:
        args = []
        for arg in shlex.split(self.template):
            arg = arg.replace(self.input_placeholder, input_path)
            arg = arg.replace(self.output_placeholder, output_path)
            args.append(arg)
        return [self.binary, *args]


@dataclass(frozen=True, slots=True)
class OptionsCommand:
    binary: str
    options: str = ""

    def build(self, input_path: str, output_path: str) -> list[str]:
        return [self.binary, input_path, *self.options.split(), output_path]


CommandBuilder = TemplateCommand | OptionsCommand


def command_builder_for(tool: ToolConfig) -> CommandBuilder:
    if tool.uses_template:
        return TemplateCommand(
            binary=tool.binary,
            template=tool.command_template,
            input_placeholder=tool.input_placeholder,
            output_placeholder=tool.output_placeholder,
        )
    return OptionsCommand(binary=tool.binary, options=tool.options)


@dataclass(frozen=True, slots=True)
class InvocationResult:
    command: list[str]
    returncode: int
    output: str
    elapsed_seconds: float


class ProcessInvoker:
    def __init__(self, name: str, builder: CommandBuilder) -> None:
        self.name = name
        self.builder = builder

    @classmethod
    def for_tool(cls, name: str, tool: ToolConfig) -> "ProcessInvoker":
        return cls(name, command_builder_for(tool))

    def invoke(self, input_path: Path | str, output_path: Path | str, *, worker_id: int = 0) -> InvocationResult:
        cmd = self.builder.build(str(input_path), str(output_path))
        logger.debug("[worker %d] %s command \"%s\"", worker_id, self.name, shlex.join(cmd))

        started = time.perf_counter()
        try:
            proc = _run(cmd)
        except OSError as exc:
            logger.error("[worker %d] %s of %s failed to start (%s)", worker_id, self.name, input_path, exc)
            raise ProcessInvocationError(f"{self.name}: cannot run {cmd[0]} ({exc})") from exc
        elapsed = time.perf_counter() - started
        output = (proc.stdout or "").strip()

        if proc.returncode != 0:
            logger.error(
                "[worker %d] %s of %s failed (exit=%s)", worker_id, self.name, input_path, proc.returncode
            )
            if output:
                logger.error("[worker %d] %s output [%s]", worker_id, self.name, output)
            raise ProcessInvocationError(
                f"{self.name}: {cmd[0]} exited with status {proc.returncode} for {input_path}"
            )

        logger.info("[worker %d] %s complete in %0.2f seconds", worker_id, self.name, elapsed)
        if output:
            logger.debug("[worker %d] %s output [%s]", worker_id, self.name, output)
        return InvocationResult(command=cmd, returncode=proc.returncode, output=output, elapsed_seconds=elapsed)


def _run(cmd: list[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        errors="replace",
        check=False,
    )
