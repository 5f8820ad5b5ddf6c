from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Union

from iiif_ingest.core.errors import ConfigurationError
from iiif_ingest.core.naming import NamingPolicy

logger = logging.getLogger(__name__)

ENV_PREFIX = "IIIF_INGEST_"
DEFAULT_METADATA_TIMEOUT_SECONDS = 15
MAX_POLL_TIMEOUT_SECONDS = 20


@dataclass(frozen=True, slots=True)
class ToolConfig:
    """How to run one external binary (split or convert)."""

    binary: str
    suffix: str
    options: str = ""
    command_template: str = ""
    input_placeholder: str = ""
    output_placeholder: str = ""

    @property
    def uses_template(self) -> bool:
        return bool(self.command_template and self.input_placeholder and self.output_placeholder)


@dataclass(frozen=True, slots=True)
class FilesystemOutput:
    root: Path


@dataclass(frozen=True, slots=True)
class BucketOutput:
    bucket: str
    key_root: str = ""


OutputTarget = Union[FilesystemOutput, BucketOutput]


@dataclass(frozen=True, slots=True)
class MetadataConfig:
    query_url: str = ""
    auth_url: str = ""
    query_template: str = ""
    timeout_seconds: int = DEFAULT_METADATA_TIMEOUT_SECONDS

    @property
    def enabled(self) -> bool:
        return bool(self.query_url)


@dataclass(frozen=True, slots=True)
class ManifestConfig:
    template_path: Path
    output_dir: Path
    output_name_template: str
    id_placeholder: str
    iiif_service_root: str = ""
    copyright: str = ""
    metadata: MetadataConfig = field(default_factory=MetadataConfig)

    def output_name(self, document_id: str) -> str:
        return self.output_name_template.replace(self.id_placeholder, document_id, 1)


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    in_queue_name: str
    poll_timeout_seconds: int
    work_dir: Path
    work_queue_size: int
    workers: int
    convert: ToolConfig
    output: OutputTarget
    split: ToolConfig | None = None
    delete_after_process: bool = False
    fail_on_overwrite: bool = False
    partition_output_dir: bool = False
    manifest: ManifestConfig | None = None
    naming_policy: NamingPolicy = field(default_factory=NamingPolicy)
    strict_ack: bool = False

    @property
    def split_mode(self) -> str:
        return "split-then-convert" if self.split is not None else "flat-convert"

    @property
    def output_mode(self) -> str:
        return "filesystem" if isinstance(self.output, FilesystemOutput) else "bucket"

    def describe(self) -> list[tuple[str, str]]:
        rows: list[tuple[str, str]] = [
            ("InQueueName", self.in_queue_name),
            ("PollTimeOut", str(self.poll_timeout_seconds)),
            ("LocalWorkDir", str(self.work_dir)),
            ("WorkerQueueSize", str(self.work_queue_size)),
            ("Workers", str(self.workers)),
            ("Mode", f"{self.split_mode} / {self.output_mode}"),
        ]
        if self.split is not None:
            rows.extend(_describe_tool("Split", self.split))
        rows.extend(_describe_tool("Convert", self.convert))
        if isinstance(self.output, FilesystemOutput):
            rows.append(("OutputFSRoot", str(self.output.root)))
        else:
            rows.append(("OutputBucket", self.output.bucket))
            rows.append(("OutputBucketRoot", self.output.key_root))
        rows.extend(
            [
                ("PartitionOutputDir", str(self.partition_output_dir)),
                ("DeleteAfterProcess", str(self.delete_after_process)),
                ("FailOnOverwrite", str(self.fail_on_overwrite)),
                ("StrictAck", str(self.strict_ack)),
                (
                    "NamePattern",
                    self.naming_policy.pattern.pattern if self.naming_policy.pattern is not None else "",
                ),
            ]
        )
        if self.manifest is not None:
            rows.extend(
                [
                    ("ManifestTemplate", str(self.manifest.template_path)),
                    ("ManifestOutputDir", str(self.manifest.output_dir)),
                    ("ManifestOutputName", self.manifest.output_name_template),
                    ("IdPlaceHolder", self.manifest.id_placeholder),
                    ("IIIFServiceRoot", self.manifest.iiif_service_root),
                    ("MetadataQueryEndpoint", self.manifest.metadata.query_url),
                    ("MetadataAuthEndpoint", self.manifest.metadata.auth_url),
                    ("MetadataQueryTimeout", str(self.manifest.metadata.timeout_seconds)),
                ]
            )
        return rows

    def log_summary(self) -> None:
        for name, value in self.describe():
            logger.info("[CONFIG] %-22s = [%s]", name, value)


def _describe_tool(label: str, tool: ToolConfig) -> list[tuple[str, str]]:
    rows = [(f"{label}Binary", tool.binary), (f"{label}Suffix", tool.suffix)]
    if tool.uses_template:
        rows.append((f"{label}Command", tool.command_template))
    else:
        rows.append((f"{label}Options", tool.options))
    return rows


class _EnvReader:
    """Collects every configuration problem instead of stopping at the first."""

    def __init__(self, env: Mapping[str, str]) -> None:
        self.env = env
        self.problems: list[str] = []

    def string(self, name: str, *, required: bool = False, default: str = "") -> str:
        raw = self.env.get(ENV_PREFIX + name)
        if raw is None or raw.strip() == "":
            if required:
                self.problems.append(f"environment variable not set: {ENV_PREFIX}{name}")
            return default
        return raw.strip()

    def integer(self, name: str, *, required: bool = False, default: int = 0, minimum: int | None = None) -> int:
        raw = self.string(name, required=required)
        if not raw:
            return default
        try:
            value = int(raw)
        except ValueError:
            self.problems.append(f"{ENV_PREFIX}{name} must be an integer (got '{raw}')")
            return default
        if minimum is not None and value < minimum:
            self.problems.append(f"{ENV_PREFIX}{name} must be >= {minimum} (got {value})")
            return default
        return value

    def boolean(self, name: str, *, default: bool = False) -> bool:
        raw = self.string(name)
        if not raw:
            return default
        normalized = raw.lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
        self.problems.append(f"{ENV_PREFIX}{name} must be a boolean (got '{raw}')")
        return default


def _read_tool(reader: _EnvReader, prefix: str, *, required: bool) -> ToolConfig | None:
    binary = reader.string(f"{prefix}_BIN", required=required)
    if not binary:
        return None
    tool = ToolConfig(
        binary=binary,
        suffix=reader.string(f"{prefix}_SUFFIX", required=True).lstrip("."),
        options=reader.string(f"{prefix}_OPTS"),
        command_template=reader.string(f"{prefix}_COMMAND"),
        input_placeholder=reader.string(f"{prefix}_INFILE_PLACEHOLDER"),
        output_placeholder=reader.string(f"{prefix}_OUTFILE_PLACEHOLDER"),
    )
    if tool.command_template and not tool.uses_template:
        reader.problems.append(
            f"{ENV_PREFIX}{prefix}_COMMAND requires both {ENV_PREFIX}{prefix}_INFILE_PLACEHOLDER "
            f"and {ENV_PREFIX}{prefix}_OUTFILE_PLACEHOLDER"
        )
    return tool


def _read_output(reader: _EnvReader) -> OutputTarget | None:
    fs_root = reader.string("OUTPUT_FS_ROOT")
    bucket = reader.string("OUTPUT_BUCKET")
    key_root = reader.string("OUTPUT_BUCKET_ROOT")
    if fs_root and bucket:
        reader.problems.append(
            f"{ENV_PREFIX}OUTPUT_FS_ROOT and {ENV_PREFIX}OUTPUT_BUCKET are mutually exclusive"
        )
        return None
    if fs_root:
        if key_root:
            reader.problems.append(f"{ENV_PREFIX}OUTPUT_BUCKET_ROOT requires {ENV_PREFIX}OUTPUT_BUCKET")
        return FilesystemOutput(root=Path(fs_root).expanduser())
    if bucket:
        return BucketOutput(bucket=bucket, key_root=key_root.strip("/"))
    reader.problems.append(f"one of {ENV_PREFIX}OUTPUT_FS_ROOT or {ENV_PREFIX}OUTPUT_BUCKET must be set")
    return None


def _read_manifest(reader: _EnvReader) -> ManifestConfig | None:
    template = reader.string("MANIFEST_TEMPLATE")
    if not template:
        return None
    template_path = Path(template).expanduser()
    if not template_path.is_file():
        reader.problems.append(f"manifest template does not exist: {template_path}")

    metadata = MetadataConfig(
        query_url=reader.string("METADATA_QUERY_URL"),
        auth_url=reader.string("METADATA_AUTH_URL"),
        query_template=reader.string("METADATA_QUERY_TEMPLATE"),
        timeout_seconds=reader.integer(
            "METADATA_QUERY_TIMEOUT",
            default=DEFAULT_METADATA_TIMEOUT_SECONDS,
            minimum=1,
        ),
    )
    if metadata.enabled and not metadata.query_template:
        reader.problems.append(
            f"{ENV_PREFIX}METADATA_QUERY_TEMPLATE is required with {ENV_PREFIX}METADATA_QUERY_URL"
        )

    return ManifestConfig(
        template_path=template_path,
        output_dir=Path(reader.string("MANIFEST_OUTPUT_DIR", required=True)).expanduser(),
        output_name_template=reader.string("MANIFEST_OUTPUT_NAME", required=True),
        id_placeholder=reader.string("ID_PLACEHOLDER", required=True),
        iiif_service_root=reader.string("IIIF_SERVICE_ROOT", required=True),
        copyright=reader.string("MANIFEST_COPYRIGHT"),
        metadata=metadata,
    )


def load_config(env: Mapping[str, str] | None = None) -> ServiceConfig:
    """Build and validate the service configuration from the environment.

    All problems are collected and reported together in a single
    ConfigurationError so an operator can fix them in one pass.
    """
    reader = _EnvReader(os.environ if env is None else env)

    in_queue_name = reader.string("IN_QUEUE", required=True)
    poll_timeout = reader.integer("QUEUE_POLL_TIMEOUT", required=True, minimum=0)
    if poll_timeout > MAX_POLL_TIMEOUT_SECONDS:
        reader.problems.append(
            f"{ENV_PREFIX}QUEUE_POLL_TIMEOUT must be <= {MAX_POLL_TIMEOUT_SECONDS} (got {poll_timeout})"
        )
    work_dir = reader.string("WORK_DIR", required=True)
    work_queue_size = reader.integer("WORK_QUEUE_SIZE", required=True, default=1, minimum=1)
    workers = reader.integer("WORKERS", required=True, default=1, minimum=1)

    split = _read_tool(reader, "SPLIT", required=False)
    convert = _read_tool(reader, "CONVERT", required=True)
    output = _read_output(reader)
    partition = reader.boolean("PARTITION_OUTPUT_DIR")
    if partition and split is not None:
        reader.problems.append(
            f"{ENV_PREFIX}PARTITION_OUTPUT_DIR cannot be combined with {ENV_PREFIX}SPLIT_BIN"
        )

    manifest = _read_manifest(reader)

    name_pattern = reader.string("NAME_PATTERN")
    naming_policy = NamingPolicy()
    if name_pattern:
        try:
            naming_policy = NamingPolicy.from_string(name_pattern)
        except re.error as exc:
            reader.problems.append(f"{ENV_PREFIX}NAME_PATTERN is not a valid regex ({exc})")

    delete_after = reader.boolean("DELETE_AFTER_PROCESS")
    fail_on_overwrite = reader.boolean("FAIL_ON_OVERWRITE")
    strict_ack = reader.boolean("STRICT_ACK")

    # convert and output are only None when a problem has been recorded for them.
    if reader.problems or convert is None or output is None:
        raise ConfigurationError("invalid configuration:\n  - " + "\n  - ".join(reader.problems))

    return ServiceConfig(
        in_queue_name=in_queue_name,
        poll_timeout_seconds=poll_timeout,
        work_dir=Path(work_dir).expanduser(),
        work_queue_size=work_queue_size,
        workers=workers,
        convert=convert,
        output=output,
        split=split,
        delete_after_process=delete_after,
        fail_on_overwrite=fail_on_overwrite,
        partition_output_dir=partition,
        manifest=manifest,
        naming_policy=naming_policy,
        strict_ack=strict_ack,
    )
