from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from iiif_ingest.core.config import FilesystemOutput, ServiceConfig, ToolConfig
from iiif_ingest.core.errors import (
    AcknowledgeError,
    DownloadError,
    PlacementError,
    ProcessInvocationError,
    SourceCleanupError,
)
from iiif_ingest.domain.models.notification import Notification, QueueMessage
from iiif_ingest.infrastructure.process.invoker import InvocationResult


class FakeQueue:
    def __init__(self, messages: list[QueueMessage] | None = None) -> None:
        self.messages = list(messages or [])
        self.deleted: list[str] = []
        self.fail_delete = False

    def receive(self, *, wait_seconds: int, max_messages: int = 1) -> list[QueueMessage]:
        if not self.messages:
            return []
        return [self.messages.pop(0)]

    def delete(self, receipt_handle: str) -> None:
        if self.fail_delete:
            raise AcknowledgeError("delete failed")
        self.deleted.append(receipt_handle)


class FakeObjectStore:
    """In-memory bucket: ``objects[(bucket, key)] = bytes``."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.deleted: list[tuple[str, str]] = []
        self.fail_delete = False

    def put(self, bucket: str, key: str, data: bytes) -> None:
        self.objects[(bucket, key)] = data

    def download(self, bucket: str, key: str, destination: Path) -> Path:
        if (bucket, key) not in self.objects:
            raise DownloadError(f"no such object s3://{bucket}/{key}")
        destination.write_bytes(self.objects[(bucket, key)])
        return destination

    def upload(self, source: Path, bucket: str, key: str) -> None:
        self.objects[(bucket, key)] = source.read_bytes()

    def exists(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self.objects

    def delete(self, bucket: str, key: str) -> None:
        if self.fail_delete:
            raise SourceCleanupError("delete refused")
        self.objects.pop((bucket, key), None)
        self.deleted.append((bucket, key))


class FakeInvoker:
    """Stands in for an external tool: copies input to output, or fans out pages."""

    def __init__(self, name: str = "convert", *, pages: list[str] | None = None, fail_on_call: int | None = None) -> None:
        self.name = name
        self.pages = pages
        self.fail_on_call = fail_on_call
        self.calls: list[tuple[Path, Path]] = []

    def invoke(self, input_path: Path, output_path: Path, *, worker_id: int = 0) -> InvocationResult:
        input_path = Path(input_path)
        output_path = Path(output_path)
        self.calls.append((input_path, output_path))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise ProcessInvocationError(f"{self.name} exited with status 1")
        if self.pages is not None:
            for name in self.pages:
                shutil.copyfile(input_path, output_path.parent / name)
        else:
            shutil.copyfile(input_path, output_path)
        return InvocationResult(command=[self.name], returncode=0, output="", elapsed_seconds=0.0)


class FailingFilesystemPlacement:
    """Wraps a destination and fails placement of the N-th page."""

    def __init__(self, inner, fail_on_call: int) -> None:  # noqa: ANN001
        self.inner = inner
        self.fail_on_call = fail_on_call
        self.calls = 0

    def destination_for(self, document_id: str, page_name: str) -> str:
        return self.inner.destination_for(document_id, page_name)

    def exists(self, destination: str) -> bool:
        return self.inner.exists(destination)

    def place(self, source: Path, destination: str, *, worker_id: int = 0) -> None:
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise PlacementError(f"disk full writing {destination}")
        self.inner.place(source, destination, worker_id=worker_id)

    def localize(self, destinations: list[str]):  # noqa: ANN201
        return self.inner.localize(destinations)


def make_config(tmp_path: Path, **overrides) -> ServiceConfig:  # noqa: ANN003
    values = dict(
        in_queue_name="iiif-inbound",
        poll_timeout_seconds=1,
        work_dir=tmp_path / "work",
        work_queue_size=2,
        workers=1,
        convert=ToolConfig(binary="convert", suffix="jp2"),
        output=FilesystemOutput(root=tmp_path / "out"),
    )
    values.update(overrides)
    return ServiceConfig(**values)


def make_notification(key: str = "incoming/c0002345.tif", *, bucket: str = "inbound", size: int = 0) -> Notification:
    return Notification(bucket=bucket, key=key, expected_size=size, receipt_handle=f"rh-{key}")


@pytest.fixture
def fake_queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture
def fake_store() -> FakeObjectStore:
    return FakeObjectStore()
