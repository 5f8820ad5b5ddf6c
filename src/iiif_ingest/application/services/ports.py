from __future__ import annotations

from pathlib import Path
from typing import Protocol

from iiif_ingest.domain.models.notification import QueueMessage


class MessageQueue(Protocol):
    def receive(self, *, wait_seconds: int, max_messages: int = 1) -> list[QueueMessage]: ...

    def delete(self, receipt_handle: str) -> None: ...


class ObjectStore(Protocol):
    def download(self, bucket: str, key: str, destination: Path) -> Path: ...

    def upload(self, source: Path, bucket: str, key: str) -> None: ...

    def exists(self, bucket: str, key: str) -> bool: ...

    def delete(self, bucket: str, key: str) -> None: ...
