"""Where converted pages go: a filesystem tree or an S3 bucket.

The destination mode is fixed by configuration for the whole run. Both
destinations derive names the same way (see ``core.naming``) and differ only
in how a converted file is written and read back.
"""

from __future__ import annotations

import logging
import tempfile
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path, PurePosixPath
from typing import Iterator, Protocol

from iiif_ingest.application.services.ports import ObjectStore
from iiif_ingest.core.config import BucketOutput, FilesystemOutput, ServiceConfig
from iiif_ingest.core.errors import DownloadError, ManifestExtractionError, PlacementError
from iiif_ingest.core.files import ensure_directory, safe_copy_atomic
from iiif_ingest.core.naming import destination_relpath, join_key

logger = logging.getLogger(__name__)


class Destination(Protocol):
    def destination_for(self, document_id: str, page_name: str) -> str: ...

    def exists(self, destination: str) -> bool: ...

    def place(self, source: Path, destination: str, *, worker_id: int = 0) -> None: ...

    def localize(self, destinations: list[str]) -> AbstractContextManager[list[Path]]: ...


class FilesystemDestination:
    def __init__(self, root: Path, *, convert_suffix: str, partition: bool) -> None:
        self.root = root
        self.convert_suffix = convert_suffix
        self.partition = partition

    def destination_for(self, document_id: str, page_name: str) -> str:
        relpath = destination_relpath(
            document_id,
            page_name,
            convert_suffix=self.convert_suffix,
            partition=self.partition,
        )
        parts = PurePosixPath(relpath).parts
        if PurePosixPath(relpath).is_absolute() or ".." in parts:
            raise PlacementError(f"destination '{relpath}' for '{document_id}' escapes {self.root}")
        return str(self.root / relpath)

    def exists(self, destination: str) -> bool:
        return Path(destination).exists()

    def place(self, source: Path, destination: str, *, worker_id: int = 0) -> None:
        target = Path(destination)
        logger.info("[worker %d] copying '%s' -> '%s'", worker_id, source, target)
        try:
            ensure_directory(target.parent)
            safe_copy_atomic(source, target)
        except OSError as exc:
            logger.error("[worker %d] failed to copy '%s' -> '%s' (%s)", worker_id, source, target, exc)
            raise PlacementError(f"failed to copy {source.name} to {target} ({exc})") from exc

    @contextmanager
    def localize(self, destinations: list[str]) -> Iterator[list[Path]]:
        yield [Path(item) for item in destinations]


class BucketDestination:
    def __init__(
        self,
        store: ObjectStore,
        bucket: str,
        *,
        key_root: str,
        convert_suffix: str,
        partition: bool,
        scratch_dir: Path,
    ) -> None:
        self.store = store
        self.bucket = bucket
        self.key_root = key_root
        self.convert_suffix = convert_suffix
        self.partition = partition
        self.scratch_dir = scratch_dir

    def destination_for(self, document_id: str, page_name: str) -> str:
        relpath = destination_relpath(
            document_id,
            page_name,
            convert_suffix=self.convert_suffix,
            partition=self.partition,
        )
        return join_key(self.key_root, relpath)

    def exists(self, destination: str) -> bool:
        return self.store.exists(self.bucket, destination)

    def place(self, source: Path, destination: str, *, worker_id: int = 0) -> None:
        logger.info("[worker %d] uploading '%s' -> s3://%s/%s", worker_id, source, self.bucket, destination)
        self.store.upload(source, self.bucket, destination)

    @contextmanager
    def localize(self, destinations: list[str]) -> Iterator[list[Path]]:
        """Fetch placed objects into a scratch directory that lives for the block."""
        ensure_directory(self.scratch_dir)
        with tempfile.TemporaryDirectory(prefix="manifest-", dir=self.scratch_dir) as tmp_raw:
            tmp_dir = Path(tmp_raw)
            local: list[Path] = []
            for ix, key in enumerate(destinations):
                # Index prefix keeps same-named keys from different directories apart.
                target = tmp_dir / f"{ix:04d}" / PurePosixPath(key).name
                ensure_directory(target.parent)
                try:
                    local.append(self.store.download(self.bucket, key, target))
                except DownloadError as exc:
                    raise ManifestExtractionError(f"cannot fetch s3://{self.bucket}/{key} ({exc})") from exc
            yield local


def build_destination(config: ServiceConfig, store: ObjectStore) -> FilesystemDestination | BucketDestination:
    if isinstance(config.output, FilesystemOutput):
        return FilesystemDestination(
            config.output.root,
            convert_suffix=config.convert.suffix,
            partition=config.partition_output_dir,
        )
    if isinstance(config.output, BucketOutput):
        return BucketDestination(
            store,
            config.output.bucket,
            key_root=config.output.key_root,
            convert_suffix=config.convert.suffix,
            partition=config.partition_output_dir,
            scratch_dir=config.work_dir,
        )
    raise TypeError(f"unsupported output target: {config.output!r}")
