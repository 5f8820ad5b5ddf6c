"""Per-notification document pipeline.

download -> split (optional) -> convert + place each page -> manifest
(optional) -> source deletion (optional) -> acknowledge

A failure anywhere up to the last placement aborts the run: the work
directory is still removed and the message is left on the queue for
redelivery. Pages placed before the failure are not rolled back.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath

from iiif_ingest.application.services.manifest_service import ManifestService
from iiif_ingest.application.services.placement_service import Destination, build_destination
from iiif_ingest.application.services.ports import MessageQueue, ObjectStore
from iiif_ingest.core.config import ServiceConfig
from iiif_ingest.core.errors import (
    ConfigurationError,
    IngestError,
    PlacementError,
    ProcessInvocationError,
    WorkspaceError,
)
from iiif_ingest.core.files import ensure_directory, make_work_dir, remove_tree_quietly
from iiif_ingest.core.naming import converted_filename, document_id_from_filename
from iiif_ingest.domain.models.notification import Notification
from iiif_ingest.infrastructure.process.invoker import ProcessInvoker

logger = logging.getLogger(__name__)

SPLIT_PAGE_PATTERN = "{stem}-%03d.{suffix}"


class PipelineState(str, Enum):
    IDLE = "idle"
    DOWNLOADING = "downloading"
    SPLITTING = "splitting"
    CONVERTING = "converting"
    MANIFESTING = "manifesting"
    SOURCE_CLEANUP = "source_cleanup"
    ACKNOWLEDGING = "acknowledging"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(slots=True)
class PipelineOutcome:
    notification: Notification
    state: PipelineState = PipelineState.IDLE
    document_id: str = ""
    pages: list[str] = field(default_factory=list)
    destinations: list[str] = field(default_factory=list)
    manifest_path: Path | None = None
    acknowledged: bool = False
    failed_state: PipelineState | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.state is PipelineState.DONE

    def abort(self, exc: Exception) -> None:
        self.failed_state = self.state
        self.state = PipelineState.ABORTED
        self.error = str(exc)


def discover_split_pages(work_dir: Path, stem: str, suffix: str) -> list[Path]:
    # The "-" delimiter keeps the downloaded source out of the page list.
    prefix = f"{stem}-"
    ending = f".{suffix}"
    return sorted(
        path
        for path in work_dir.iterdir()
        if path.is_file() and path.name.startswith(prefix) and path.name.endswith(ending)
    )


class DocumentPipeline:
    def __init__(
        self,
        *,
        config: ServiceConfig,
        queue: MessageQueue,
        object_store: ObjectStore,
        destination: Destination,
        convert_invoker: ProcessInvoker,
        split_invoker: ProcessInvoker | None = None,
        manifest_service: ManifestService | None = None,
    ) -> None:
        self.config = config
        self.queue = queue
        self.object_store = object_store
        self.destination = destination
        self.convert_invoker = convert_invoker
        self.split_invoker = split_invoker
        self.manifest_service = manifest_service

    def process(self, notification: Notification, *, worker_id: int = 0) -> PipelineOutcome:
        started = time.perf_counter()
        outcome = PipelineOutcome(notification=notification)
        logger.info("[worker %d] processing %s/%s", worker_id, notification.bucket, notification.key)

        work_dir: Path | None = None
        try:
            work_dir = self._make_work_dir(worker_id)
            outcome.document_id = document_id_from_filename(notification.key)
            self.config.naming_policy.validate(outcome.document_id)

            outcome.state = PipelineState.DOWNLOADING
            downloaded = self._download(notification, work_dir, worker_id)

            if self.split_invoker is not None or self.config.split is not None:
                outcome.state = PipelineState.SPLITTING
                pages = self._split(downloaded, work_dir, worker_id)
            else:
                pages = [downloaded]
            outcome.pages = [page.name for page in pages]

            outcome.state = PipelineState.CONVERTING
            for page in pages:
                placed = self._convert_and_place(outcome.document_id, page, work_dir, worker_id)
                outcome.destinations.append(placed)
        except IngestError as exc:
            logger.error(
                "[worker %d] %s failed while %s (%s)",
                worker_id,
                notification.key,
                outcome.state.value,
                exc,
            )
            outcome.abort(exc)
        finally:
            remove_tree_quietly(work_dir)

        if outcome.state is not PipelineState.ABORTED:
            self._finish(outcome, worker_id)

        outcome.elapsed_seconds = time.perf_counter() - started
        if outcome.ok:
            logger.info(
                "[worker %d] processing %s complete in %0.2f seconds",
                worker_id,
                notification.key,
                outcome.elapsed_seconds,
            )
        else:
            logger.warning(
                "[worker %d] processing %s abandoned after %0.2f seconds; message left for redelivery",
                worker_id,
                notification.key,
                outcome.elapsed_seconds,
            )
        return outcome

    def _make_work_dir(self, worker_id: int) -> Path:
        try:
            return make_work_dir(self.config.work_dir)
        except OSError as exc:
            logger.error("[worker %d] failed to create work directory (%s)", worker_id, exc)
            raise WorkspaceError(f"cannot create work directory under {self.config.work_dir} ({exc})") from exc

    def _download(self, notification: Notification, work_dir: Path, worker_id: int) -> Path:
        target = work_dir / PurePosixPath(notification.key).name
        self.object_store.download(notification.bucket, notification.key, target)

        size = target.stat().st_size if target.exists() else 0
        if notification.expected_size and size != notification.expected_size:
            logger.warning(
                "[worker %d] downloaded %s is %d bytes, notification said %d",
                worker_id,
                notification.key,
                size,
                notification.expected_size,
            )
        return target

    def _split(self, source: Path, work_dir: Path, worker_id: int) -> list[Path]:
        split = self.config.split
        if self.split_invoker is None or split is None:
            raise ConfigurationError("split requested without both a split tool and split settings")
        stem = document_id_from_filename(source.name)
        suffix = split.suffix
        pattern = work_dir / SPLIT_PAGE_PATTERN.format(stem=stem, suffix=suffix)

        self.split_invoker.invoke(source, pattern, worker_id=worker_id)
        pages = discover_split_pages(work_dir, stem, suffix)
        if not pages:
            raise ProcessInvocationError(f"split of {source.name} produced no '{stem}-*.{suffix}' pages")
        logger.info("[worker %d] split %s into %d pages", worker_id, source.name, len(pages))
        return pages

    def _convert_and_place(self, document_id: str, page: Path, work_dir: Path, worker_id: int) -> str:
        destination = self.destination.destination_for(document_id, page.name)
        if self.config.fail_on_overwrite and self.destination.exists(destination):
            raise PlacementError(f"{destination} already exists")

        # Converted files get their own directory so same-suffix conversions cannot clobber the page.
        converted_dir = work_dir / "converted"
        ensure_directory(converted_dir)
        converted = converted_dir / converted_filename(page.name, self.config.convert.suffix)

        self.convert_invoker.invoke(page, converted, worker_id=worker_id)
        if not converted.is_file():
            raise ProcessInvocationError(f"convert of {page.name} did not produce {converted.name}")

        self.destination.place(converted, destination, worker_id=worker_id)
        return destination

    def _finish(self, outcome: PipelineOutcome, worker_id: int) -> None:
        notification = outcome.notification
        clean = True

        if self.manifest_service is not None:
            outcome.state = PipelineState.MANIFESTING
            try:
                result = self.manifest_service.create(outcome.document_id, outcome.destinations, worker_id=worker_id)
                outcome.manifest_path = result.path
            except IngestError as exc:
                logger.error("[worker %d] manifest for %s failed (%s)", worker_id, outcome.document_id, exc)
                outcome.warnings.append(f"manifest: {exc}")
                clean = False
            except Exception as exc:
                # Pages are already placed; a manifest bug must not keep the message redelivering.
                logger.exception("[worker %d] manifest for %s failed unexpectedly", worker_id, outcome.document_id)
                outcome.warnings.append(f"manifest: {type(exc).__name__}: {exc}")
                clean = False

        # In strict mode a failed manifest keeps the source so a redelivery can retry it.
        if self.config.delete_after_process and (clean or not self.config.strict_ack):
            outcome.state = PipelineState.SOURCE_CLEANUP
            try:
                self.object_store.delete(notification.bucket, notification.key)
            except IngestError as exc:
                logger.error("[worker %d] removing source %s failed (%s)", worker_id, notification.key, exc)
                outcome.warnings.append(f"source cleanup: {exc}")
                clean = False

        if not clean and self.config.strict_ack:
            outcome.abort(IngestError("acknowledgement withheld: " + "; ".join(outcome.warnings)))
            return

        outcome.state = PipelineState.ACKNOWLEDGING
        logger.info("[worker %d] deleting queue message", worker_id)
        try:
            self.queue.delete(notification.receipt_handle)
        except IngestError as exc:
            logger.error("[worker %d] failed to delete a processed message (%s)", worker_id, exc)
            outcome.abort(exc)
            return
        outcome.acknowledged = True
        outcome.state = PipelineState.DONE


def build_pipeline(config: ServiceConfig, *, queue: MessageQueue, object_store: ObjectStore) -> DocumentPipeline:
    destination = build_destination(config, object_store)
    manifest_service = (
        ManifestService(config.manifest, destination=destination) if config.manifest is not None else None
    )
    return DocumentPipeline(
        config=config,
        queue=queue,
        object_store=object_store,
        destination=destination,
        convert_invoker=ProcessInvoker.for_tool("convert", config.convert),
        split_invoker=ProcessInvoker.for_tool("split", config.split) if config.split is not None else None,
        manifest_service=manifest_service,
    )
