from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from iiif_ingest.application.services.metadata_service import MetadataResolver
from iiif_ingest.application.services.placement_service import Destination
from iiif_ingest.core.config import ManifestConfig
from iiif_ingest.core.errors import ManifestError
from iiif_ingest.core.files import write_text_atomic
from iiif_ingest.domain.models.manifest import ManifestData, PageImage
from iiif_ingest.infrastructure.imaging.attributes import ImageAttributeExtractor
from iiif_ingest.infrastructure.templates.renderer import TemplateRenderer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ManifestResult:
    path: Path
    data: ManifestData


class ManifestService:
    def __init__(
        self,
        config: ManifestConfig,
        *,
        destination: Destination,
        resolver: MetadataResolver | None = None,
        extractor: ImageAttributeExtractor | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.config = config
        self.destination = destination
        self.resolver = resolver or MetadataResolver(config.metadata, id_placeholder=config.id_placeholder)
        self.extractor = extractor or ImageAttributeExtractor()
        self.renderer = renderer or TemplateRenderer(config.template_path)

    def output_path(self, document_id: str) -> Path:
        return self.config.output_dir / self.config.output_name(document_id)

    def page_attributes(self, placed: list[str]) -> list[PageImage]:
        with self.destination.localize(placed) as local_paths:
            return [self.extractor.extract(path) for path in local_paths]

    def build(self, document_id: str, placed: list[str], *, worker_id: int = 0) -> ManifestData:
        pages = self.page_attributes(placed)
        metadata = self.resolver.resolve(document_id, worker_id=worker_id)
        return ManifestData(
            copyright=self.config.copyright,
            iiif_url=self.config.iiif_service_root,
            metadata=metadata,
            pages=pages,
        )

    def create(self, document_id: str, placed: list[str], *, worker_id: int = 0) -> ManifestResult:
        """Render and write the manifest for one document.

        ``placed`` must be the placed destinations in placement order; that
        order becomes the manifest page order. Nothing is written unless every
        page could be described.
        """
        data = self.build(document_id, placed, worker_id=worker_id)
        content = self.renderer.render(data.template_context())

        target = self.output_path(document_id)
        logger.debug("[worker %d] writing manifest (%s)", worker_id, target)
        try:
            write_text_atomic(target, content)
        except OSError as exc:
            logger.error("[worker %d] writing %s (%s)", worker_id, target, exc)
            raise ManifestError(f"cannot write manifest {target} ({exc})") from exc
        return ManifestResult(path=target, data=data)
