from __future__ import annotations

import logging

from pydantic import ValidationError

from iiif_ingest.core.config import MetadataConfig
from iiif_ingest.core.errors import MetadataTransportError
from iiif_ingest.domain.models.manifest import DocumentMetadata
from iiif_ingest.domain.models.search import SearchRecord, SearchResult
from iiif_ingest.infrastructure.http.client import HttpClient

logger = logging.getLogger(__name__)

BARCODE_FIELD = "barcode"


def find_by_barcode(records: list[SearchRecord], identifier: str) -> int | None:
    for ix, record in enumerate(records):
        if identifier in record.all(BARCODE_FIELD):
            return ix
    return None


def select_record(records: list[SearchRecord], identifier: str, *, worker_id: int = 0) -> SearchRecord:
    """Pick the record describing ``identifier`` out of several candidates.

    A single record is used as-is. With more than one, the first record whose
    barcode equals the identifier wins; failing that, the first record.
    """
    if len(records) == 1:
        return records[0]

    logger.info(
        "[worker %d] received %d results for id [%s], attempting match by barcode",
        worker_id,
        len(records),
        identifier,
    )
    matched = find_by_barcode(records, identifier)
    if matched is not None:
        logger.debug("[worker %d] matched by barcode [%s], using result # %d", worker_id, identifier, matched + 1)
        return records[matched]

    logger.warning(
        "[worker %d] cannot match by barcode [%s], using the first of %d results",
        worker_id,
        identifier,
        len(records),
    )
    return records[0]


class MetadataResolver:
    def __init__(self, config: MetadataConfig, *, id_placeholder: str, http_client: HttpClient | None = None) -> None:
        self.config = config
        self.id_placeholder = id_placeholder
        self.http = http_client or HttpClient(timeout_seconds=config.timeout_seconds)

    def resolve(self, identifier: str, *, worker_id: int = 0) -> DocumentMetadata:
        defaults = DocumentMetadata()
        if not self.config.enabled:
            return defaults

        token = self._auth_token(worker_id)
        found = self._query(identifier, token, worker_id)
        return defaults.merged_with(found)

    def _auth_token(self, worker_id: int) -> str:
        if not self.config.auth_url:
            return ""
        body = self.http.post(self.config.auth_url, b"", worker_id=worker_id)
        return body.decode("utf-8", errors="replace").strip()

    def _query(self, identifier: str, token: str, worker_id: int) -> DocumentMetadata:
        query = self.config.query_template.replace(self.id_placeholder, identifier, 1)
        body = self.http.post(self.config.query_url, query.encode("utf-8"), auth_token=token, worker_id=worker_id)
        logger.debug("[worker %d] received query response [%s]", worker_id, body.decode("utf-8", errors="replace"))

        try:
            result = SearchResult.model_validate_json(body)
        except ValidationError as exc:
            logger.error("[worker %d] cannot decode query response (%s)", worker_id, exc)
            raise MetadataTransportError(f"invalid metadata response for id {identifier}") from exc

        if not result.groups or not result.groups[0].records:
            logger.warning("[worker %d] received no results for id [%s]", worker_id, identifier)
            return DocumentMetadata(title="", author="", published="", description="", subjects="")

        record = select_record(result.groups[0].records, identifier, worker_id=worker_id)
        # Description and subjects are not queried; they keep their defaults.
        return DocumentMetadata(
            title=record.first("title"),
            author=record.first("author"),
            published=record.first("published_date"),
            description="",
            subjects="",
        )
