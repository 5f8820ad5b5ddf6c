class IngestError(Exception):
    """Base error for all ingest pipeline exceptions."""


class ConfigurationError(IngestError):
    """Raised when configuration is invalid or incomplete."""


class TransientQueueError(IngestError):
    """Raised when the inbound queue cannot be read; the dispatcher retries."""


class NotificationDecodeError(IngestError):
    """Raised when a queue message payload is not a storage event."""


class NamingPolicyError(IngestError):
    """Raised when a document identifier violates the naming policy."""


class WorkspaceError(IngestError):
    """Raised when a worker cannot create its private work directory."""


class DownloadError(IngestError):
    """Raised when a source object cannot be downloaded."""


class PlacementError(IngestError):
    """Raised when a converted page cannot be written to its destination."""


class ProcessInvocationError(IngestError):
    """Raised when an external split or convert tool fails."""


class ManifestExtractionError(IngestError):
    """Raised when page attributes cannot be extracted for a manifest."""


class ManifestError(IngestError):
    """Raised when a manifest cannot be rendered or written."""


class MetadataTransportError(IngestError):
    """Raised when the metadata service cannot be reached."""


class HTTPStatusError(MetadataTransportError):
    """Raised when the metadata service answers with a non-2xx status."""

    def __init__(self, status: int, body: bytes, url: str = "") -> None:
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"request to {url or 'endpoint'} returned HTTP {status}")


class SourceCleanupError(IngestError):
    """Raised when the source object cannot be removed after processing."""


class AcknowledgeError(IngestError):
    """Raised when a processed message cannot be deleted from the queue."""
