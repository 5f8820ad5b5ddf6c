"""Queue-driven document split/convert/ingest worker."""

__version__ = "0.4.0"
