from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from iiif_ingest.core.errors import DownloadError, PlacementError, SourceCleanupError

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class S3ObjectStore:
    def __init__(self, client: Any) -> None:
        self._client = client

    def download(self, bucket: str, key: str, destination: Path) -> Path:
        logger.debug("downloading s3://%s/%s -> %s", bucket, key, destination)
        try:
            self._client.download_file(bucket, key, str(destination))
        except (BotoCoreError, ClientError, OSError) as exc:
            raise DownloadError(f"failed to download s3://{bucket}/{key} ({exc})") from exc
        return destination

    def upload(self, source: Path, bucket: str, key: str) -> None:
        logger.debug("uploading %s -> s3://%s/%s", source, bucket, key)
        try:
            self._client.upload_file(str(source), bucket, key)
        except (BotoCoreError, ClientError, OSError) as exc:
            raise PlacementError(f"failed to upload {source.name} to s3://{bucket}/{key} ({exc})") from exc

    def exists(self, bucket: str, key: str) -> bool:
        try:
            self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                return False
            raise PlacementError(f"cannot check s3://{bucket}/{key} ({exc})") from exc
        except BotoCoreError as exc:
            raise PlacementError(f"cannot check s3://{bucket}/{key} ({exc})") from exc
        return True

    def delete(self, bucket: str, key: str) -> None:
        logger.info("removing S3 object %s/%s", bucket, key)
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise SourceCleanupError(f"failed to remove s3://{bucket}/{key} ({exc})") from exc
