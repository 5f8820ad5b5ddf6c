from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from iiif_ingest.core.errors import AcknowledgeError, ConfigurationError, TransientQueueError
from iiif_ingest.domain.models.notification import QueueMessage

logger = logging.getLogger(__name__)


class SqsQueue:
    """Thin wrapper around an SQS client bound to one queue."""

    def __init__(self, client: Any, queue_url: str) -> None:
        self._client = client
        self.queue_url = queue_url

    @classmethod
    def from_name(cls, client: Any, queue_name: str) -> "SqsQueue":
        try:
            response = client.get_queue_url(QueueName=queue_name)
        except (BotoCoreError, ClientError) as exc:
            raise ConfigurationError(f"cannot resolve queue '{queue_name}' ({exc})") from exc
        return cls(client, response["QueueUrl"])

    def receive(self, *, wait_seconds: int, max_messages: int = 1) -> list[QueueMessage]:
        try:
            response = self._client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=wait_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise TransientQueueError(f"receive from {self.queue_url} failed ({exc})") from exc

        return [
            QueueMessage(
                payload=str(item.get("Body", "")),
                receipt_handle=str(item["ReceiptHandle"]),
                message_id=str(item.get("MessageId", "")),
            )
            for item in response.get("Messages", [])
        ]

    def delete(self, receipt_handle: str) -> None:
        try:
            self._client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except (BotoCoreError, ClientError) as exc:
            raise AcknowledgeError(f"delete from {self.queue_url} failed ({exc})") from exc
