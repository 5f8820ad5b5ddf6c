from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from iiif_ingest.core.errors import (
    AcknowledgeError,
    ConfigurationError,
    DownloadError,
    PlacementError,
    TransientQueueError,
)
from iiif_ingest.infrastructure.aws.s3_store import S3ObjectStore
from iiif_ingest.infrastructure.aws.sqs_queue import SqsQueue


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class _FakeSqsClient:
    def __init__(self) -> None:
        self.deleted: list[str] = []
        self.fail_with: ClientError | None = None

    def get_queue_url(self, *, QueueName: str) -> dict:
        if QueueName == "missing":
            raise _client_error("AWS.SimpleQueueService.NonExistentQueue", "GetQueueUrl")
        return {"QueueUrl": f"https://sqs.example/{QueueName}"}

    def receive_message(self, *, QueueUrl: str, MaxNumberOfMessages: int, WaitTimeSeconds: int) -> dict:
        if self.fail_with is not None:
            raise self.fail_with
        return {"Messages": [{"Body": "{}", "ReceiptHandle": "rh-1", "MessageId": "m-1"}]}

    def delete_message(self, *, QueueUrl: str, ReceiptHandle: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.deleted.append(ReceiptHandle)


class _FakeS3Client:
    def __init__(self) -> None:
        self.uploaded: list[tuple[str, str, str]] = []

    def download_file(self, bucket: str, key: str, filename: str) -> None:
        if key == "missing.tif":
            raise _client_error("404", "HeadObject")
        Path(filename).write_bytes(b"data")

    def upload_file(self, filename: str, bucket: str, key: str) -> None:
        if bucket == "read-only":
            raise _client_error("AccessDenied", "PutObject")
        self.uploaded.append((filename, bucket, key))

    def head_object(self, *, Bucket: str, Key: str) -> dict:
        if Key == "present.jp2":
            return {"ContentLength": 4}
        if Key == "forbidden.jp2":
            raise _client_error("403", "HeadObject")
        raise _client_error("404", "HeadObject")


def test_sqs_queue_receive_and_delete() -> None:
    client = _FakeSqsClient()
    sqs = SqsQueue.from_name(client, "iiif-inbound")

    messages = sqs.receive(wait_seconds=20)
    sqs.delete(messages[0].receipt_handle)

    assert sqs.queue_url == "https://sqs.example/iiif-inbound"
    assert messages[0].message_id == "m-1"
    assert client.deleted == ["rh-1"]


def test_sqs_queue_errors_are_classified() -> None:
    client = _FakeSqsClient()
    sqs = SqsQueue(client, "https://sqs.example/q")
    client.fail_with = _client_error("ThrottlingException", "ReceiveMessage")

    with pytest.raises(TransientQueueError):
        sqs.receive(wait_seconds=1)
    with pytest.raises(AcknowledgeError):
        sqs.delete("rh-1")
    with pytest.raises(ConfigurationError):
        SqsQueue.from_name(client, "missing")


def test_s3_store_download_and_upload(tmp_path: Path) -> None:
    client = _FakeS3Client()
    store = S3ObjectStore(client)

    target = store.download("inbound", "c1.tif", tmp_path / "c1.tif")
    store.upload(target, "images", "c1/c1.jp2")

    assert target.read_bytes() == b"data"
    assert client.uploaded == [(str(target), "images", "c1/c1.jp2")]
    with pytest.raises(DownloadError):
        store.download("inbound", "missing.tif", tmp_path / "missing.tif")
    with pytest.raises(PlacementError):
        store.upload(target, "read-only", "c1/c1.jp2")


def test_s3_store_exists_distinguishes_missing_from_errors() -> None:
    store = S3ObjectStore(_FakeS3Client())

    assert store.exists("images", "present.jp2")
    assert not store.exists("images", "absent.jp2")
    with pytest.raises(PlacementError):
        store.exists("images", "forbidden.jp2")
