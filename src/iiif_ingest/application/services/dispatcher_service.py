"""Queue intake and fan-out to a fixed pool of worker threads.

One dispatcher thread receives a single message at a time and pushes the
decoded notification onto a bounded work queue. A full work queue blocks the
dispatcher, which is the only admission control.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable
from urllib.parse import unquote_plus

from pydantic import ValidationError

from iiif_ingest.application.services.ports import MessageQueue
from iiif_ingest.core.errors import NotificationDecodeError, TransientQueueError
from iiif_ingest.domain.models.notification import Notification, QueueMessage, S3Event

logger = logging.getLogger(__name__)

RECEIVE_RETRY_PAUSE_SECONDS = 1.0

_STOP = object()


def decode_notification(message: QueueMessage) -> Notification | None:
    """Turn a queue message into a Notification.

    Returns None for events that do not reference exactly one new object.
    """
    try:
        event = S3Event.model_validate_json(message.payload)
    except ValidationError as exc:
        raise NotificationDecodeError(f"message {message.message_id or '?'} is not a storage event ({exc})") from exc

    if len(event.records) != 1:
        logger.warning("not an interesting notification (%d records), ignoring it", len(event.records))
        return None

    record = event.records[0]
    return Notification(
        bucket=record.s3.bucket.name,
        # Keys arrive form-encoded ("+" for space, %XX escapes).
        key=unquote_plus(record.s3.object_.key),
        expected_size=record.s3.object_.size,
        receipt_handle=message.receipt_handle,
    )


class WorkerPool:
    def __init__(
        self,
        handler: Callable[..., object],
        *,
        workers: int,
        queue_size: int,
    ) -> None:
        self._handler = handler
        self.workers = workers
        self.work_queue: queue.Queue[object] = queue.Queue(maxsize=queue_size)
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        for worker_id in range(1, self.workers + 1):
            thread = threading.Thread(
                target=self._worker_loop,
                args=(worker_id,),
                daemon=True,
                name=f"ingest-worker-{worker_id}",
            )
            thread.start()
            self._threads.append(thread)
        logger.info("started %d workers (work queue size %d)", self.workers, self.work_queue.maxsize)

    def submit(self, notification: Notification, *, timeout: float | None = None) -> None:
        """Blocks while the work queue is full; raises queue.Full after ``timeout``."""
        self.work_queue.put(notification, timeout=timeout)

    def wait_idle(self) -> None:
        self.work_queue.join()

    def stop(self, *, timeout: float = 5.0) -> None:
        for _ in self._threads:
            self.work_queue.put(_STOP)
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []

    def _worker_loop(self, worker_id: int) -> None:
        while True:
            item = self.work_queue.get()
            try:
                if item is _STOP:
                    return
                self._handler(item, worker_id=worker_id)
            except Exception:
                # A bug in one document must not take the worker down with it.
                logger.exception("[worker %d] unexpected failure processing %r", worker_id, item)
            finally:
                self.work_queue.task_done()


class Dispatcher:
    def __init__(self, message_queue: MessageQueue, pool: WorkerPool, *, poll_timeout_seconds: int) -> None:
        self.message_queue = message_queue
        self.pool = pool
        self.poll_timeout_seconds = poll_timeout_seconds
        self._stop = threading.Event()

    def stop(self) -> None:
        self._stop.set()

    def poll_once(self) -> Notification | None:
        try:
            messages = self.message_queue.receive(wait_seconds=self.poll_timeout_seconds, max_messages=1)
        except TransientQueueError as exc:
            logger.error("during message get (%s), sleeping and retrying", exc)
            time.sleep(RECEIVE_RETRY_PAUSE_SECONDS)
            return None

        if not messages:
            logger.debug("no new notifications...")
            return None

        logger.info("received a new notification")
        try:
            notification = decode_notification(messages[0])
        except NotificationDecodeError as exc:
            logger.error("%s; ignoring it", exc)
            return None
        if notification is None:
            return None

        self.pool.submit(notification)
        return notification

    def run(self, *, max_notifications: int | None = None) -> int:
        dispatched = 0
        while not self._stop.is_set():
            if self.poll_once() is None:
                continue
            dispatched += 1
            if max_notifications is not None and dispatched >= max_notifications:
                break
        return dispatched
