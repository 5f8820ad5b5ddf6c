from __future__ import annotations

import errno
import http.client
import logging
import socket
import time
import urllib.error
import urllib.request

from iiif_ingest.core.errors import HTTPStatusError, MetadataTransportError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 0.25

# Fallback signatures for errors that arrive only as text (e.g. wrapped by a proxy).
_RETRYABLE_SIGNATURES = (
    "timed out",
    "broken pipe",
    "name or service not known",
    "nodename nor servname provided",
    "temporary failure in name resolution",
    "no such host",
    "network is down",
)


def is_retryable(exc: BaseException) -> bool:
    """True for the transient failures worth another attempt.

    Timeouts, broken pipes on write, DNS resolution failures and a downed
    network interface. Anything else is terminal.
    """
    reason: object = exc
    if isinstance(exc, urllib.error.URLError) and not isinstance(exc, urllib.error.HTTPError):
        reason = exc.reason

    if isinstance(reason, (TimeoutError, socket.timeout, socket.gaierror, BrokenPipeError)):
        return True
    if isinstance(reason, OSError) and reason.errno == errno.ENETDOWN:
        return True

    text = str(reason).lower()
    return any(signature in text for signature in _RETRYABLE_SIGNATURES)


class HttpClient:
    def __init__(
        self,
        *,
        timeout_seconds: float,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay_seconds: float = RETRY_DELAY_SECONDS,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_seconds = retry_delay_seconds

    def post(self, url: str, body: bytes, *, auth_token: str = "", worker_id: int = 0) -> bytes:
        """POST ``body`` and return the response body of a 2xx answer.

        Raises HTTPStatusError (carrying the body) for any other status and
        MetadataTransportError when the request itself cannot be completed.
        """
        logger.info("[worker %d] post url [%s]", worker_id, url)
        logger.debug("[worker %d] post payload [%s]", worker_id, body.decode("utf-8", errors="replace"))

        attempt = 0
        while True:
            attempt += 1
            request = self._build_request(url, body, auth_token)
            try:
                with _urlopen(request, self.timeout_seconds) as response:
                    status = int(getattr(response, "status", 200))
                    payload = response.read()
            except urllib.error.HTTPError as exc:
                error_body = _read_error_body(exc)
                logger.error(
                    "[worker %d] POST failed with status %d (%s)",
                    worker_id,
                    exc.code,
                    error_body.decode("utf-8", errors="replace"),
                )
                raise HTTPStatusError(exc.code, error_body, url) from exc
            except (urllib.error.URLError, OSError, http.client.HTTPException) as exc:
                if not is_retryable(exc):
                    logger.error("[worker %d] POST failed with error (%s)", worker_id, exc)
                    raise MetadataTransportError(f"POST {url} failed ({exc})") from exc
                if attempt >= self.max_attempts:
                    logger.error("[worker %d] POST failed with error, giving up (%s)", worker_id, exc)
                    raise MetadataTransportError(
                        f"POST {url} failed after {attempt} attempts ({exc})"
                    ) from exc
                logger.warning("[worker %d] POST failed with error, retrying (%s)", worker_id, exc)
                time.sleep(self.retry_delay_seconds)
                continue

            if 200 <= status < 300:
                return payload
            logger.error("[worker %d] POST failed with status %d", worker_id, status)
            raise HTTPStatusError(status, payload, url)

    @staticmethod
    def _build_request(url: str, body: bytes, auth_token: str) -> urllib.request.Request:
        headers = {"Content-Type": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        return urllib.request.Request(url, data=body, headers=headers, method="POST")


def _urlopen(request: urllib.request.Request, timeout: float):
    return urllib.request.urlopen(request, timeout=timeout)


def _read_error_body(exc: urllib.error.HTTPError) -> bytes:
    try:
        return exc.read() or b""
    except OSError:
        return b""
