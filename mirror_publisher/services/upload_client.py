"""HTTP adapter that PUTs artifacts into the target repository."""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..models import REQUEST_TIMEOUT, UploadOutcome, UploadResult, UploadTask
from .checksum import sha1_file

logger = logging.getLogger(__name__)

CHECKSUM_HEADER = "X-Checksum-Sha1"


def classify_status(status_code: int) -> UploadOutcome:
    """
    Map a response status to an upload outcome.

    The target repository refuses to overwrite a published artifact with 403,
    so 403 means the file is already there rather than an error.
    """
    if 200 <= status_code <= 299:
        return UploadOutcome.SUCCESS
    if status_code == 403:
        return UploadOutcome.ALREADY_EXISTS
    return UploadOutcome.FAILED


class HTTPUploadClient:
    """
    HTTP client adapter for artifact uploads.

    Implements IUploadClient protocol. One instance is shared by every worker
    thread of a publish run; each call performs exactly one PUT.
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        max_connections: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._timeout = timeout
        self._max_connections = max_connections
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def __enter__(self):
        return self.open()

    def __exit__(self, *args):
        self.close()

    def open(self) -> "HTTPUploadClient":
        # httpx applies the timeout to each of connect/read/write/pool separately
        self._client = httpx.Client(
            http1=True,
            http2=False,
            follow_redirects=True,
            timeout=httpx.Timeout(self._timeout),
            limits=httpx.Limits(max_connections=self._max_connections),
            transport=self._transport,
        )
        return self

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def upload(self, task: UploadTask) -> UploadResult:
        if not self._client:
            raise RuntimeError("HTTPUploadClient not initialized. Use 'with' context.")

        target_url = task.target_url
        logger.info(f"Uploading {target_url}")

        try:
            checksum = sha1_file(task.file_path)
        except OSError as exc:
            logger.error(f"Cannot compute checksum of {task.file_path}: {exc}")
            return UploadResult.fail(target_url, str(exc) or type(exc).__name__)

        auth = task.credentials.as_auth() if task.credentials else None

        try:
            with open(task.file_path, "rb") as body:
                response = self._client.put(
                    target_url,
                    content=body,
                    headers={CHECKSUM_HEADER: checksum},
                    auth=auth,
                )
        except (httpx.HTTPError, httpx.StreamError, OSError) as exc:
            error_msg = str(exc) or type(exc).__name__
            logger.error(f"Upload of {target_url} failed: {error_msg}")
            return UploadResult.fail(target_url, error_msg)

        return self._to_result(target_url, response)

    def _to_result(self, target_url: str, response: httpx.Response) -> UploadResult:
        status_code = response.status_code
        outcome = classify_status(status_code)

        if outcome is UploadOutcome.SUCCESS:
            logger.info(f"Uploaded successfully: {target_url}")
            result = UploadResult.ok(target_url, status_code)
        elif outcome is UploadOutcome.ALREADY_EXISTS:
            logger.info(f"Already uploaded: {target_url}")
            result = UploadResult.already_exists(target_url, status_code)
        else:
            logger.error(f"Something bad happened during upload of {target_url}: {status_code}")
            logger.error(f"Error message body: {response.text}")
            result = UploadResult.fail(
                target_url,
                f"HTTP {status_code}",
                status_code=status_code,
                body=response.text,
            )

        logger.debug(f"statusCode: {status_code}")
        logger.debug(f"message body: {response.text}")
        return result
