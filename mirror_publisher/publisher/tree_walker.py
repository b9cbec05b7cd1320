"""Recursive walk of the mirror tree, submitting one upload per file."""
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, List, Optional
import logging

from ..models import Credentials, UploadTask
from ..protocols import IUploadClient, IWorkerPool
from .paths import append_url_path_segment

logger = logging.getLogger(__name__)

SubmitCallback = Callable[[UploadTask, Future], None]


class TreeWalker:
    """
    Walks a mirror directory and maps it onto remote URLs.

    Files are handed to the worker pool as soon as they are listed; the
    directory tree itself is traversed depth-first on the calling thread,
    one directory after another. Enumeration follows the filesystem's own
    listing order.
    """

    def __init__(
        self,
        upload_client: IUploadClient,
        credentials: Optional[Credentials] = None,
        on_submit: Optional[SubmitCallback] = None
    ):
        self._upload_client = upload_client
        self._credentials = credentials
        self._on_submit = on_submit

    def publish_directory(self, pool: IWorkerPool, repository_url: str, mirror_path: Path) -> None:
        """
        Submit every file below ``mirror_path`` for upload under ``repository_url``.

        Args:
            pool: Worker pool shared by the whole run
            repository_url: Remote location matching ``mirror_path``
            mirror_path: Local directory to publish

        Raises:
            OSError: If a directory cannot be listed. Uploads submitted before
                the failure keep running.
        """
        logger.debug(f"Switching to mirror directory: {mirror_path.absolute()}")

        recurse_paths: List[Path] = []

        for path in mirror_path.iterdir():
            if path.is_dir():
                recurse_paths.append(path)
            else:
                self._submit(pool, UploadTask(repository_url, path, self._credentials))

        for recurse_path in recurse_paths:
            subpath = recurse_path.name
            self.publish_directory(
                pool,
                append_url_path_segment(repository_url, subpath),
                recurse_path
            )

    def _submit(self, pool: IWorkerPool, task: UploadTask) -> None:
        future = pool.submit(self._upload_client.upload, task)
        if self._on_submit:
            self._on_submit(task, future)
