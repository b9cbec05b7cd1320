"""Publish engine - drives the walk and the worker pool lifecycle."""
from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Future
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Set

from ..models import (
    DEFAULT_MIRROR_PATH,
    DEFAULT_PUBLISHER_THREADS,
    Credentials,
    PublishConfig,
    PublishSummary,
    UploadResult,
    UploadTask,
)
from ..protocols import IUploadClient, IWorkerPool
from ..services.upload_client import HTTPUploadClient
from .pool import create_worker_pool, drain, when_all_done
from .tree_walker import TreeWalker

logger = logging.getLogger(__name__)


class EngineState(Enum):
    """Engine lifecycle. There is no transition back from DONE."""
    IDLE = "idle"
    WALKING = "walking"
    DRAINING = "draining"
    DONE = "done"


class PublishEngine:
    """
    Publishes a mirror directory into a remote repository.

    One worker pool is created per run and shared by every directory, so the
    number of concurrent uploads is bounded across the whole tree. Per-file
    failures are logged and counted; only an unreadable directory aborts the
    run.

    Usage:
        engine = PublishEngine(PublishConfig(root_url="https://repo/releases"))
        summary = engine.publish()
    """

    def __init__(
        self,
        config: PublishConfig,
        upload_client: Optional[IUploadClient] = None,
        pool_factory: Callable[[int], IWorkerPool] = create_worker_pool
    ):
        self._config = config
        self._upload_client = upload_client
        self._pool_factory = pool_factory
        self._state = EngineState.IDLE
        self._tasks: Dict[Future, UploadTask] = {}
        self._lock = threading.Lock()

    @property
    def state(self) -> EngineState:
        return self._state

    def publish(self) -> PublishSummary:
        """
        Walk the mirror, upload every file and wait for the uploads.

        An upload client created here stays open until the last submitted
        upload finishes, which can be after this method returned.

        Returns:
            Tallies of the uploads that finished within the drain timeout.

        Raises:
            OSError: If a directory of the mirror cannot be listed.
            RuntimeError: If the engine was already used.
        """
        if self._state is not EngineState.IDLE:
            raise RuntimeError("PublishEngine can only publish once")

        if self._upload_client is not None:
            return self._run(self._upload_client, release=None)

        client = HTTPUploadClient(
            timeout=self._config.request_timeout,
            max_connections=self._config.publisher_threads,
        ).open()
        return self._run(client, release=client.close)

    def _run(self, upload_client: IUploadClient, release: Optional[Callable[[], None]]) -> PublishSummary:
        config = self._config
        mirror_root = Path(os.path.normpath(config.mirror_path))

        logger.info(f"Publishing to {config.root_url} ...")
        pool = self._pool_factory(config.publisher_threads)
        walker = TreeWalker(upload_client, config.credentials, on_submit=self._track)

        self._state = EngineState.WALKING
        walked = False
        try:
            walker.publish_directory(pool, config.root_url, mirror_root)
            walked = True
        except OSError as exc:
            logger.error(f"Cannot read mirror directory: {exc}")
            raise
        finally:
            if not walked:
                pool.shutdown(wait=False)
                self._state = EngineState.DONE
                self._release_when_idle(release)

        self._state = EngineState.DRAINING
        logger.debug(f"All {len(self._tasks)} uploads submitted, waiting for completion")
        done, not_done = drain(pool, list(self._tasks), config.drain_timeout)
        if not_done:
            logger.warning(
                f"Stopped waiting after {config.drain_timeout:.0f}s: "
                f"{len(not_done)} upload(s) still unfinished"
            )
        self._release_when_idle(release)
        self._state = EngineState.DONE

        summary = self._summarize(done, not_done)
        logger.info("Publishing complete.")
        logger.info(
            f"{summary.completed}/{summary.submitted} files finished: {summary.succeeded} uploaded, "
            f"{summary.already_existed} already present, {summary.failed} failed, "
            f"{summary.unfinished} unfinished"
        )
        return summary

    def _summarize(self, done: Set[Future], not_done: Set[Future]) -> PublishSummary:
        summary = PublishSummary(submitted=len(self._tasks), unfinished=len(not_done))
        for future in done:
            exc = future.exception()
            if exc is not None:
                task = self._tasks[future]
                summary.record(UploadResult.fail(task.target_url, str(exc) or type(exc).__name__))
            else:
                summary.record(future.result())
        return summary

    def _release_when_idle(self, release: Optional[Callable[[], None]]) -> None:
        if release is None:
            return
        with self._lock:
            futures = list(self._tasks)
        when_all_done(futures, release)

    def _track(self, task: UploadTask, future: Future) -> None:
        with self._lock:
            self._tasks[future] = task
        future.add_done_callback(lambda f: self._log_unexpected(task, f))

    def _log_unexpected(self, task: UploadTask, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error(f"Unexpected error uploading {task.target_url}", exc_info=exc)


def publish(
    root_url: str,
    mirror_path: str = DEFAULT_MIRROR_PATH,
    credentials: Optional[Credentials] = None,
    publisher_threads: int = DEFAULT_PUBLISHER_THREADS
) -> PublishSummary:
    """Publish ``mirror_path`` to ``root_url`` with default timeouts."""
    config = PublishConfig(
        root_url=root_url,
        mirror_path=mirror_path,
        credentials=credentials,
        publisher_threads=publisher_threads,
    )
    return PublishEngine(config).publish()
