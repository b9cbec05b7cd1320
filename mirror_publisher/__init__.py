"""
Mirror publisher - push a mirrored repository tree to a remote HTTP repository.

The local directory hierarchy becomes the remote URL hierarchy; every file is
PUT with an X-Checksum-Sha1 header by a bounded pool of worker threads.

Usage:
    from mirror_publisher import PublishEngine, PublishConfig, Credentials

    config = PublishConfig(
        root_url="https://repo.example.com/releases",
        mirror_path="./mirror/",
        credentials=Credentials.from_optional("deployer", "secret"),
        publisher_threads=10,
    )
    summary = PublishEngine(config).publish()

    # Or the short form
    from mirror_publisher import publish
    publish("https://repo.example.com/releases", "./mirror/")
"""
__version__ = "0.1.0"

from .models import (
    Credentials,
    PublishConfig,
    PublishSummary,
    UploadOutcome,
    UploadResult,
    UploadTask,
)
from .publisher import EngineState, PublishEngine, TreeWalker, append_url_path_segment, publish
from .services import HTTPUploadClient, classify_status, sha1_file

__all__ = [
    # Main
    "PublishEngine",
    "EngineState",
    "publish",
    "TreeWalker",
    "append_url_path_segment",
    # Models
    "Credentials",
    "PublishConfig",
    "PublishSummary",
    "UploadOutcome",
    "UploadResult",
    "UploadTask",
    # Services
    "HTTPUploadClient",
    "classify_status",
    "sha1_file",
]
