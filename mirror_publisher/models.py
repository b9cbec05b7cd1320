"""
Models for mirror_publisher module.

Immutable dataclasses following Single Responsibility Principle.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from enum import Enum


DEFAULT_MIRROR_PATH = "./mirror/"
DEFAULT_PUBLISHER_THREADS = 10
REQUEST_TIMEOUT = 600.0  # 10 minutes, for big files
DRAIN_TIMEOUT = 600.0


@dataclass(frozen=True)
class Credentials:
    """Basic auth credentials. Either both values are set or there are none."""
    username: str
    password: str

    @classmethod
    def from_optional(cls, username: Optional[str], password: Optional[str]) -> Optional["Credentials"]:
        """Return credentials only when both username and password are given."""
        if not username or not password:
            return None
        return cls(username=username, password=password)

    def as_auth(self) -> tuple:
        return (self.username, self.password)

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class UploadTask:
    """One file to PUT under a remote repository location."""
    repository_url: str
    file_path: Path
    credentials: Optional[Credentials] = None

    @property
    def target_url(self) -> str:
        # below the root, repository_url is already directory-shaped
        if self.repository_url.endswith("/"):
            return self.repository_url + self.file_path.name
        return f"{self.repository_url}/{self.file_path.name}"


class UploadOutcome(Enum):
    """Classification of one upload response."""
    SUCCESS = "success"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of an upload operation."""
    target_url: str
    outcome: UploadOutcome
    status_code: Optional[int] = None
    body: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, target_url: str, status_code: int):
        return cls(target_url=target_url, outcome=UploadOutcome.SUCCESS, status_code=status_code)

    @classmethod
    def already_exists(cls, target_url: str, status_code: int = 403):
        return cls(target_url=target_url, outcome=UploadOutcome.ALREADY_EXISTS, status_code=status_code)

    @classmethod
    def fail(cls, target_url: str, error: str, status_code: Optional[int] = None, body: Optional[str] = None):
        return cls(
            target_url=target_url,
            outcome=UploadOutcome.FAILED,
            status_code=status_code,
            body=body,
            error=error
        )


@dataclass
class PublishSummary:
    """Tally of one publish run. Informational only, never raised on."""
    submitted: int = 0
    succeeded: int = 0
    already_existed: int = 0
    failed: int = 0
    unfinished: int = 0

    @property
    def completed(self) -> int:
        return self.succeeded + self.already_existed + self.failed

    @property
    def all_published(self) -> bool:
        return self.failed == 0 and self.unfinished == 0

    def record(self, result: UploadResult) -> None:
        if result.outcome is UploadOutcome.SUCCESS:
            self.succeeded += 1
        elif result.outcome is UploadOutcome.ALREADY_EXISTS:
            self.already_existed += 1
        else:
            self.failed += 1


@dataclass(frozen=True)
class PublishConfig:
    """Immutable configuration for a publish run."""
    root_url: str
    mirror_path: str = DEFAULT_MIRROR_PATH
    credentials: Optional[Credentials] = None
    publisher_threads: int = DEFAULT_PUBLISHER_THREADS
    request_timeout: float = REQUEST_TIMEOUT
    drain_timeout: float = DRAIN_TIMEOUT
