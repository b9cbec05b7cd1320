"""
Protocols (Interfaces) for Dependency Inversion.

Following Interface Segregation Principle - small, focused interfaces.
"""
from concurrent.futures import Future
from typing import Any, Callable, Protocol, runtime_checkable

from .models import UploadResult, UploadTask


@runtime_checkable
class IUploadClient(Protocol):
    """Interface for a single-file upload."""

    def upload(self, task: UploadTask) -> UploadResult:
        """PUT one file and classify the response. Never raises for per-file errors."""
        ...


@runtime_checkable
class IWorkerPool(Protocol):
    """Interface for the bounded pool that runs upload tasks."""

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        """Schedule a call without waiting for it."""
        ...

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        """Stop accepting new work."""
        ...
