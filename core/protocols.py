"""Shared protocol definitions."""

from typing import Protocol


class RequestLogger(Protocol):
    """Protocol for request logging (Dashboard, ConsoleLogger)."""

    def log_request(
        self,
        method: str,
        target_url: str,
        status: int,
        elapsed_ms: float,
    ) -> None: ...
    def log_warning(self, source: str, message: str) -> None: ...
    def log_error(self, kind: str, status: int, message: str) -> None: ...
