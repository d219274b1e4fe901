"""File logs: the rolling CLI log and per-exchange JSON records."""

import json
import re
from dataclasses import asdict
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from rich.console import Console
from rich.markup import escape

from core.protocols import RequestLogger
from core.request_types import ExchangeRecord

LOG_ROOT = Path.cwd() / "logs"
CLI_LOG_FILE = LOG_ROOT / "proxy.log"

SENSITIVE_HEADERS = frozenset({"authorization", "proxy-authorization", "cookie", "set-cookie"})
SENSITIVE_MARKERS = ("key", "token", "secret")

_UNSAFE_FOLDER_CHARS = re.compile(r"[^A-Za-z0-9._-]")

stderr = Console(stderr=True)


def write_exchange_log(record: ExchangeRecord, *, log_root: Path | None = None) -> Path:
    """Write one proxied exchange as JSON under ``exchanges/<target host>/``.

    Credentials in either header set are masked before writing.
    """
    payload: dict[str, Any] = {
        **asdict(record),
        "timestamp": datetime.now(UTC).isoformat(),
        "request_headers": redact_headers(record.request_headers),
        "response_headers": redact_headers(record.response_headers),
    }
    folder = (log_root or LOG_ROOT) / "exchanges" / host_folder_name(record.target_url)
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / f"{datetime.now(UTC):%Y%m%dT%H%M%S.%fZ}_{uuid4().hex[:12]}.json"
    path.write_text(json.dumps(payload, indent=2, default=str))
    return path


def format_cli_line(level: str, message: str, **extra: Any) -> str:
    fields = "".join(f" {key}={value}" for key, value in extra.items())
    return f"[{datetime.now(UTC):%Y-%m-%d %H:%M:%S}] {level}: {message}{fields}\n"


def write_cli_log(level: str, message: str, *, log_file: Path | None = None, **extra: Any) -> None:
    """Append a line to the CLI log file."""
    log_file = log_file or CLI_LOG_FILE
    log_file.parent.mkdir(parents=True, exist_ok=True)
    with log_file.open("a") as f:
        f.write(format_cli_line(level, message, **extra))


def clear_logs(log_file: Path | None = None) -> None:
    """Truncate the CLI log file left by a previous run."""
    log_file = log_file or CLI_LOG_FILE
    if log_file.exists():
        log_file.write_text("")


def host_folder_name(target_url: str) -> str:
    authority = target_url.partition("://")[2] or target_url
    host = re.split(r"[/?#]", authority, maxsplit=1)[0]
    host = _UNSAFE_FOLDER_CHARS.sub("_", host)
    return host if host.strip(".") else "unknown"


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    return {key: mask(value) if is_sensitive(key) else value for key, value in headers.items()}


def is_sensitive(header: str) -> bool:
    name = header.lower()
    return name in SENSITIVE_HEADERS or any(marker in name for marker in SENSITIVE_MARKERS)


def mask(value: str) -> str:
    """Keep only the edges of a secret; short values are hidden entirely."""
    if len(value) <= 10:
        return "***"
    return f"{value[:6]}...{value[-4:]}"


def report_logging_failure(error: Exception) -> None:
    stderr.print(f"[yellow]Warning[/yellow] (logging): {escape(str(error))}", highlight=False)


class GuardedLogger:
    """RequestLogger wrapper whose own failures go to stderr instead of the caller."""

    def __init__(self, logger: RequestLogger) -> None:
        self._logger = logger

    def log_request(self, method: str, target_url: str, status: int, elapsed_ms: float) -> None:
        try:
            self._logger.log_request(method, target_url, status, elapsed_ms)
        except Exception as e:
            report_logging_failure(e)

    def log_warning(self, source: str, message: str) -> None:
        try:
            self._logger.log_warning(source, message)
        except Exception as e:
            report_logging_failure(e)

    def log_error(self, kind: str, status: int, message: str) -> None:
        try:
            self._logger.log_error(kind, status, message)
        except Exception as e:
            report_logging_failure(e)
