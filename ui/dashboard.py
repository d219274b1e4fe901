"""Terminal views of proxied traffic: a live dashboard and a plain line logger."""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock

from rich.console import Console, Group
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.config import Config
from ui.log_utils import write_cli_log

console = Console()

STATUS_STYLES = {"2xx": "green", "3xx": "cyan", "4xx": "yellow", "5xx": "red"}
RECENT_EXCHANGES = 10
RECENT_ERRORS = 3
TARGET_DISPLAY_CHARS = 80


def status_class(status: int) -> str:
    """Bucket a status code as 2xx/3xx/4xx/5xx (anything else counts as 5xx)."""
    bucket = f"{status // 100}xx"
    return bucket if bucket in STATUS_STYLES else "5xx"


def shorten(text: str, limit: int = TARGET_DISPLAY_CHARS) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


@dataclass(frozen=True)
class ExchangeInfo:
    method: str
    target_url: str
    status: int
    elapsed_ms: float
    timestamp: datetime = field(default_factory=datetime.now)


class Dashboard:
    """Live view with per-class counters, recent exchanges and recent errors.

    Every logger call also appends a line to the CLI log file.
    """

    def __init__(self, config: Config, output: Console | None = None):
        self.config = config
        self._console = output or console
        self._lock = Lock()
        self._exchanges: deque[ExchangeInfo] = deque(maxlen=RECENT_EXCHANGES)
        self._errors: deque[str] = deque(maxlen=RECENT_ERRORS)
        self._status_count = dict.fromkeys(STATUS_STYLES, 0)
        self._total_ms = 0.0
        self._warnings = 0
        self._live: Live | None = None

    def start(self) -> "Dashboard":
        self._live = Live(self.render(), console=self._console, refresh_per_second=4)
        self._live.start()
        return self

    def stop(self) -> None:
        if self._live:
            self._live.stop()
            self._live = None

    def log_request(self, method: str, target_url: str, status: int, elapsed_ms: float) -> None:
        with self._lock:
            self._status_count[status_class(status)] += 1
            self._total_ms += elapsed_ms
            self._exchanges.appendleft(ExchangeInfo(method, target_url, status, elapsed_ms))
            self._update()
        write_cli_log("REQUEST", target_url, method=method, status=status, ms=f"{elapsed_ms:.0f}")

    def log_warning(self, source: str, message: str) -> None:
        with self._lock:
            self._warnings += 1
            self._update()
        write_cli_log("WARNING", message[:200], source=source)

    def log_error(self, kind: str, status: int, message: str) -> None:
        with self._lock:
            self._errors.appendleft(f"{kind} {status}: {shorten(message, 50)}")
            self._update()
        write_cli_log("ERROR", message[:200], kind=kind, status=status)

    @property
    def average_ms(self) -> float:
        count = sum(self._status_count.values())
        return self._total_ms / count if count else 0.0

    def render(self) -> Group:
        return Group(self._summary(), self._recent_exchanges(), self._recent_errors())

    def _update(self) -> None:
        if self._live:
            self._live.update(self.render())

    def _summary(self) -> Panel:
        line = Text("Universal Proxy", style="bold cyan")
        for bucket, style in STATUS_STYLES.items():
            line.append(f"  {bucket} ", style="dim")
            line.append(str(self._status_count[bucket]), style=style)
        line.append(f"  avg {self.average_ms:.0f}ms", style="dim")
        line.append(f"  warnings {self._warnings}", style="dim")
        line.append(f"  :{self.config.proxy.port}{self.config.proxy.prefix}", style="dim")
        return Panel(line, border_style="cyan")

    def _recent_exchanges(self) -> Panel:
        if not self._exchanges:
            return Panel(Text("Waiting for requests...", style="dim"), title="Recent Exchanges")

        table = Table(expand=True, box=None, header_style="bold")
        table.add_column("Time", style="dim", width=8)
        table.add_column("Method", width=7)
        table.add_column("Status", width=6)
        table.add_column("Target", ratio=1, overflow="ellipsis")
        table.add_column("ms", justify="right", width=7)
        for exchange in self._exchanges:
            table.add_row(
                f"{exchange.timestamp:%H:%M:%S}",
                exchange.method,
                Text(str(exchange.status), style=STATUS_STYLES[status_class(exchange.status)]),
                shorten(exchange.target_url),
                f"{exchange.elapsed_ms:.0f}",
            )
        return Panel(table, title="Recent Exchanges", border_style="blue")

    def _recent_errors(self) -> Panel:
        if not self._errors:
            hint = (
                f"Send requests to http://{self.config.proxy.host}:{self.config.proxy.port}"
                f"{self.config.proxy.prefix}/<target url>"
            )
            return Panel(Text(hint, style="dim"), title="Errors", border_style="dim")

        lines = Text()
        for error in self._errors:
            lines.append("! ", style="bold red")
            lines.append(error + "\n", style="red")
        return Panel(lines, title="Errors", border_style="red")


class ConsoleLogger:
    """Print one line per event instead of running the live dashboard."""

    def __init__(self, output: Console | None = None):
        self._console = output or console
        self._lock = Lock()

    def log_request(self, method: str, target_url: str, status: int, elapsed_ms: float) -> None:
        style = STATUS_STYLES[status_class(status)]
        with self._lock:
            self._console.print(
                f"[dim]{datetime.now():%H:%M:%S}[/dim] {method} [{style}]{status}[/{style}] "
                f"{escape(target_url)} [dim]{elapsed_ms:.0f}ms[/dim]",
                highlight=False,
            )
        write_cli_log("REQUEST", target_url, method=method, status=status, ms=f"{elapsed_ms:.0f}")

    def log_warning(self, source: str, message: str) -> None:
        with self._lock:
            self._console.print(f"[yellow]Warning[/yellow] ({source}): {escape(message)}", highlight=False)
        write_cli_log("WARNING", message[:200], source=source)

    def log_error(self, kind: str, status: int, message: str) -> None:
        with self._lock:
            self._console.print(f"[red]\\[ERROR][/red] {kind} {status}: {escape(message)}", highlight=False)
        write_cli_log("ERROR", message[:200], kind=kind, status=status)
