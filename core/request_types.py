"""Shared request data types."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class TextBody:
    """Body forwarded as UTF-8 text."""

    text: str

    def encode(self) -> bytes | None:
        return self.text.encode("utf-8")


@dataclass(frozen=True)
class BinaryBody:
    """Body forwarded as opaque bytes."""

    data: bytes

    def encode(self) -> bytes | None:
        return self.data


@dataclass(frozen=True)
class AbsentBody:
    """No body is forwarded."""

    def encode(self) -> bytes | None:
        return None


ABSENT = AbsentBody()

RequestBody = TextBody | BinaryBody | AbsentBody


@dataclass(frozen=True)
class TargetURL:
    """Validated absolute upstream URL."""

    url: str
    scheme: str
    host: str


@dataclass(frozen=True)
class InboundRequest:
    """Request as received on the proxy route."""

    method: str
    path: str
    query: str
    headers: list[tuple[str, str]]
    read_body: Callable[[], Awaitable[bytes]]

    def header(self, name: str) -> str | None:
        """Return the first value of a header, matched case-insensitively."""
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None


@dataclass(frozen=True)
class OutboundRequest:
    """Request about to be sent upstream."""

    method: str
    target: TargetURL
    headers: list[tuple[str, str]]
    body: RequestBody = ABSENT


@dataclass(frozen=True)
class UpstreamResponse:
    """Fully buffered upstream response."""

    status_code: int
    reason_phrase: str
    headers: list[tuple[str, str]]
    content: bytes = b""


@dataclass(frozen=True)
class UpstreamTimedOut:
    """The upstream call did not finish before the deadline."""

    detail: str


@dataclass(frozen=True)
class UpstreamConnectionFailed:
    """The upstream could not be reached (DNS, refused, TLS, redirects)."""

    detail: str


UpstreamResult = UpstreamResponse | UpstreamTimedOut | UpstreamConnectionFailed


@dataclass
class ExchangeRecord:
    """Summary of one proxied exchange, used for logging."""

    method: str
    target_url: str
    status: int
    elapsed_ms: float
    request_headers: dict[str, str] = field(default_factory=dict)
    response_headers: dict[str, str] = field(default_factory=dict)
