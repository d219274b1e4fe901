"""Header construction for upstream requests and proxied responses."""

import re
from collections.abc import Iterable

from core.protocols import RequestLogger
from core.request_types import TargetURL

# Inbound headers never copied to the upstream request
REQUEST_EXCLUDED_HEADERS = frozenset(
    {
        "host",
        "connection",
        "transfer-encoding",
        "content-length",
        "content-encoding",
        "accept-encoding",
    }
)

# Upstream headers never copied to the proxied response
RESPONSE_EXCLUDED_HEADERS = frozenset({"transfer-encoding", "connection", "keep-alive"})

CACHE_BUSTING_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, PATCH, OPTIONS, HEAD",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Expose-Headers": "*",
    "Access-Control-Allow-Credentials": "true",
}

PREFLIGHT_HEADERS = {**CORS_HEADERS, "Access-Control-Max-Age": "86400"}

DEFAULT_USER_AGENT = "Mozilla/5.0 (Proxy)"

# RFC 9110 field-name token and a value free of line breaks and NUL
_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_INVALID_VALUE_CHARS = re.compile(r"[\r\n\x00]")


class InvalidHeader(ValueError):
    """Header name or value cannot be sent on the wire."""


def validate_header(name: str, value: str) -> None:
    """Raise InvalidHeader if the header cannot be set."""
    if not _HEADER_NAME.match(name):
        raise InvalidHeader(f"invalid header name {name!r}")
    if _INVALID_VALUE_CHARS.search(value):
        raise InvalidHeader(f"invalid value for header {name!r}")
    try:
        value.encode("latin-1")
    except UnicodeEncodeError as e:
        raise InvalidHeader(f"value for header {name!r} is not latin-1: {e}") from e


class HeaderBuilder:
    """Build upstream request headers and proxied response headers.

    The filtering policy is passed in explicitly so it can be swapped in tests.
    """

    def __init__(
        self,
        logger: RequestLogger | None = None,
        *,
        request_excluded: frozenset[str] = REQUEST_EXCLUDED_HEADERS,
        response_excluded: frozenset[str] = RESPONSE_EXCLUDED_HEADERS,
        default_user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._logger = logger
        self._request_excluded = request_excluded
        self._response_excluded = response_excluded
        self._default_user_agent = default_user_agent

    def build_upstream_headers(
        self,
        headers: Iterable[tuple[str, str]],
        target: TargetURL,
    ) -> list[tuple[str, str]]:
        """Filter inbound headers and inject host, user-agent and cache-busting headers."""
        upstream: dict[str, tuple[str, str]] = {}
        for key, value in headers:
            key_lower = key.lower()
            if key_lower in self._request_excluded:
                continue
            try:
                validate_header(key, value)
            except InvalidHeader as e:
                self._warn(f"Skipping invalid header {key}: {e}")
                continue
            if key_lower in upstream:
                # Duplicates are merged into one field value
                separator = "; " if key_lower == "cookie" else ", "
                name, existing = upstream[key_lower]
                upstream[key_lower] = (name, f"{existing}{separator}{value}")
            else:
                upstream[key_lower] = (key, value)

        user_agent = upstream.get("user-agent", ("", ""))[1] or self._default_user_agent
        upstream["host"] = ("host", target.host)
        upstream["user-agent"] = ("user-agent", user_agent)
        for key, value in CACHE_BUSTING_HEADERS.items():
            upstream[key.lower()] = (key, value)

        return list(upstream.values())

    def build_response_headers(
        self,
        headers: Iterable[tuple[str, str]],
    ) -> list[tuple[str, str]]:
        """Copy upstream headers minus hop-by-hop ones, then force the CORS set."""
        cors_keys = {key.lower() for key in CORS_HEADERS}
        response: list[tuple[str, str]] = []
        for key, value in headers:
            key_lower = key.lower()
            if key_lower in self._response_excluded or key_lower in cors_keys:
                continue
            try:
                validate_header(key, value)
            except InvalidHeader as e:
                self._warn(f"Skipping problematic response header {key}: {e}")
                continue
            response.append((key, value))

        response.extend(CORS_HEADERS.items())
        return response

    def _warn(self, message: str) -> None:
        if self._logger:
            self._logger.log_warning("headers", message)
