"""Target URL resolution - extracts the upstream URL embedded in the path."""

import re
from urllib.parse import unquote

import httpx

from core.exceptions import InvalidTargetURL, MalformedTargetURL
from core.protocols import RequestLogger
from core.request_types import TargetURL

TARGET_URL_PATTERN = re.compile(r"^https?://.+")
ALLOWED_SCHEMES = frozenset({"http", "https"})


def extract_target_segment(path: str, prefix: str) -> str:
    """Return the part of a raw request path following the proxy prefix."""
    marker = prefix.rstrip("/") + "/"
    if marker in path:
        return path.split(marker, 1)[1]
    return ""


def with_query(url: str, query: str) -> str:
    """Append a query string to a URL, ahead of any fragment."""
    base, hash_mark, fragment = url.partition("#")
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{query}{hash_mark}{fragment}"


class TargetResolver:
    """Turn a path segment into a validated absolute http(s) URL."""

    def __init__(self, logger: RequestLogger | None = None) -> None:
        self._logger = logger

    def resolve(self, segment: str, query: str = "") -> TargetURL:
        """Decode, validate and parse the target segment.

        Raises:
            InvalidTargetURL: segment is empty or not ``http(s)://`` followed by something
            MalformedTargetURL: URL does not parse or has a disallowed scheme
        """
        candidate = self.decode(segment)
        if not candidate or not TARGET_URL_PATTERN.match(candidate):
            raise InvalidTargetURL(target_url=candidate or None)

        if query:
            candidate = with_query(candidate, query)

        try:
            parsed = httpx.URL(candidate)
        except (httpx.InvalidURL, ValueError) as e:
            raise MalformedTargetURL(details=str(e), target_url=candidate) from e

        if parsed.scheme not in ALLOWED_SCHEMES or not parsed.host:
            raise MalformedTargetURL(
                details=f"Unsupported URL: {candidate}",
                target_url=candidate,
            )

        return TargetURL(
            url=candidate,
            scheme=parsed.scheme,
            host=parsed.netloc.decode("ascii"),
        )

    def decode(self, segment: str) -> str:
        """Percent-decode the segment, keeping it raw if it is not valid UTF-8."""
        try:
            return unquote(segment, errors="strict")
        except UnicodeDecodeError as e:
            if self._logger:
                self._logger.log_warning("target", f"URL decoding failed, using original: {e}")
            return segment
