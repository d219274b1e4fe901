"""Request body transcoding by declared content type."""

import re

from core.json_repair import repair_json
from core.protocols import RequestLogger
from core.request_types import ABSENT, BinaryBody, InboundRequest, RequestBody, TextBody

BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

_LEADING_DIGITS = re.compile(r"^\s*\+?(\d+)")


def declared_length(value: str | None) -> int:
    """Parse a content-length header leniently (leading digits only)."""
    if not value:
        return 0
    match = _LEADING_DIGITS.match(value)
    return int(match.group(1)) if match else 0


class BodyTranscoder:
    """Read the inbound body and re-encode it for the upstream request."""

    def __init__(self, logger: RequestLogger | None = None) -> None:
        self._logger = logger

    async def transcode(self, request: InboundRequest) -> RequestBody:
        """Return the outbound body for the inbound request.

        Only body-bearing methods with a positive content-length are read.
        A failing read degrades to an absent body.
        """
        if request.method.upper() not in BODY_METHODS:
            return ABSENT
        if declared_length(request.header("content-length")) <= 0:
            return ABSENT

        content_type = (request.header("content-type") or "").lower()
        try:
            raw = await request.read_body()
        except Exception as e:
            self._warn(f"Could not read request body: {e}")
            return ABSENT

        return self.encode(raw, content_type)

    def encode(self, raw: bytes, content_type: str) -> RequestBody:
        """Pick the body representation for a content type (checked in priority order)."""
        if "application/json" in content_type or "text/json" in content_type:
            return self._encode_json(_as_text(raw))
        if "application/x-www-form-urlencoded" in content_type:
            return TextBody(_as_text(raw))
        if "multipart/form-data" in content_type:
            return BinaryBody(raw)
        if "xml" in content_type or "soap" in content_type:
            return TextBody(_as_text(raw))
        if "text/" in content_type:
            return TextBody(_as_text(raw))
        return BinaryBody(raw)

    def _encode_json(self, text: str) -> TextBody:
        result = repair_json(text)
        if result.ok:
            return TextBody(result.serialize())
        self._warn(f"All JSON parsing strategies failed: {'; '.join(result.errors)}")
        return TextBody(text)

    def _warn(self, message: str) -> None:
        if self._logger:
            self._logger.log_warning("body", message)


def _as_text(raw: bytes) -> str:
    return raw.decode("utf-8-sig", errors="replace")
