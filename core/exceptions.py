"""Custom exception hierarchy for the universal proxy.

Each subclass is one error kind that can fail a proxied request. Anything
else that goes wrong is degraded (skipped header, absent body, raw JSON text)
rather than raised.
"""


class ProxyError(Exception):
    """Base exception for all request-failing proxy errors.

    Attributes:
        kind: Stable error kind name reported to the caller
        status_code: HTTP status code of the error response
        message: Client-facing error message
        details: Optional technical detail (exception text)
        target_url: Target URL known at the time of failure (optional)
    """

    kind = "ProxyError"
    status_code = 500
    default_message = "Failed to proxy request"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: str | None = None,
        target_url: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        self.details = details
        self.target_url = target_url


class InvalidTargetURL(ProxyError):
    """Raised when the target segment is missing or not an http(s) URL."""

    kind = "InvalidTargetURL"
    status_code = 400
    default_message = (
        "Invalid target URL. Must start with http:// or https:// and include a domain."
    )


class MalformedTargetURL(ProxyError):
    """Raised when the target URL cannot be parsed or uses another scheme."""

    kind = "MalformedTargetURL"
    status_code = 400
    default_message = "Malformed target URL. Only HTTP and HTTPS protocols are supported."


class UpstreamTimeout(ProxyError):
    """Raised when the upstream call exceeds the timeout."""

    kind = "UpstreamTimeout"
    status_code = 504
    default_message = "Request timeout - target server took too long to respond"


class UpstreamUnreachable(ProxyError):
    """Raised when unable to connect to the upstream server."""

    kind = "UpstreamUnreachable"
    status_code = 502
    default_message = "Could not connect to target server"


class ProxyInternalError(ProxyError):
    """Raised for any other failure while proxying."""

    kind = "ProxyInternalError"
    status_code = 500
