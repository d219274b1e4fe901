import httpx
import pytest
from fastapi.testclient import TestClient

from app import create_app
from core.config import Config
from core.request_types import InboundRequest


class RecordingLogger:
    """RequestLogger that keeps every call for assertions."""

    def __init__(self):
        self.requests = []
        self.warnings = []
        self.errors = []

    def log_request(self, method, target_url, status, elapsed_ms):
        self.requests.append((method, target_url, status))

    def log_warning(self, source, message):
        self.warnings.append((source, message))

    def log_error(self, kind, status, message):
        self.errors.append((kind, status, message))


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path, monkeypatch):
    """Keep CLI and exchange logs out of the working directory."""
    monkeypatch.setattr("ui.log_utils.LOG_ROOT", tmp_path / "logs")
    monkeypatch.setattr("ui.log_utils.CLI_LOG_FILE", tmp_path / "logs" / "proxy.log")
    return tmp_path / "logs"


@pytest.fixture
def logger():
    return RecordingLogger()


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def upstream_response():
    """Build an upstream response whose body is still unread, like a real transport."""

    def _create(status_code=200, headers=None, content=b""):
        return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(content))

    return _create


@pytest.fixture
def proxy_client(config, logger):
    """Create a TestClient whose upstream calls are served by ``handler``."""

    def _create(handler):
        app = create_app(config, logger, transport=httpx.MockTransport(handler))
        return TestClient(app)

    return _create


@pytest.fixture
def inbound():
    """Build an InboundRequest with an in-memory body."""

    def _create(method="POST", headers=None, body=b"", path="/api/proxy/https://example.com", query=""):
        async def read_body():
            return body

        return InboundRequest(
            method=method,
            path=path,
            query=query,
            headers=list((headers or {}).items()),
            read_body=read_body,
        )

    return _create
