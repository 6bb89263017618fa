"""Tests for HTTP client implementations."""

import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import MagicMock

import pytest
import requests
from requests.adapters import HTTPAdapter

from ratecast import HttpClient, PooledHttpClient


class TestHttpClientBase:
    """Tests for the HttpClient abstract base class."""

    def test_cannot_instantiate_abstract_class(self):
        with pytest.raises(TypeError):
            HttpClient()

    def test_context_manager_closes_client(self):
        class ClosingClient(HttpClient):
            closed = False

            def get(self, url, data=None, timeout=30.0):
                raise NotImplementedError

            def close(self):
                self.closed = True

        with ClosingClient() as client:
            assert client.closed is False

        assert client.closed is True


class TestPooledHttpClientInit:
    """Tests for PooledHttpClient initialization."""

    def test_mounts_pooled_adapter_without_retries(self):
        client = PooledHttpClient(pool_maxsize=42)

        adapter = client._session.get_adapter("http://localhost:8080/")

        assert isinstance(adapter, HTTPAdapter)
        assert adapter._pool_maxsize == 42
        assert adapter.max_retries.total == 0

    def test_http_and_https_share_the_adapter(self):
        client = PooledHttpClient()
        assert client._session.get_adapter("http://a:1/") is client._session.get_adapter("https://a:1/")

    def test_init_fails_with_invalid_pool_size(self):
        with pytest.raises(AssertionError, match="pool_maxsize must be greater than 0"):
            PooledHttpClient(pool_maxsize=0)


class TestPooledHttpClientGet:
    """Tests for PooledHttpClient.get() with a mocked session."""

    def test_delegates_to_session(self):
        session = MagicMock(spec=requests.Session)
        response = MagicMock(spec=requests.Response)
        session.get.return_value = response
        client = PooledHttpClient(session=session)

        result = client.get("http://localhost:8080/", data=" ", timeout=3.0)

        assert result is response
        session.get.assert_called_once_with("http://localhost:8080/", data=" ", timeout=3.0)

    def test_rejects_empty_url(self):
        client = PooledHttpClient(session=MagicMock(spec=requests.Session))
        with pytest.raises(AssertionError, match="URL cannot be empty"):
            client.get("")

    def test_rejects_non_positive_timeout(self):
        client = PooledHttpClient(session=MagicMock(spec=requests.Session))
        with pytest.raises(AssertionError, match="Timeout must be greater than 0"):
            client.get("http://localhost:8080/", timeout=0)

    def test_close_closes_session(self):
        session = MagicMock(spec=requests.Session)
        PooledHttpClient(session=session).close()
        session.close.assert_called_once()

    def test_transport_errors_propagate(self):
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = requests.ConnectionError("refused")
        client = PooledHttpClient(session=session)

        with pytest.raises(requests.ConnectionError):
            client.get("http://localhost:8080/")


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    seen: list[tuple[str, str, bytes]] = []

    def do_GET(self):
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length)
        self.seen.append((self.command, self.path, body))
        payload = b"hello"
        self.send_response(503 if self.path == "/fail" else 200)
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def local_server():
    _Handler.seen = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


class TestPooledHttpClientAgainstServer:
    """End-to-end checks against a local HTTP server."""

    def test_sends_get_with_space_body_and_reads_response(self, local_server):
        host, port = local_server.server_address

        with PooledHttpClient(pool_maxsize=2) as client:
            response = client.get(f"http://{host}:{port}/", data=" ", timeout=5.0)

        assert response.status_code == 200
        assert response.content == b"hello"
        assert _Handler.seen == [("GET", "/", b" ")]

    def test_connection_refused_raises_connection_error(self):
        with PooledHttpClient() as client:
            with pytest.raises(requests.ConnectionError):
                client.get("http://127.0.0.1:1/", timeout=2.0)
