"""
pytest configuration and fixtures.
"""

import socket
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Generator, List, Optional

import pytest

from httpminify import (
    BackendRegistry,
    HTTPServer,
    MemoryCache,
    MinifyPipeline,
    ServerConfig,
    TransformDispatcher,
)
from httpminify.assets import ContentTypeMatchers
from httpminify.http import ResponseStream
from httpminify.interceptor import MinifyingResponse


# =============================================================================
# RAW RESPONSE PARSING
# =============================================================================


@dataclass
class RawResponse:
    """A response as it went over the wire. Header names are lowercase."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    chunked: bool = False


def dechunk(data: bytes) -> bytes:
    """Decode a Transfer-Encoding: chunked body."""
    body = b""
    while data:
        size_line, _, data = data.partition(b"\r\n")
        size = int(size_line, 16)
        if size == 0:
            return body
        body += data[:size]
        data = data[size + 2:]
    return body


def parse_response(data: bytes) -> RawResponse:
    head, _, payload = data.partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status = int(lines[0].split(" ")[1])

    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()

    chunked = headers.get("transfer-encoding") == "chunked"
    body = dechunk(payload) if chunked else payload
    return RawResponse(status=status, headers=headers, body=body, chunked=chunked)


class Sink:
    """Collects everything a ResponseStream sends."""

    def __init__(self):
        self.chunks: List[bytes] = []

    def __call__(self, data: bytes) -> None:
        self.chunks.append(bytes(data))

    @property
    def data(self) -> bytes:
        return b"".join(self.chunks)

    def response(self) -> RawResponse:
        return parse_response(self.data)


@pytest.fixture
def sink() -> Sink:
    return Sink()


@pytest.fixture
def stream(sink: Sink) -> ResponseStream:
    """A GET response stream writing into ``sink``."""
    return ResponseStream(sink)


# =============================================================================
# FAKE BACKENDS
# =============================================================================


class RecordingBackend:
    """
    Plain ``func(source, options)`` backend that records its calls.

    Usage:
        js = RecordingBackend(lambda src: src.replace(" ", ""))
        registry = BackendRegistry({"js": js})
    """

    def __init__(self, transform: Callable[[str], str]):
        self.transform = transform
        self.calls: List[tuple] = []

    def __call__(self, source: str, options: dict) -> str:
        self.calls.append((source, dict(options)))
        return self.transform(source)


def _squash(source: str) -> str:
    return "".join(source.split())


def _fail(source: str) -> str:
    raise ValueError("unexpected token")


@pytest.fixture
def fake_backends() -> Dict[str, RecordingBackend]:
    """
    Deterministic stand-ins for every stage:

        minifiers drop all whitespace
        compilers prefix "/*compiled*/" (so the output is recognizable
        after the minify stage too)
    """
    return {
        "js": RecordingBackend(_squash),
        "css": RecordingBackend(_squash),
        "json": RecordingBackend(_squash),
        "sass": RecordingBackend(lambda src: "/*compiled*/ " + src),
        "less": RecordingBackend(lambda src: "/*compiled*/ " + src),
        "stylus": RecordingBackend(lambda src: "/*compiled*/ " + src),
        "coffee": RecordingBackend(lambda src: "/*compiled*/ " + src),
    }


@pytest.fixture
def failing_backend() -> RecordingBackend:
    return RecordingBackend(_fail)


@pytest.fixture
def registry(fake_backends) -> BackendRegistry:
    return BackendRegistry(fake_backends)


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def pipeline(registry, cache) -> MinifyPipeline:
    return MinifyPipeline(cache, TransformDispatcher(registry))


@pytest.fixture
def wrap(pipeline) -> Callable[[ResponseStream], MinifyingResponse]:
    """Wrap a stream in a MinifyingResponse sharing the test pipeline."""

    def _wrap(inner: ResponseStream) -> MinifyingResponse:
        return MinifyingResponse(inner, pipeline, ContentTypeMatchers())

    return _wrap


# =============================================================================
# LIVE SERVER
# =============================================================================


class ServerThread:
    """Runs HTTPServer.serve_forever() in a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self) -> "ServerThread":
        self.server.start()
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()
        return self

    def stop(self):
        self.server.shutdown(timeout=5.0)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def request(self, path: str, method: str = "GET", headers: Optional[Dict[str, str]] = None) -> RawResponse:
        """Send one request with Connection: close and read until EOF."""
        lines = [f"{method} {path} HTTP/1.1", "Host: localhost", "Connection: close"]
        for name, value in (headers or {}).items():
            lines.append(f"{name}: {value}")
        raw = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

        with socket.create_connection(("127.0.0.1", self.port), timeout=5.0) as s:
            s.sendall(raw)
            data = b""
            while True:
                chunk = s.recv(65536)
                if not chunk:
                    break
                data += chunk
        return parse_response(data)


@pytest.fixture
def server_config() -> ServerConfig:
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


@pytest.fixture
def serve(server_config) -> Generator[Callable[..., ServerThread], None, None]:
    """
    Factory starting a live server around a handler.

        srv = serve(handler, LoggingMiddleware(), MinifyMiddleware(...))
        srv.request("/site.scss")
    """
    running: List[ServerThread] = []

    def _serve(handler, *middleware) -> ServerThread:
        server = HTTPServer(handler, server_config)
        for mw in middleware:
            server.use(mw)
        thread = ServerThread(server).start()
        running.append(thread)
        return thread

    yield _serve

    for thread in running:
        thread.stop()
