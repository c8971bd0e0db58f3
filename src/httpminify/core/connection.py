"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps an accepted socket: buffered request reading, sending, and an
orderly close.

TCP is a byte stream, so one recv() may return half a request or a
request and a half. read_request() keeps a buffer across calls:

    recv ─► "GET /site.scss HT"            buffer, no \\r\\n\\r\\n yet
    recv ─► "TP/1.1\\r\\nHost: x\\r\\n\\r\\nGET /a"
                     └── headers complete ─┘ └── left in buffer for the
                                                 next (pipelined) request

Then Content-Length more bytes are read for the body.

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
              ▲                                                 │
              └─────────────────────────────────────────────────┘
    any state ──► CLOSING ──► CLOSED

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Tuple


logger = logging.getLogger(__name__)

HEADER_TERMINATOR = b"\r\n\r\n"


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


class ConnectionClosed(ConnectionError):
    """The peer went away while we were sending."""


@dataclass
class Connection:
    """One client socket and its read buffer."""

    socket: socket.socket
    address: Tuple[str, int]
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request (headers and Content-Length body).

        Bytes past the end of the request stay buffered for the next one.

        Returns:
            Raw request bytes, or None if the client closed the
            connection or an idle keep-alive connection timed out.

        Raises:
            TimeoutError: The first request didn't arrive in time.
            ValueError: The request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        idle = self.requests_handled > 0
        if idle:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            if not self._fill(lambda: HEADER_TERMINATOR in self._buffer):
                return None

            body_start = self._buffer.index(HEADER_TERMINATOR) + len(HEADER_TERMINATOR)
            request_end = body_start + _content_length(bytes(self._buffer[:body_start]))

            # A short body is handed to the parser as-is
            self._fill(lambda: len(self._buffer) >= request_end)
        except socket.timeout:
            if idle:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")
        finally:
            self.socket.settimeout(self.timeout)

        request_data = bytes(self._buffer[:request_end])
        del self._buffer[:request_end]
        self.requests_handled += 1
        return request_data

    def _fill(self, done: Callable[[], bool]) -> bool:
        """Receive until done() holds; False if the peer stopped sending first."""
        while not done():
            chunk = self._recv()
            if not chunk:
                return False
            self._buffer.extend(chunk)
            if len(self._buffer) > self.max_request_size:
                raise ValueError(f"Request too large: {len(self._buffer)} bytes")
        return True

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def send(self, data: bytes) -> None:
        """
        Send bytes, all of them.

        Used as the byte sink of a ResponseStream, so a failure has to
        raise; a streaming handler can't be told to stop any other way.

        Raises:
            ConnectionClosed: The client disconnected.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            raise ConnectionClosed(f"[{self.id}] Send failed: {e}") from e

    def close(self):
        """Half-close, drain briefly, release the socket."""
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def _content_length(header_section: bytes) -> int:
    """Content-Length from raw header bytes, 0 if absent or unparseable."""
    for line in header_section.decode("latin-1").lower().split("\r\n"):
        if line.startswith("content-length:"):
            try:
                return max(0, int(line.split(":", 1)[1].strip()))
            except ValueError:
                return 0
    return 0
