"""
=============================================================================
STREAMING HTTP RESPONSE
=============================================================================

Handlers don't return a response object; they write one, in pieces:

    def handler(request, response):
        response.status = 200
        response.set_header("Content-Type", "text/css; charset=utf-8")
        response.write("body {")
        response.write("  color: #FFFFFF; }")
        response.end()

=============================================================================
RESPONSE LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   OPEN ──── set_header / status (mutable) ──────────┐               │
    │     │                                               │               │
    │     │ first write() / end() / flush_headers()       │               │
    │     ▼                                               │               │
    │   FINALIZING                                        │               │
    │     │  1. end(data) offers len(data) as Content-Length              │
    │     │  2. on_headers hooks run, once, in order ◄────┘               │
    │     │     (they may still change headers)                         │
    │     │  3. framing chosen, Date/Server added                        │
    │     │  4. status line + headers go to the sink                     │
    │     ▼                                                               │
    │   STREAMING ──── write(chunk) ──► sink                              │
    │     │                                                               │
    │     │ end()                                                         │
    │     ▼                                                               │
    │   FINISHED ──── end() again → False, write() → UsageError          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The on_headers hooks are the single decision point for anything that
wants to rewrite a response based on its headers; the minify interceptor
registers one.

=============================================================================
FRAMING
=============================================================================

    Content-Length set ........... body written as-is
    HTTP/1.1, no Content-Length .. Transfer-Encoding: chunked
                                     "<hex size>\r\n<data>\r\n" ... "0\r\n\r\n"
    HTTP/1.0, no Content-Length .. body until connection close
    HEAD, 1xx, 204, 304 .......... no body bytes ever written

=============================================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..assets import charset_of
from ..errors import UsageError
from ..options import MinifyOptions


Chunk = Union[str, bytes, bytearray, memoryview]
HeadersHook = Callable[["ResponseStream"], None]
Sink = Callable[[bytes], Any]

DEFAULT_SERVER_NAME = "httpminify/1.0"


class ResponseWriter(ABC):
    """
    The stream contract handlers and middleware write against.

    Implemented by ResponseStream and by wrappers around it (the minify
    interceptor), so a handler can't tell the two apart.
    """

    minify_options: MinifyOptions

    @property
    @abstractmethod
    def status(self) -> int: ...

    @status.setter
    @abstractmethod
    def status(self, value: int) -> None: ...

    @property
    @abstractmethod
    def request_method(self) -> str: ...

    @property
    @abstractmethod
    def headers_sent(self) -> bool: ...

    @property
    @abstractmethod
    def finished(self) -> bool: ...

    @abstractmethod
    def set_header(self, name: str, value: str) -> None: ...

    @abstractmethod
    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]: ...

    @abstractmethod
    def remove_header(self, name: str) -> None: ...

    @abstractmethod
    def header_items(self) -> List[Tuple[str, str]]: ...

    @abstractmethod
    def flush_headers(self, content_length: Optional[int] = None) -> None: ...

    @abstractmethod
    def write(self, chunk: Chunk) -> bool:
        """Send (or buffer) a body chunk. Returns True."""

    @abstractmethod
    def end(self, chunk: Optional[Chunk] = None) -> bool:
        """Finish the response. Returns False if it was already finished."""

    def has_header(self, name: str) -> bool:
        return self.get_header(name) is not None


def to_bytes(chunk: Chunk, encoding: str) -> bytes:
    """
    Convert a write() argument to bytes.

    Raises:
        UsageError: Anything other than text or a bytes-like object.
    """
    if isinstance(chunk, str):
        return chunk.encode(encoding)
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    raise UsageError(
        f"Response chunks must be str or bytes-like, not {type(chunk).__name__}"
    )


class ResponseStream(ResponseWriter):
    """
    Writes one HTTP response to a byte sink.

    Args:
        sink: Callable receiving raw bytes (socket.sendall, list.append).
        request_method: Method of the request being answered.
        version: Protocol version for the status line.
        server_name: Server header value.
        keep_alive: Whether the connection should stay open afterwards.
                    Set to False here if the body has to be delimited by
                    closing the connection.
        encoding: Used for str chunks when Content-Type has no charset.
    """

    def __init__(
        self,
        sink: Sink,
        request_method: str = "GET",
        version: str = "HTTP/1.1",
        server_name: str = DEFAULT_SERVER_NAME,
        keep_alive: bool = True,
        encoding: str = "utf-8",
    ):
        self._sink = sink
        self._request_method = request_method.upper()
        self.version = version
        self.server_name = server_name
        self.keep_alive = keep_alive
        self.default_encoding = encoding

        self._status = int(HTTPStatus.OK)
        # lowercase name → (name as given, value)
        self._headers: Dict[str, Tuple[str, str]] = {}
        self._hooks: List[HeadersHook] = []

        self._flushing = False
        self._headers_sent = False
        self._chunked = False
        self._finished = False
        self.bytes_written = 0

        self.minify_options = MinifyOptions()
        self.minify_outcome = None

    # =========================================================================
    # STATUS AND HEADERS
    # =========================================================================

    @property
    def status(self) -> int:
        return self._status

    @status.setter
    def status(self, value: int) -> None:
        self._check_mutable()
        self._status = int(value)

    @property
    def request_method(self) -> str:
        return self._request_method

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def encoding(self) -> str:
        return charset_of(self.get_header("Content-Type"), self.default_encoding)

    def set_header(self, name: str, value: str) -> None:
        self._check_mutable()
        self._headers[name.lower()] = (name, str(value))

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        entry = self._headers.get(name.lower())
        return entry[1] if entry else default

    def remove_header(self, name: str) -> None:
        self._check_mutable()
        self._headers.pop(name.lower(), None)

    def header_items(self) -> List[Tuple[str, str]]:
        return list(self._headers.values())

    def _check_mutable(self):
        if self._headers_sent:
            raise UsageError("Headers already sent")

    @property
    def has_body(self) -> bool:
        """Whether this response may carry body bytes at all."""
        if self._request_method == "HEAD":
            return False
        if 100 <= self._status < 200 or self._status in (204, 304):
            return False
        return True

    # =========================================================================
    # HEADER FINALIZATION
    # =========================================================================

    def on_headers(self, hook: HeadersHook) -> None:
        """
        Register a hook run just before headers are serialized.

        Hooks receive this stream and may still modify status and headers.
        """
        self._check_mutable()
        self._hooks.append(hook)

    def flush_headers(self, content_length: Optional[int] = None) -> None:
        """
        Finalize and send the status line and headers.

        Args:
            content_length: Body length, if the whole body is already known.
                            Only used when no Content-Length was set.
        """
        if self._headers_sent or self._flushing:
            return
        self._flushing = True

        try:
            if (
                content_length is not None
                and self.has_body
                and not self.has_header("Content-Length")
            ):
                self.set_header("Content-Length", str(content_length))

            for hook in self._hooks:
                hook(self)

            head = self._serialize_head()
            self._headers_sent = True
        finally:
            self._flushing = False

        self._sink(head)

    def _serialize_head(self) -> bytes:
        if not self.has_body:
            if self._status == 204 or self._status < 200:
                self._headers.pop("content-length", None)
            self._headers.pop("transfer-encoding", None)
        elif not self.has_header("Content-Length"):
            if self.version == "HTTP/1.1":
                self.set_header("Transfer-Encoding", "chunked")
                self._chunked = True
            else:
                self.keep_alive = False

        if not self.has_header("Date"):
            self.set_header("Date", format_http_date(datetime.now(timezone.utc)))
        if not self.has_header("Server"):
            self.set_header("Server", self.server_name)

        if not self.keep_alive:
            self.set_header("Connection", "close")
        elif self.version == "HTTP/1.0":
            self.set_header("Connection", "keep-alive")

        lines = [f"{self.version} {self._status} {reason_phrase(self._status)}"]
        for name, value in self._headers.values():
            lines.append(f"{name}: {value}")
        lines.append("")
        return ("\r\n".join(lines) + "\r\n").encode("latin-1")

    # =========================================================================
    # BODY
    # =========================================================================

    def write(self, chunk: Chunk) -> bool:
        if self._finished:
            raise UsageError("write() after end()")

        data = to_bytes(chunk, self.encoding)
        if not self._headers_sent:
            self.flush_headers()
        self._send(data)
        return True

    def end(self, chunk: Optional[Chunk] = None) -> bool:
        if self._finished:
            return False

        data = b"" if chunk is None else to_bytes(chunk, self.encoding)
        if not self._headers_sent:
            self.flush_headers(content_length=len(data))
        self._send(data)

        if self._chunked:
            self._sink(b"0\r\n\r\n")
        self._finished = True
        return True

    def _send(self, data: bytes):
        if not data or not self.has_body:
            return
        if self._chunked:
            self._sink(b"%x\r\n" % len(data) + data + b"\r\n")
        else:
            self._sink(data)
        self.bytes_written += len(data)


def reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"


def format_http_date(dt: datetime) -> str:
    """Format a UTC datetime as an IMF-fixdate: "Wed, 01 Jan 2026 12:00:00 GMT"."""
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
