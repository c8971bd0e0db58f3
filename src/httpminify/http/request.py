"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Just enough HTTP/1.1 request parsing for the host server: request line,
headers (lowercased, duplicates joined with ", "), Content-Length body.

    GET /css/site.scss?v=3 HTTP/1.1\r\n      ─► method, path, query, version
    Host: localhost:8080\r\n                  ─► headers["host"]
    Accept-Encoding: gzip\r\n                 ─► headers["accept-encoding"]
    \r\n
    <Content-Length bytes>                    ─► body

Malformed input raises HTTPParseError carrying the status to answer with.

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlparse


class HTTPParseError(Exception):
    """A request that can't be parsed, plus the status code to reply with."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """A parsed request. Header names are lowercase."""

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""
    client_address: Tuple[str, int] = ("", 0)

    @property
    def content_type(self) -> Optional[str]:
        value = self.headers.get("content-type")
        if value is None:
            return None
        return value.split(";")[0].strip().lower()

    @property
    def is_keep_alive(self) -> bool:
        """HTTP/1.1 stays open unless told to close; HTTP/1.0 the reverse."""
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses one complete request (headers plus Content-Length body).

    Usage:
        parser = RequestParser(max_request_size=1024 * 1024)
        request = parser.parse(raw_bytes, client_address=("127.0.0.1", 50312))
    """

    VALID_METHODS = frozenset({
        "GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS",
    })

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: Tuple[str, int] = ("", 0)) -> HTTPRequest:
        """
        Raises:
            HTTPParseError: 400 malformed, 405 unknown method,
                            413 too large, 505 bad version.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        head, terminator, body = data.partition(b"\r\n\r\n")
        if not terminator:
            raise HTTPParseError("Incomplete request: no header terminator")

        request_line, *header_lines = head.decode("latin-1").split("\r\n")
        method, path, query_params, version = self._parse_request_line(request_line)
        headers = self._parse_headers(header_lines)

        declared = headers.get("content-length", "0")
        if not declared.isdigit():
            raise HTTPParseError(f"Invalid Content-Length header: {declared!r}")
        content_length = int(declared)
        if len(body) < content_length:
            raise HTTPParseError(
                f"Body shorter than Content-Length ({len(body)} < {content_length})"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, Dict[str, List[str]], str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)
        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, str]:
        """Lower-cased names; repeats joined with ', '; malformed lines dropped."""
        fields: List[List[str]] = []

        for line in filter(None, lines):
            if line[0] in (" ", "\t"):
                # obs-fold
                if fields:
                    fields[-1][1] += " " + line.strip()
            else:
                match = self.HEADER_PATTERN.match(line)
                if match:
                    fields.append([match.group(1).strip().lower(), match.group(2).strip()])

        headers: Dict[str, str] = {}
        for name, value in fields:
            headers[name] = f"{headers[name]}, {value}" if name in headers else value
        return headers
