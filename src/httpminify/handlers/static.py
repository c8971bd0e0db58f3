"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Streams files from a directory, in chunks, with the headers the minify
layer keys off:

    GET /css/site.scss
        Content-Type:   text/x-scss; charset=utf-8   (from the MIME table)
        Content-Length: 1834                         (removed again by the
                                                      interceptor when it
                                                      buffers the body)
        ETag, Last-Modified, Cache-Control

Paths are resolved and checked against the root, so "/../etc/passwd"
style requests get a 403 instead of a file.

=============================================================================
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

from ..http.mime_types import get_content_type
from ..http.request import HTTPRequest
from ..http.response import ResponseWriter, format_http_date


logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Streaming handler serving ``root_dir``.

    Usage:
        server = HTTPServer(StaticFileHandler("public"))
    """

    def __init__(
        self,
        root_dir: Union[str, Path],
        index_file: str = "index.html",
        cache_max_age: int = 3600,
        chunk_size: int = 64 * 1024,
    ):
        self.root_dir = Path(root_dir).resolve()
        self.index_file = index_file
        self.cache_max_age = cache_max_age
        self.chunk_size = chunk_size

        if not self.root_dir.is_dir():
            raise ValueError(f"Static root directory does not exist: {root_dir}")

    def __call__(self, request: HTTPRequest, response: ResponseWriter) -> None:
        if request.method not in ("GET", "HEAD"):
            response.set_header("Allow", "GET, HEAD")
            return self._error(response, 405, "Method not allowed")

        relative = request.path.lstrip("/")
        full_path = (self.root_dir / relative).resolve()

        try:
            full_path.relative_to(self.root_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {request.path}")
            return self._error(response, 403, "Access denied")

        if full_path.is_dir():
            full_path = full_path / self.index_file

        if not full_path.is_file():
            return self._error(response, 404, f"File not found: {request.path}")

        self._serve_file(full_path, request, response)

    def _serve_file(self, path: Path, request: HTTPRequest, response: ResponseWriter) -> None:
        try:
            stat = path.stat()
            handle = path.open("rb")
        except PermissionError:
            return self._error(response, 403, "Permission denied")

        with handle:
            etag = f'"{int(stat.st_mtime)}-{stat.st_size}"'
            if request.get_header("if-none-match") == etag:
                response.status = 304
                response.set_header("ETag", etag)
                response.end()
                return

            mtime = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
            response.status = 200
            response.set_header("Content-Type", get_content_type(path))
            response.set_header("Content-Length", str(stat.st_size))
            response.set_header("ETag", etag)
            response.set_header("Last-Modified", format_http_date(mtime))
            response.set_header("Cache-Control", f"public, max-age={self.cache_max_age}")

            if request.method == "HEAD":
                response.end()
                return

            while True:
                chunk = handle.read(self.chunk_size)
                if not chunk:
                    break
                response.write(chunk)
            response.end()

    def _error(self, response: ResponseWriter, status: int, message: str) -> None:
        response.status = status
        response.set_header("Content-Type", "application/json")
        response.end(json.dumps({"error": message}))
