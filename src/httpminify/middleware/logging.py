"""
=============================================================================
ACCESS LOGGING
=============================================================================

One log line per request, with timing, a correlation id and what the
minify layer did to the response.

    TEXT (Apache-style, default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [19/Oct/2026:10:55:36 +0000] "GET /site.scss" 200     │
    │ 1234 5.12ms sass/miss                                                │
    └─────────────────────────────────────────────────────────────────────┘

    JSON:
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "GET", "path": "/site.scss",   │
    │  "status_code": 200, "content_length": 1234, "duration_ms": 5.12,   │
    │  "minify": {"asset_type": "sass", "cache": "miss",                  │
    │             "error_stage": null}, ...}                              │
    └─────────────────────────────────────────────────────────────────────┘

Put it first in the pipeline so its timing covers the minify work and the
X-Request-ID header is set before anything finalizes the headers.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import List, Optional

from ..http.request import HTTPRequest
from ..http.response import ResponseWriter
from .base import Middleware, NextHandler


logger = logging.getLogger("httpminify.access")


@dataclass
class RequestLog:
    """One access log entry."""

    request_id: str
    method: str
    path: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str
    minify: Optional[dict] = None

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        parts = [
            f'{self.client_ip} - - [{self.timestamp}]',
            f'"{self.method} {self.path}"',
            str(self.status_code),
            str(self.content_length),
            f'{self.duration_ms:.2f}ms',
        ]
        if self.minify and self.minify.get("cache") != "passthrough":
            summary = f'{self.minify["asset_type"]}/{self.minify["cache"]}'
            if self.minify.get("error_stage"):
                summary += f' ({self.minify["error_stage"]} failed)'
            parts.append(summary)
        return " ".join(parts)


class LoggingMiddleware(Middleware):
    """
    Access log middleware.

    Usage:
        pipeline.add(LoggingMiddleware(log_format="json"))
        pipeline.add(LoggingMiddleware(skip_paths=["/favicon.ico"]))
    """

    FORMATS = ("text", "json")

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[List[str]] = None,
    ):
        if log_format not in self.FORMATS:
            raise ValueError(f"log_format must be one of {self.FORMATS}, got {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = frozenset(skip_paths or ())

    def __call__(self, request: HTTPRequest, response: ResponseWriter, next: NextHandler) -> None:
        request_id = uuid.uuid4().hex[:8]
        started = time.perf_counter()

        # Must go out before the minify layer or the handler flushes headers
        if self.include_request_id and not response.headers_sent:
            response.set_header("X-Request-ID", request_id)

        try:
            next(request, response)
        except Exception as e:
            logger.error(
                f"[{request_id}] {request.method} {request.path} raised "
                f"{type(e).__name__}: {e} after {_elapsed_ms(started):.2f}ms"
            )
            raise

        if request.path not in self.skip_paths:
            self._emit(self._entry(request, response, request_id, _elapsed_ms(started)))

    def _entry(
        self,
        request: HTTPRequest,
        response: ResponseWriter,
        request_id: str,
        duration_ms: float,
    ) -> RequestLog:
        outcome = getattr(response, "minify_outcome", None)
        return RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0],
            user_agent=request.get_header("user-agent") or "-",
            status_code=response.status,
            content_length=getattr(response, "bytes_written", 0),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
            minify=None if outcome is None else outcome.to_dict(),
        )

    def _emit(self, entry: RequestLog) -> None:
        message = json.dumps(entry.to_dict()) if self.log_format == "json" else entry.to_text()
        logger.log(self.log_level, message)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000
