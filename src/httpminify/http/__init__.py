"""
HTTP primitives: request parsing, the streaming response, MIME types.
"""

from .mime_types import get_content_type, get_mime_type
from .request import HTTPParseError, HTTPRequest, RequestParser
from .response import (
    ResponseStream,
    ResponseWriter,
    format_http_date,
    reason_phrase,
    to_bytes,
)

__all__ = [
    "HTTPParseError",
    "HTTPRequest",
    "RequestParser",
    "ResponseStream",
    "ResponseWriter",
    "format_http_date",
    "get_content_type",
    "get_mime_type",
    "reason_phrase",
    "to_bytes",
]
