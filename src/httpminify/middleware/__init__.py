"""
Streaming middleware: the pipeline, access logging and the minify layer.
"""

from .base import (
    FunctionMiddleware,
    Handler,
    Middleware,
    MiddlewarePipeline,
    NextHandler,
    function_middleware,
)
from .logging import LoggingMiddleware, RequestLog
from .minify import MinifyMiddleware

__all__ = [
    "FunctionMiddleware",
    "Handler",
    "LoggingMiddleware",
    "Middleware",
    "MiddlewarePipeline",
    "MinifyMiddleware",
    "NextHandler",
    "RequestLog",
    "function_middleware",
]
