"""
=============================================================================
HTTPMINIFY - Compile, minify and cache HTTP responses on the fly
=============================================================================

A response-transformation middleware: it intercepts outgoing bodies,
recognizes scripts, stylesheets and JSON by Content-Type, compiles
dialects (SCSS, LESS, Stylus, CoffeeScript) to their base format,
minifies the result, and caches it under a digest of body + options so
the same asset is never processed twice.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   handler ──► MinifyingResponse ──► ResponseStream ──► socket       │
    │                     │    (interceptor.py)  (http/response.py)        │
    │                     │                                                │
    │                     └──► MinifyPipeline (pipeline.py)               │
    │                             │                                        │
    │                             ├──► ContentCache      (cache.py)       │
    │                             │     memory | file (atomic rename)     │
    │                             │                                        │
    │                             └──► TransformDispatcher (dispatcher.py)│
    │                                   │                                  │
    │                                   └──► BackendRegistry (backends/)  │
    │                                         libsass, lesscpy, stylus,   │
    │                                         CoffeeScript, calmjs.parse, │
    │                                         csscompressor, json         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httpminify/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI (python -m httpminify ROOT)
    ├── assets.py            # Asset types, content-type matching, classify()
    ├── options.py           # Per-response MinifyOptions
    ├── cache.py             # MemoryCache, FileCache, cache_key()
    ├── dispatcher.py        # Compile/minify stages and error policy
    ├── pipeline.py          # Cache lookup/populate around the dispatcher
    ├── interceptor.py       # MinifyingResponse (the stream wrapper)
    ├── errors.py            # Exception taxonomy
    ├── config.py            # MinifyConfig, ServerConfig
    ├── server.py            # Threaded host server
    ├── backends/            # Compiler/Minifier interfaces and defaults
    ├── core/                # WorkerPool, Connection
    ├── http/                # Request parser, ResponseStream, MIME types
    ├── middleware/          # Pipeline, MinifyMiddleware, LoggingMiddleware
    └── handlers/            # StaticFileHandler

=============================================================================
QUICK START
=============================================================================

    from httpminify import (
        HTTPServer, ServerConfig, MinifyConfig,
        LoggingMiddleware, MinifyMiddleware, StaticFileHandler,
    )

    server = HTTPServer(StaticFileHandler("public"), ServerConfig(port=8080))
    server.use(LoggingMiddleware())
    server.use(MinifyMiddleware(MinifyConfig(cache=".minify-cache")))
    server.run()

=============================================================================
"""

__version__ = "1.0.0"

from typing import Optional

from .assets import AssetType, ContentTypeMatchers, ResponseClassification, classify
from .backends import BackendRegistry, BackendState, Compiler, Minifier
from .cache import ContentCache, FileCache, MemoryCache, cache_key, create_cache
from .config import MinifyConfig, ServerConfig
from .dispatcher import (
    ErrorInfo,
    ErrorResolution,
    Stage,
    StageResult,
    TransformDispatcher,
    TransformResult,
    default_error_handler,
)
from .errors import (
    BackendUnavailableError,
    CacheError,
    CompileError,
    HTTPMinifyError,
    MinifyError,
    TransformError,
    UsageError,
)
from .handlers import StaticFileHandler
from .http import HTTPRequest, ResponseStream, ResponseWriter
from .interceptor import MinifyingResponse
from .middleware import LoggingMiddleware, MiddlewarePipeline, MinifyMiddleware
from .options import MinifyOptions
from .pipeline import CacheStatus, MinifyOutcome, MinifyPipeline
from .server import HTTPServer


def create_middleware(config: Optional[MinifyConfig] = None, **kwargs) -> MinifyMiddleware:
    """
    Build a MinifyMiddleware from a config or keyword settings.

        create_middleware(cache="/tmp/minify", stage_timeout=5.0)
    """
    if config is not None and kwargs:
        raise TypeError("Pass either a MinifyConfig or keyword settings, not both")
    return MinifyMiddleware(config or MinifyConfig(**kwargs))


__all__ = [
    "AssetType",
    "BackendRegistry",
    "BackendState",
    "BackendUnavailableError",
    "CacheError",
    "CacheStatus",
    "Compiler",
    "CompileError",
    "ContentCache",
    "ContentTypeMatchers",
    "ErrorInfo",
    "ErrorResolution",
    "FileCache",
    "HTTPMinifyError",
    "HTTPRequest",
    "HTTPServer",
    "LoggingMiddleware",
    "MemoryCache",
    "MiddlewarePipeline",
    "MinifyConfig",
    "MinifyError",
    "MinifyMiddleware",
    "MinifyOptions",
    "MinifyOutcome",
    "MinifyPipeline",
    "Minifier",
    "MinifyingResponse",
    "ResponseClassification",
    "ResponseStream",
    "ResponseWriter",
    "ServerConfig",
    "Stage",
    "StageResult",
    "StaticFileHandler",
    "TransformDispatcher",
    "TransformError",
    "TransformResult",
    "UsageError",
    "cache_key",
    "classify",
    "create_cache",
    "create_middleware",
    "default_error_handler",
]
