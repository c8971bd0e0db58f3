"""
=============================================================================
CONFIGURATION
=============================================================================

Two dataclasses, one per concern:

    MinifyConfig   what the middleware matches, where it caches, which
                   backends it uses, how failures are resolved
    ServerConfig   how the bundled host server listens and logs

Both follow the same pattern: defaults in the dataclass, ``from_env()``
for 12-factor deployments, ``validate()`` called once at startup so a bad
value fails immediately instead of on the first request.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION PRIORITY                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Command-line arguments    python -m httpminify --port 3000     │
    │   2. Environment variables     HTTP_PORT=3000                       │
    │   3. Dataclass defaults                                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .assets import DEFAULT_PATTERNS, AssetType, ContentTypeMatchers, MatchPattern


@dataclass
class MinifyConfig:
    """
    Construction-time settings for MinifyMiddleware.

    Usage:
        MinifyConfig()                                    # memory cache, defaults
        MinifyConfig(cache="/var/cache/httpminify")       # durable cache
        MinifyConfig(js_match=r"^text/x-template-js$")    # custom matcher
        MinifyConfig(backends={"js": my_minifier}, stage_timeout=5.0)
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT-TYPE MATCHERS
    # ─────────────────────────────────────────────────────────────────────
    # Regex (str or compiled) searched in the Content-Type header.
    # None switches the family off.

    js_match: MatchPattern = DEFAULT_PATTERNS[AssetType.JS]
    css_match: MatchPattern = DEFAULT_PATTERNS[AssetType.CSS]
    json_match: MatchPattern = DEFAULT_PATTERNS[AssetType.JSON]
    sass_match: MatchPattern = DEFAULT_PATTERNS[AssetType.SASS]
    less_match: MatchPattern = DEFAULT_PATTERNS[AssetType.LESS]
    stylus_match: MatchPattern = DEFAULT_PATTERNS[AssetType.STYLUS]
    coffee_match: MatchPattern = DEFAULT_PATTERNS[AssetType.COFFEE]

    # ─────────────────────────────────────────────────────────────────────
    # CACHE
    # ─────────────────────────────────────────────────────────────────────

    cache: Union[None, bool, str, Path] = None
    """
    None or False: in-process memory cache.
    A directory path: file cache, one file per entry. Falls back to the
    memory cache (with a warning) if the directory isn't writable.
    """

    # ─────────────────────────────────────────────────────────────────────
    # BACKENDS AND FAILURES
    # ─────────────────────────────────────────────────────────────────────

    backends: Dict[str, Any] = field(default_factory=dict)
    """
    Asset name ("js", "sass", ...) → Compiler/Minifier instance or plain
    ``func(source, options)``. Replaces the default backend for that type.
    """

    error_handler: Optional[Callable] = None
    """``handler(ErrorInfo) -> ErrorResolution``; None for the default policy."""

    stage_timeout: Optional[float] = None
    """Seconds a single compile/minify call may take. None waits forever."""

    stage_workers: int = 4
    """Threads running backend calls when stage_timeout is set."""

    def matchers(self) -> ContentTypeMatchers:
        return ContentTypeMatchers(
            js=self.js_match,
            css=self.css_match,
            json=self.json_match,
            sass=self.sass_match,
            less=self.less_match,
            stylus=self.stylus_match,
            coffee=self.coffee_match,
        )

    @classmethod
    def from_env(cls) -> "MinifyConfig":
        """
        Environment variables:

            HTTPMINIFY_CACHE_DIR       File cache directory (default: memory)
            HTTPMINIFY_STAGE_TIMEOUT   Stage timeout in seconds (default: none)
        """
        timeout = os.getenv("HTTPMINIFY_STAGE_TIMEOUT")
        return cls(
            cache=os.getenv("HTTPMINIFY_CACHE_DIR") or None,
            stage_timeout=float(timeout) if timeout else None,
        )

    def validate(self) -> None:
        """Raise ValueError on the first bad setting."""
        for asset_type in AssetType:
            if asset_type is AssetType.PLAIN:
                continue
            pattern = getattr(self, f"{asset_type.value}_match")
            if isinstance(pattern, str):
                try:
                    re.compile(pattern)
                except re.error as e:
                    raise ValueError(f"Invalid {asset_type.value}_match pattern: {e}")

        if self.cache is True:
            raise ValueError("cache must be None, False or a directory path")

        names = {t.value for t in AssetType if t is not AssetType.PLAIN}
        for name in self.backends:
            key = getattr(name, "value", name)
            if key not in names:
                raise ValueError(f"Unknown backend asset type: {name!r}")

        if self.error_handler is not None and not callable(self.error_handler):
            raise ValueError("error_handler must be callable")

        if self.stage_timeout is not None and self.stage_timeout <= 0:
            raise ValueError("stage_timeout must be > 0")

        if self.stage_workers < 1:
            raise ValueError("stage_workers must be >= 1")


@dataclass
class ServerConfig:
    """
    Settings for the bundled HTTPServer.

    Development:
        ServerConfig(log_level="DEBUG")

    Behind a load balancer:
        ServerConfig(host="0.0.0.0", port=8000, max_workers=32)
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    port: int = 8080
    backlog: int = 128
    buffer_size: int = 8192

    timeout: Optional[float] = 30.0
    """Socket timeout in seconds. None blocks forever."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    # ─────────────────────────────────────────────────────────────────────
    # THREADS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    static_dir: Optional[str] = None
    """Directory served by the CLI's StaticFileHandler."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"
    """Access log format: 'text' (Apache style) or 'json'."""

    server_name: str = "httpminify/1.0"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Environment variables:

            HTTP_HOST        Bind address (default: 127.0.0.1)
            HTTP_PORT        Port (default: 8080)
            HTTP_WORKERS     Max worker threads (default: 16)
            HTTP_TIMEOUT     Socket timeout in seconds (default: 30)
            HTTP_STATIC_DIR  Directory to serve (default: none)
            HTTP_LOG_LEVEL   Logging level (default: INFO)
        """
        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            max_workers=int(os.getenv("HTTP_WORKERS", "16")),
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            static_dir=os.getenv("HTTP_STATIC_DIR"),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level}")

        if self.log_format not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
