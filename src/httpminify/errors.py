"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the minify pipeline can produce, grouped by who has to deal
with it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        HTTPMinifyError                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   TransformError ──┬── CompileError   (sass/less/stylus/coffee)     │
    │                    └── MinifyError    (js/css/json)                 │
    │        └── routed to the configured error handler                   │
    │                                                                      │
    │   CacheError            absorbed: read = miss, write = log          │
    │                                                                      │
    │   UsageError            caller broke the stream contract            │
    │        └── raised to the caller, fatal to that response only        │
    │                                                                      │
    │   BackendUnavailableError                                           │
    │        └── a probed backend failed to import on first use           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

No error here is fatal to the process. The worst a client ever sees from a
transform failure is the original, unminified body.

=============================================================================
"""

from typing import Optional


class HTTPMinifyError(Exception):
    """Base class for all httpminify errors."""


class TransformError(HTTPMinifyError):
    """
    A compile or minify stage rejected its input.

    Carries enough context for the error handler to decide what the client
    gets instead:

        stage:      "compile" or "minify"
        asset_type: the classified asset type name ("sass", "js", ...)
        body:       the text the failing stage was given
        cause:      the backend's own exception (also set as __cause__)
    """

    stage = "transform"

    def __init__(
        self,
        message: str,
        asset_type: str = "",
        body: str = "",
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.asset_type = asset_type
        self.body = body
        self.cause = cause

    def to_dict(self) -> dict:
        """Describe the failure in JSON-friendly form."""
        return {
            "name": type(self.cause).__name__ if self.cause else type(self).__name__,
            "message": str(self.cause) if self.cause else str(self),
        }


class CompileError(TransformError):
    """The compile stage (dialect to base format) failed."""

    stage = "compile"


class MinifyError(TransformError):
    """The minify stage failed, possibly on a compiled intermediate."""

    stage = "minify"


class CacheError(HTTPMinifyError):
    """
    Durable cache read or write failed.

    Never reaches the client: the pipeline treats a failed read as a miss
    and a failed write as "serve uncached".
    """


class UsageError(HTTPMinifyError, TypeError):
    """
    The caller violated the response stream contract.

    Examples: writing an int, writing after end(), setting headers after
    they were sent. Subclasses TypeError so code written against a plain
    stream catches it the same way.
    """


class BackendUnavailableError(HTTPMinifyError):
    """A backend was probed as present but could not be loaded."""
