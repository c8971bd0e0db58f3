"""
=============================================================================
STREAMING MIDDLEWARE
=============================================================================

Middleware here sees the response as a stream, not as a finished object.
Each layer receives the request, the response writer and the next
handler, and may hand the next layer a *different* writer:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   server ──► Logging(request, stream, next)                          │
    │                 │  times the call, reads stream.status afterwards    │
    │                 ▼                                                    │
    │              Minify(request, stream, next)                           │
    │                 │  next(request, MinifyingResponse(stream))          │
    │                 ▼                                                    │
    │              handler(request, wrapper)                               │
    │                    wrapper.write(...) / wrapper.end(...)             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

First added is outermost. Handlers are expected to end() their response;
the server ends it for them if they forget.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List

from ..http.request import HTTPRequest
from ..http.response import ResponseWriter


logger = logging.getLogger(__name__)


Handler = Callable[[HTTPRequest, ResponseWriter], None]
NextHandler = Handler


class Middleware(ABC):
    """
    One layer around a streaming handler.

        class AddHeader(Middleware):
            def __call__(self, request, response, next):
                response.set_header("X-Frame-Options", "DENY")
                next(request, response)
    """

    @abstractmethod
    def __call__(
        self,
        request: HTTPRequest,
        response: ResponseWriter,
        next: NextHandler,
    ) -> None:
        """Handle the request, usually by calling next(request, response)."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered middleware wrapped around a final handler.

    Usage:
        pipeline = MiddlewarePipeline()
        pipeline.use(LoggingMiddleware(), MinifyMiddleware(config))
        handler = pipeline.wrap(static_files)
        handler(request, response)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: Handler) -> Handler:
        """Build ``mw1(mw2(...(handler)))``; reversed so the first added is outermost."""
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(self, middleware: Middleware, next_handler: Handler) -> Handler:
        def wrapped(request: HTTPRequest, response: ResponseWriter) -> None:
            middleware(request, response, next_handler)

        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)


class FunctionMiddleware(Middleware):
    """Adapts ``func(request, response, next)`` to the Middleware interface."""

    def __init__(self, func: Callable[[HTTPRequest, ResponseWriter, NextHandler], None], name: str = ""):
        self._func = func
        self._name = name or getattr(func, "__name__", "function")

    def __call__(self, request: HTTPRequest, response: ResponseWriter, next: NextHandler) -> None:
        self._func(request, response, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(func: Callable[[HTTPRequest, ResponseWriter, NextHandler], None]) -> FunctionMiddleware:
    """
    Decorator form of FunctionMiddleware.

        @function_middleware
        def no_minify_for_debug(request, response, next):
            if request.get_query("debug"):
                response.minify_options.enabled = False
            next(request, response)
    """
    return FunctionMiddleware(func, name=func.__name__)
