"""
=============================================================================
MINIFY MIDDLEWARE
=============================================================================

Owns everything shared between responses and hands each response its own
interceptor:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                  MinifyMiddleware (one per server)                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   BackendRegistry ──┐                                               │
    │   WorkerPool? ──────┼──► TransformDispatcher ──┐                     │
    │   error_handler ────┘                          ├──► MinifyPipeline  │
    │   ContentCache ────────────────────────────────┘          │          │
    │   ContentTypeMatchers ────────────────────────────┐       │          │
    │                                                   ▼       ▼          │
    │   per request:           MinifyingResponse(response, pipeline, ...)  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Usage:

    pipeline = MiddlewarePipeline()
    pipeline.use(
        LoggingMiddleware(),
        MinifyMiddleware(MinifyConfig(cache="/var/cache/httpminify")),
    )

=============================================================================
"""

import logging
from typing import Optional

from ..backends.registry import BackendRegistry
from ..cache import ContentCache, create_cache
from ..config import MinifyConfig
from ..core.worker_pool import WorkerPool
from ..dispatcher import TransformDispatcher
from ..http.request import HTTPRequest
from ..http.response import ResponseWriter
from ..interceptor import MinifyingResponse
from ..pipeline import MinifyPipeline
from .base import Middleware, NextHandler


logger = logging.getLogger(__name__)


class MinifyMiddleware(Middleware):
    """
    Compiles, minifies and caches matching responses.

    Args:
        config: Settings; MinifyConfig() if omitted.
        cache: Use this cache instead of building one from config.cache.
        registry: Use this registry instead of building one from
                  config.backends.
    """

    def __init__(
        self,
        config: Optional[MinifyConfig] = None,
        cache: Optional[ContentCache] = None,
        registry: Optional[BackendRegistry] = None,
    ):
        self.config = config or MinifyConfig()
        self.config.validate()

        self.matchers = self.config.matchers()
        self.registry = registry or BackendRegistry(self.config.backends)
        self.cache = cache if cache is not None else create_cache(self.config.cache)

        self.pool: Optional[WorkerPool] = None
        if self.config.stage_timeout is not None:
            self.pool = WorkerPool(
                min_workers=1,
                max_workers=self.config.stage_workers,
                name="MinifyStage",
            ).start()

        self.dispatcher = TransformDispatcher(
            self.registry,
            error_handler=self.config.error_handler,
            stage_timeout=self.config.stage_timeout,
            pool=self.pool,
        )
        self.pipeline = MinifyPipeline(self.cache, self.dispatcher)

        logger.info(
            f"Minify middleware ready (cache: {self.cache.name}, "
            f"stage timeout: {self.config.stage_timeout or 'none'})"
        )

    def __call__(self, request: HTTPRequest, response: ResponseWriter, next: NextHandler) -> None:
        if response.headers_sent or not hasattr(response, "on_headers"):
            next(request, response)
            return

        wrapper = MinifyingResponse(response, self.pipeline, self.matchers)
        next(request, wrapper)

        # A buffered body only reaches the client through the wrapper
        if not wrapper.finished:
            wrapper.end()

    def close(self) -> None:
        """Stop the stage worker pool, if any."""
        if self.pool is not None:
            self.pool.shutdown(wait=False)
            self.pool = None
