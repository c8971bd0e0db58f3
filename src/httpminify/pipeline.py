"""
=============================================================================
MINIFY PIPELINE
=============================================================================

The cache lookup/populate cycle around the dispatcher. Runs once per
buffered response, after the full body is known.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   body, options ──► should cache? ── no ──► dispatch ──► BYPASS     │
    │                          │                                           │
    │                         yes                                          │
    │                          │                                           │
    │                          ▼                                           │
    │                    key = sha256(options ‖ body)                      │
    │                          │                                           │
    │                    cache.get(key) ── bytes ──────────────► HIT      │
    │                          │                                           │
    │                        None / CacheError                             │
    │                          │                                           │
    │                          ▼                                           │
    │                      dispatch ──► cacheable? ── yes ──► put ──► MISS│
    │                                        │                             │
    │                                        no ────────────────────► MISS│
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Cache failures never reach the client: a failed read is a miss and a
failed write just means this output isn't cached.

=============================================================================
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .assets import AssetType
from .cache import ContentCache, cache_key
from .dispatcher import TransformDispatcher
from .errors import CacheError, TransformError
from .options import MinifyOptions


logger = logging.getLogger(__name__)


class CacheStatus(Enum):
    HIT = "hit"
    MISS = "miss"
    BYPASS = "bypass"            # Caching suppressed for this response
    PASSTHROUGH = "passthrough"  # Never buffered


@dataclass(frozen=True)
class MinifyOutcome:
    """What happened to one response, for logs and tests."""

    asset_type: AssetType = AssetType.PLAIN
    cache_status: CacheStatus = CacheStatus.PASSTHROUGH
    stage_error: Optional[TransformError] = None

    @property
    def transformed(self) -> bool:
        return self.cache_status is not CacheStatus.PASSTHROUGH and self.stage_error is None

    def to_dict(self) -> dict:
        return {
            "asset_type": self.asset_type.value,
            "cache": self.cache_status.value,
            "error_stage": self.stage_error.stage if self.stage_error else None,
        }


PASSTHROUGH_OUTCOME = MinifyOutcome()


class MinifyPipeline:
    """
    Shared by every response: one cache, one dispatcher.

    Usage:
        pipeline = MinifyPipeline(MemoryCache(), TransformDispatcher(registry))
        body, outcome = pipeline.run(AssetType.JS, options, raw)
    """

    def __init__(self, cache: ContentCache, dispatcher: TransformDispatcher):
        self.cache = cache
        self.dispatcher = dispatcher

    def is_available(self, asset_type: AssetType) -> bool:
        return self.dispatcher.is_available(asset_type)

    def run(
        self,
        asset_type: AssetType,
        options: MinifyOptions,
        body: bytes,
        charset: str = "utf-8",
    ) -> Tuple[bytes, MinifyOutcome]:
        """
        Produce the bytes to send for a buffered body.

        Args:
            asset_type: Classified type.
            options: Response options as of end().
            body: Complete buffered body.
            charset: Body encoding.

        Returns:
            (output bytes, outcome)
        """
        if not options.should_cache():
            result = self.dispatcher.process(asset_type, options, body, charset)
            return result.body, MinifyOutcome(asset_type, CacheStatus.BYPASS, result.error)

        key = cache_key(options, body, asset_type)

        cached = self._lookup(key)
        if cached is not None:
            logger.debug(f"Cache hit {key[:12]} ({asset_type.value}, {len(cached)} bytes)")
            return cached, MinifyOutcome(asset_type, CacheStatus.HIT)

        logger.debug(f"Cache miss {key[:12]} ({asset_type.value})")
        result = self.dispatcher.process(asset_type, options, body, charset)

        if result.cacheable:
            self._store(key, result.body)

        return result.body, MinifyOutcome(asset_type, CacheStatus.MISS, result.error)

    def _lookup(self, key: str) -> Optional[bytes]:
        try:
            return self.cache.get(key)
        except CacheError as e:
            logger.warning(f"Cache read failed, treating as miss: {e}")
            return None

    def _store(self, key: str, body: bytes) -> None:
        try:
            self.cache.put(key, body)
        except CacheError as e:
            logger.warning(f"Cache write failed, serving uncached: {e}")
