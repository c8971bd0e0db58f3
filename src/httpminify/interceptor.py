"""
=============================================================================
RESPONSE INTERCEPTOR
=============================================================================

MinifyingResponse wraps a ResponseWriter and implements the same contract,
so the handler writes to it exactly as it would to the real stream:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   handler ──write()/end()──► MinifyingResponse ──► ResponseStream   │
    │                                    │                    │           │
    │                                    │   on_headers hook ◄┘           │
    │                                    │   (classify once)              │
    │                                    │                                 │
    │                      PASSTHROUGH ──┤── forward every call           │
    │                                    │                                 │
    │                        BUFFERING ──┴── collect chunks, on end():     │
    │                                        pipeline.run(body)            │
    │                                        inner.write(output)           │
    │                                        inner.end()                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
STATE MACHINE
=============================================================================

    INIT ── headers finalized (first write/end) ──► CLASSIFYING
                                                       │
                     ┌─────────────────────────────────┴───────────┐
                     ▼                                             ▼
               PASSTHROUGH                                    BUFFERING
       plain, HEAD, disabled, or base                 Content-Length removed,
       format with minify off                         dialect Content-Type
       headers untouched                              rewritten to its base

Classification happens inside the inner stream's header finalization, so
it sees the headers exactly as they are about to be sent, and it runs
exactly once per response. A response whose headers were already sent
before wrapping can't be rewritten and stays PASSTHROUGH.

The handler may keep changing ``minify_options`` until end(): the
classification snapshot decides buffering, the transform and the cache
key use the options as they are at end().

=============================================================================
"""

import logging
from typing import Callable, List, Optional, Tuple

from .assets import (
    PASSTHROUGH,
    AssetType,
    ContentTypeMatchers,
    ResponseClassification,
    charset_of,
    classify,
    outward_content_type,
)
from .errors import UsageError
from .http.response import Chunk, ResponseStream, ResponseWriter, to_bytes
from .options import MinifyOptions
from .pipeline import PASSTHROUGH_OUTCOME, MinifyOutcome, MinifyPipeline


logger = logging.getLogger(__name__)


class MinifyingResponse(ResponseWriter):
    """
    Decorator around one response stream. One instance per response.

    Args:
        inner: The stream being wrapped. Must offer ``on_headers``.
        pipeline: Shared cache + dispatcher.
        matchers: Content-type patterns.
        is_available: Backend availability predicate, defaults to the
                      pipeline's.
    """

    def __init__(
        self,
        inner: ResponseStream,
        pipeline: MinifyPipeline,
        matchers: ContentTypeMatchers,
        is_available: Optional[Callable[[AssetType], bool]] = None,
    ):
        self._inner = inner
        self._pipeline = pipeline
        self._matchers = matchers
        self._is_available = is_available or pipeline.is_available

        self.classification: ResponseClassification = PASSTHROUGH
        self._charset = "utf-8"
        self._chunks: List[bytes] = []
        self._ended = False

        if inner.headers_sent:
            logger.debug("Headers already sent, response will not be minified")
        else:
            inner.on_headers(self._classify)

    # =========================================================================
    # DELEGATED STATE
    # =========================================================================

    @property
    def inner(self) -> ResponseStream:
        return self._inner

    @property
    def minify_options(self) -> MinifyOptions:
        return self._inner.minify_options

    @minify_options.setter
    def minify_options(self, value: MinifyOptions) -> None:
        self._inner.minify_options = value

    @property
    def minify_outcome(self) -> Optional[MinifyOutcome]:
        return self._inner.minify_outcome

    @property
    def status(self) -> int:
        return self._inner.status

    @status.setter
    def status(self, value: int) -> None:
        self._inner.status = value

    @property
    def request_method(self) -> str:
        return self._inner.request_method

    @property
    def headers_sent(self) -> bool:
        return self._inner.headers_sent

    @property
    def finished(self) -> bool:
        return self._ended or self._inner.finished

    def set_header(self, name: str, value: str) -> None:
        self._inner.set_header(name, value)

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._inner.get_header(name, default)

    def remove_header(self, name: str) -> None:
        self._inner.remove_header(name)

    def header_items(self) -> List[Tuple[str, str]]:
        return self._inner.header_items()

    def on_headers(self, hook) -> None:
        self._inner.on_headers(hook)

    def flush_headers(self, content_length: Optional[int] = None) -> None:
        self._inner.flush_headers(content_length)

    # =========================================================================
    # CLASSIFICATION (runs inside the inner stream's header finalization)
    # =========================================================================

    def _classify(self, stream: ResponseStream) -> None:
        content_type = stream.get_header("Content-Type")
        classification = classify(
            content_type,
            stream.minify_options,
            self._matchers,
            method=stream.request_method,
            is_available=self._is_available,
        )
        self.classification = classification

        if not classification.should_buffer:
            stream.minify_outcome = PASSTHROUGH_OUTCOME
            return

        self._charset = charset_of(content_type)
        stream.remove_header("Content-Length")
        rewritten = outward_content_type(content_type, classification.asset_type)
        if rewritten != content_type:
            stream.set_header("Content-Type", rewritten)

        logger.debug(
            f"Buffering {classification.asset_type.value} response "
            f"({content_type} -> {rewritten})"
        )

    # =========================================================================
    # BODY
    # =========================================================================

    def write(self, chunk: Chunk) -> bool:
        if self._ended:
            raise UsageError("write() after end()")

        if not self._inner.headers_sent:
            to_bytes(chunk, self._charset)  # reject bad chunk types before finalizing
            self._inner.flush_headers()

        if not self.classification.should_buffer:
            return self._inner.write(chunk)

        data = to_bytes(chunk, self._charset)
        if data:
            self._chunks.append(data)
        return True

    def end(self, chunk: Optional[Chunk] = None) -> bool:
        if self._ended or self._inner.finished:
            return False

        if not self._inner.headers_sent:
            if chunk is None:
                self._inner.flush_headers()
            else:
                self._inner.flush_headers(len(to_bytes(chunk, self._inner.encoding)))

        if not self.classification.should_buffer:
            ended = self._inner.end(chunk)
            self._ended = True
            return ended

        if chunk is not None:
            data = to_bytes(chunk, self._charset)
            if data:
                self._chunks.append(data)
        self._ended = True

        body = b"".join(self._chunks)
        self._chunks = []

        output, outcome = self._pipeline.run(
            self.classification.asset_type,
            self._inner.minify_options,
            body,
            self._charset,
        )
        self._inner.minify_outcome = outcome

        if output:
            self._inner.write(output)
        return self._inner.end()
