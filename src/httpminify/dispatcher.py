"""
=============================================================================
TRANSFORM DISPATCHER
=============================================================================

Turns a buffered body into its minified form by running the pipeline its
asset type selects:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        STAGE PIPELINES                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   JS / CSS / JSON        source ──► [minify] ──► output             │
    │                                                                      │
    │   SASS / LESS / STYLUS   source ──► [compile] ──► css               │
    │                                         ──► [minify css] ──► output │
    │                                                                      │
    │   COFFEE                 source ──► [compile] ──► js                │
    │                                         ──► [minify js]  ──► output │
    │                                                                      │
    │   PLAIN                  source ──────────────────────► output      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

With ``options.minify`` off, dialects stop after compiling.

=============================================================================
STAGE RESULTS
=============================================================================

Every stage returns a StageResult: either the output text, or a
TransformError tagged with the stage that failed and the text that stage
was given. Backends may answer synchronously or with a Future; both end
up as the same StageResult, so the code below never nests callbacks.

On failure the error handler decides what the client gets:

    default_error_handler(info)
        compile failed → info.source   (the original body, untouched)
        minify failed  → info.body     (that stage's input; for a dialect
                                        that's the compiled, unminified css/js)
        cache          → False

A handler that raises is logged and the default applies.

=============================================================================
TIMEOUTS
=============================================================================

A backend that never returns would hold its response forever. With a
stage timeout configured every backend call runs on a worker pool and the
request thread waits at most ``stage_timeout`` seconds for it. The same
budget applies to a Future the backend itself returns.

=============================================================================
"""

import logging
import time
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .assets import AssetType
from .backends.registry import BackendRegistry
from .core.worker_pool import WorkerPool
from .errors import CompileError, MinifyError, TransformError
from .options import MinifyOptions


logger = logging.getLogger(__name__)


class Stage(Enum):
    COMPILE = "compile"
    MINIFY = "minify"


_STAGE_ERRORS = {
    Stage.COMPILE: CompileError,
    Stage.MINIFY: MinifyError,
}


@dataclass
class StageResult:
    """Outcome of one stage: output text or a tagged error."""

    stage: Stage
    output: Optional[str] = None
    error: Optional[TransformError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, stage: Stage, output: str) -> "StageResult":
        return cls(stage=stage, output=output)

    @classmethod
    def failure(cls, stage: Stage, error: TransformError) -> "StageResult":
        return cls(stage=stage, error=error)


@dataclass
class ErrorInfo:
    """
    Everything an error handler knows about a failed transform.

    Attributes:
        asset_type: Classified type of the response.
        options: The response's options at completion time.
        stage: Which stage failed.
        error: The tagged error (backend exception in ``error.cause``).
        body: Input of the failed stage. For a minify failure on a dialect
              this is the compiled intermediate.
        source: The original buffered body.
    """

    asset_type: AssetType
    options: MinifyOptions
    stage: Stage
    error: TransformError
    body: Union[str, bytes]
    source: Union[str, bytes]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view, e.g. for a handler that serves the error itself."""
        return {
            "asset_type": self.asset_type.value,
            "stage": self.stage.value,
            "error": self.error.to_dict(),
            "body": _as_text(self.body),
            "options": self.options.to_dict(),
        }


@dataclass
class ErrorResolution:
    """What an error handler wants served instead, and whether to cache it."""

    body: Union[str, bytes]
    cache: bool = False


ErrorHandler = Callable[[ErrorInfo], ErrorResolution]


def default_error_handler(info: ErrorInfo) -> ErrorResolution:
    """Serve the best untransformed text available and never cache it."""
    if info.stage is Stage.COMPILE:
        return ErrorResolution(body=info.source, cache=False)
    return ErrorResolution(body=info.body, cache=False)


@dataclass
class TransformResult:
    """
    Final bytes for the client.

    ``cacheable`` is False after a failure unless the error handler asked
    for its resolution to be cached.
    """

    body: bytes
    error: Optional[TransformError] = None
    cacheable: bool = True
    stages: List[StageResult] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.error is not None


class TransformDispatcher:
    """
    Runs compile/minify stages through the backend registry.

    Usage:
        dispatcher = TransformDispatcher(BackendRegistry())
        result = dispatcher.process(AssetType.CSS, MinifyOptions(), b"body { }")
        result.body      # b"" (csscompressor drops the empty rule)
    """

    def __init__(
        self,
        registry: BackendRegistry,
        error_handler: Optional[ErrorHandler] = None,
        stage_timeout: Optional[float] = None,
        pool: Optional[WorkerPool] = None,
    ):
        """
        Args:
            registry: Backend lookup.
            error_handler: Failure policy, default_error_handler if None.
            stage_timeout: Seconds a single stage may take, None to wait
                           indefinitely.
            pool: Worker pool for timed backend calls. Required for the
                  timeout to also cover synchronous backends.
        """
        if stage_timeout is not None and stage_timeout <= 0:
            raise ValueError("stage_timeout must be positive")

        self.registry = registry
        self.error_handler = error_handler or default_error_handler
        self.stage_timeout = stage_timeout
        self.pool = pool

    def is_available(self, asset_type: AssetType) -> bool:
        return self.registry.is_available(asset_type)

    def process(
        self,
        asset_type: AssetType,
        options: MinifyOptions,
        body: bytes,
        charset: str = "utf-8",
    ) -> TransformResult:
        """
        Transform a complete body.

        Args:
            asset_type: Classified type.
            options: Response options, read now (not at header time).
            body: Buffered body bytes.
            charset: Encoding of the body and of the returned bytes.

        Returns:
            TransformResult. Never raises for backend failures.
        """
        if asset_type is AssetType.PLAIN:
            return TransformResult(body=body)

        first_stage = Stage.COMPILE if asset_type.is_compiled else Stage.MINIFY

        try:
            source = body.decode(charset)
        except (UnicodeDecodeError, LookupError) as e:
            error = _STAGE_ERRORS[first_stage](
                f"Could not decode {asset_type.value} body as {charset}: {e}",
                asset_type=asset_type.value,
                cause=e,
            )
            return self._fail(asset_type, options, first_stage, error, body, body, charset)

        text = source
        stages = []

        if asset_type.is_compiled:
            result = self._run_stage(Stage.COMPILE, asset_type, text, options)
            stages.append(result)
            if not result.ok:
                return self._fail(asset_type, options, Stage.COMPILE, result.error, text, source, charset)
            text = result.output

        if options.minify:
            result = self._run_stage(Stage.MINIFY, asset_type.base, text, options)
            stages.append(result)
            if not result.ok:
                return self._fail(asset_type, options, Stage.MINIFY, result.error, text, source, charset)
            text = result.output

        try:
            output = text.encode(charset)
        except UnicodeEncodeError as e:
            last_stage = stages[-1].stage if stages else first_stage
            error = _STAGE_ERRORS[last_stage](
                f"Output not representable in {charset}: {e}",
                asset_type=asset_type.value,
                body=text,
                cause=e,
            )
            return self._fail(asset_type, options, last_stage, error, text, source, charset)

        return TransformResult(body=output, stages=stages)

    # ═══════════════════════════════════════════════════════════════════════
    # STAGES
    # ═══════════════════════════════════════════════════════════════════════

    def _run_stage(
        self,
        stage: Stage,
        asset_type: AssetType,
        source: str,
        options: MinifyOptions,
    ) -> StageResult:
        """Run one backend call and fold any failure into a StageResult."""
        started = time.monotonic()
        try:
            if stage is Stage.COMPILE:
                call = self.registry.compiler(asset_type).compile
            else:
                call = self.registry.minifier(asset_type).minify

            bag = options.backend_options(asset_type.value)
            if self.stage_timeout is not None and self.pool is not None:
                output = self.pool.submit(call, source, bag)
            else:
                output = call(source, bag)

            output = self._resolve(output, started)
            if not isinstance(output, str):
                raise TypeError(
                    f"Backend returned {type(output).__name__}, expected str"
                )
        except Exception as e:
            error = _STAGE_ERRORS[stage](
                f"{stage.value} failed for {asset_type.value}: {e}",
                asset_type=asset_type.value,
                body=source,
                cause=e,
            )
            error.__cause__ = e
            return StageResult.failure(stage, error)

        logger.debug(
            f"{stage.value} {asset_type.value}: {len(source)} -> {len(output)} chars "
            f"in {(time.monotonic() - started) * 1000:.1f}ms"
        )
        return StageResult.success(stage, output)

    def _resolve(self, output: Any, started: float) -> Any:
        """Wait for (possibly nested) futures within the stage budget."""
        while isinstance(output, Future):
            timeout = None
            if self.stage_timeout is not None:
                timeout = max(0.0, self.stage_timeout - (time.monotonic() - started))
            try:
                output = output.result(timeout=timeout)
            except FutureTimeoutError:
                output.cancel()
                raise TimeoutError(
                    f"Backend did not finish within {self.stage_timeout}s"
                ) from None
        return output

    # ═══════════════════════════════════════════════════════════════════════
    # FAILURES
    # ═══════════════════════════════════════════════════════════════════════

    def _fail(
        self,
        asset_type: AssetType,
        options: MinifyOptions,
        stage: Stage,
        error: TransformError,
        body: Union[str, bytes],
        source: Union[str, bytes],
        charset: str,
    ) -> TransformResult:
        logger.warning(f"Transform failed ({stage.value}, {asset_type.value}): {error}")

        info = ErrorInfo(
            asset_type=asset_type,
            options=options,
            stage=stage,
            error=error,
            body=body,
            source=source,
        )

        try:
            resolution = self.error_handler(info)
            if not isinstance(resolution, ErrorResolution):
                raise TypeError(
                    f"Error handler returned {type(resolution).__name__}, "
                    f"expected ErrorResolution"
                )
        except Exception:
            logger.exception("Error handler failed, serving untransformed body")
            resolution = default_error_handler(info)

        return TransformResult(
            body=_as_bytes(resolution.body, charset),
            error=error,
            cacheable=bool(resolution.cache),
        )


def _as_bytes(body: Union[str, bytes], charset: str) -> bytes:
    if isinstance(body, str):
        try:
            return body.encode(charset)
        except (UnicodeEncodeError, LookupError):
            return body.encode("utf-8")
    return bytes(body)


def _as_text(body: Union[str, bytes]) -> str:
    if isinstance(body, str):
        return body
    return bytes(body).decode("utf-8", errors="replace")
