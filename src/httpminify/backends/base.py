"""
=============================================================================
BACKEND INTERFACE
=============================================================================

The middleware never minifies or compiles anything itself. It calls out to
backends through two tiny interfaces:

    Compiler.compile(source, options) → str | Future[str]
    Minifier.minify(source, options)  → str | Future[str]

Returning a Future lets a backend render asynchronously (a subprocess, a
JS runtime, a remote service); the dispatcher waits on it either way. Any
exception a backend raises, directly or through its Future, is reported as
a failure of that stage.

=============================================================================
LAZY LOADING
=============================================================================

Backends name the modules they need in ``requires``. The registry checks
those once at startup without importing anything, and only calls load()
the first time a response actually needs the backend. So a server that
never serves SASS never pays for importing libsass.

=============================================================================
"""

from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ..assets import AssetType


StageOutput = Union[str, "Future[str]"]


class Backend(ABC):
    """Common base: module requirements, lazy load, display name."""

    # Importable module names that must exist for this backend to work
    requires: Tuple[str, ...] = ()

    def load(self) -> None:
        """Import the underlying library. Called once, on first use."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class Minifier(Backend):
    """Size-reducing rewrite of a base format (JS, CSS, JSON)."""

    asset_type: AssetType = AssetType.PLAIN

    @abstractmethod
    def minify(self, source: str, options: Dict[str, Any]) -> StageOutput:
        """
        Minify base-format source text.

        Args:
            source: Text to minify.
            options: The response's option bag for this format.

        Returns:
            Minified text, or a Future resolving to it.
        """


class Compiler(Backend):
    """Conversion of a dialect (SASS, LESS, Stylus, CoffeeScript) to its base format."""

    asset_type: AssetType = AssetType.PLAIN

    @abstractmethod
    def compile(self, source: str, options: Dict[str, Any]) -> StageOutput:
        """
        Compile dialect source text to base-format text.

        Args:
            source: Dialect source.
            options: The response's option bag for this dialect.

        Returns:
            Compiled text, or a Future resolving to it.
        """


# =============================================================================
# FUNCTION BACKENDS
# =============================================================================
#
# Plain callables are often all a custom backend needs, e.g. a test double or
# a thin wrapper around another library. These adapt a function to the
# interfaces above.
#
# =============================================================================

StageFunction = Callable[[str, Dict[str, Any]], StageOutput]


class FunctionMinifier(Minifier):
    """
    Wraps ``func(source, options)`` as a Minifier.

    Usage:
        config = MinifyConfig(backends={
            "js": FunctionMinifier(lambda src, opts: src.strip(), AssetType.JS),
        })
    """

    def __init__(
        self,
        func: StageFunction,
        asset_type: AssetType,
        name: Optional[str] = None,
    ):
        self._func = func
        self.asset_type = asset_type
        self._name = name or getattr(func, "__name__", "function")

    def minify(self, source: str, options: Dict[str, Any]) -> StageOutput:
        return self._func(source, options)

    @property
    def name(self) -> str:
        return self._name


class FunctionCompiler(Compiler):
    """Wraps ``func(source, options)`` as a Compiler."""

    def __init__(
        self,
        func: StageFunction,
        asset_type: AssetType,
        name: Optional[str] = None,
    ):
        self._func = func
        self.asset_type = asset_type
        self._name = name or getattr(func, "__name__", "function")

    def compile(self, source: str, options: Dict[str, Any]) -> StageOutput:
        return self._func(source, options)

    @property
    def name(self) -> str:
        return self._name
