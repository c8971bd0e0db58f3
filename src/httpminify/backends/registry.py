"""
=============================================================================
BACKEND REGISTRY
=============================================================================

Knows, per asset type, which backend handles it and whether it can run.

=============================================================================
BACKEND STATES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   startup probe (find_spec, no import)                              │
    │        │                                                             │
    │        ├── module missing ──────────────►  UNAVAILABLE              │
    │        │                                       ▲                     │
    │        └── module present ──► AVAILABLE        │                     │
    │                                   │            │                     │
    │                   first use: load()            │                     │
    │                                   │            │                     │
    │                                   ├── raises ──┘                     │
    │                                   │                                  │
    │                                   └── ok ──────►  LOADED             │
    │                                                                      │
    │   injected backend instances start as LOADED                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Classification asks ``is_available(type)`` for every response, so that
check is a dict lookup. A dialect is only available if its base format's
minifier is available too (sass needs the css minifier, coffee the js one).

=============================================================================
"""

import importlib.util
import logging
import threading
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Union

from ..assets import AssetType
from ..errors import BackendUnavailableError
from .base import Backend, Compiler, FunctionCompiler, FunctionMinifier, Minifier
from .compilers import (
    CoffeeScriptCompiler,
    LesscpyCompiler,
    LibsassCompiler,
    StylusCompiler,
)
from .minifiers import CalmjsMinifier, CssCompressorMinifier, JsonMinifier


logger = logging.getLogger(__name__)


class BackendState(Enum):
    """Resolution state of a backend."""

    LOADED = "loaded"            # Imported and ready
    AVAILABLE = "available"      # Modules present, not imported yet
    UNAVAILABLE = "unavailable"  # Missing, or failed to load


DEFAULT_BACKENDS: Dict[AssetType, Callable[[], Backend]] = {
    AssetType.JS: CalmjsMinifier,
    AssetType.CSS: CssCompressorMinifier,
    AssetType.JSON: JsonMinifier,
    AssetType.SASS: LibsassCompiler,
    AssetType.LESS: LesscpyCompiler,
    AssetType.STYLUS: StylusCompiler,
    AssetType.COFFEE: CoffeeScriptCompiler,
}

BackendOverride = Union[Backend, Callable]


def probe(backend: Backend) -> BackendState:
    """
    Check a backend's module requirements without importing them.

    Dotted names import their parent packages, which is the only import
    side effect here.
    """
    for module_name in backend.requires:
        try:
            if importlib.util.find_spec(module_name) is None:
                return BackendState.UNAVAILABLE
        except (ImportError, ValueError):
            return BackendState.UNAVAILABLE

    if not backend.requires:
        return BackendState.LOADED
    return BackendState.AVAILABLE


class BackendSlot:
    """One backend plus its state. load() runs at most once."""

    def __init__(self, backend: Backend, state: BackendState):
        self.backend = backend
        self.state = state
        self._lock = threading.Lock()

    def resolve(self) -> Backend:
        """
        Get the backend, loading it on first use.

        Raises:
            BackendUnavailableError: Missing or failed to load.
        """
        if self.state is BackendState.LOADED:
            return self.backend

        with self._lock:
            if self.state is BackendState.AVAILABLE:
                try:
                    self.backend.load()
                except Exception as e:
                    self.state = BackendState.UNAVAILABLE
                    logger.warning(f"Backend {self.backend.name} failed to load: {e}")
                    raise BackendUnavailableError(
                        f"{self.backend.name} could not be loaded: {e}"
                    ) from e
                self.state = BackendState.LOADED
                logger.debug(f"Loaded backend {self.backend.name}")

        if self.state is not BackendState.LOADED:
            raise BackendUnavailableError(f"{self.backend.name} is not available")
        return self.backend


class BackendRegistry:
    """
    Asset type → backend map, probed once at construction.

    Usage:
        registry = BackendRegistry()                       # defaults
        registry = BackendRegistry({"js": my_minifier})    # override one

        if registry.is_available(AssetType.SASS):
            css = registry.compiler(AssetType.SASS).compile(src, {})
    """

    def __init__(self, overrides: Optional[Mapping[Union[str, AssetType], BackendOverride]] = None):
        self._slots: Dict[AssetType, BackendSlot] = {}

        for asset_type, factory in DEFAULT_BACKENDS.items():
            backend = factory()
            self._slots[asset_type] = BackendSlot(backend, probe(backend))

        for key, backend in (overrides or {}).items():
            asset_type = AssetType(key) if isinstance(key, str) else key
            self._slots[asset_type] = BackendSlot(
                _adapt(asset_type, backend), BackendState.LOADED
            )

        logger.debug(
            "Backends: "
            + ", ".join(f"{t.value}={s.value}" for t, s in self.states().items())
        )

    def states(self) -> Dict[AssetType, BackendState]:
        return {asset_type: slot.state for asset_type, slot in self._slots.items()}

    def state(self, asset_type: AssetType) -> BackendState:
        slot = self._slots.get(asset_type)
        return slot.state if slot else BackendState.UNAVAILABLE

    def is_available(self, asset_type: AssetType) -> bool:
        """Whether every stage of this type's pipeline can run."""
        if asset_type is AssetType.PLAIN:
            return True
        if self.state(asset_type) is BackendState.UNAVAILABLE:
            return False
        if asset_type.is_compiled:
            return self.is_available(asset_type.base)
        return True

    def compiler(self, asset_type: AssetType) -> Compiler:
        backend = self._resolve(asset_type)
        if not isinstance(backend, Compiler):
            raise BackendUnavailableError(f"No compiler registered for {asset_type.value}")
        return backend

    def minifier(self, asset_type: AssetType) -> Minifier:
        backend = self._resolve(asset_type)
        if not isinstance(backend, Minifier):
            raise BackendUnavailableError(f"No minifier registered for {asset_type.value}")
        return backend

    def _resolve(self, asset_type: AssetType) -> Backend:
        slot = self._slots.get(asset_type)
        if slot is None:
            raise BackendUnavailableError(f"No backend registered for {asset_type.value}")
        return slot.resolve()


def _adapt(asset_type: AssetType, backend: BackendOverride) -> Backend:
    """Accept backend instances as-is and wrap plain callables."""
    if isinstance(backend, Backend):
        return backend
    if not callable(backend):
        raise TypeError(f"Backend for {asset_type.value} must be a Backend or callable")
    if asset_type.is_compiled:
        return FunctionCompiler(backend, asset_type)
    return FunctionMinifier(backend, asset_type)
