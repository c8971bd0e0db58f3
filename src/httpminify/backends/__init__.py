"""
Pluggable compile and minify backends.

Built-in backends wrap third-party libraries; anything implementing
``Compiler`` or ``Minifier`` (or a plain ``func(source, options)``) can be
injected through ``MinifyConfig.backends``.
"""

from .base import (
    Backend,
    Compiler,
    FunctionCompiler,
    FunctionMinifier,
    Minifier,
    StageOutput,
)
from .compilers import (
    CoffeeScriptCompiler,
    LesscpyCompiler,
    LibsassCompiler,
    StylusCompiler,
)
from .minifiers import CalmjsMinifier, CssCompressorMinifier, JsonMinifier
from .registry import BackendRegistry, BackendSlot, BackendState, probe

__all__ = [
    "Backend",
    "BackendRegistry",
    "BackendSlot",
    "BackendState",
    "CalmjsMinifier",
    "CoffeeScriptCompiler",
    "Compiler",
    "CssCompressorMinifier",
    "FunctionCompiler",
    "FunctionMinifier",
    "JsonMinifier",
    "LesscpyCompiler",
    "LibsassCompiler",
    "Minifier",
    "StageOutput",
    "StylusCompiler",
    "probe",
]
