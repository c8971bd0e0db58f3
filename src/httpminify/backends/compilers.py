"""
Default compilers for the stylesheet and script dialects.

All of them are optional extras; the registry only offers a dialect when its
compiler's modules are importable. Stylus and CoffeeScript run their
reference compilers through PyExecJS and additionally need a JavaScript
runtime (node) at load time.
"""

import io
from typing import Any, Dict

from ..assets import AssetType
from .base import Compiler


class LibsassCompiler(Compiler):
    """
    SCSS → CSS with libsass.

    Options are passed to ``sass.compile`` (output_style, precision,
    include_paths, ...).
    """

    asset_type = AssetType.SASS
    requires = ("sass",)

    def __init__(self):
        self._sass = None

    def load(self) -> None:
        import sass

        self._sass = sass

    def compile(self, source: str, options: Dict[str, Any]) -> str:
        if self._sass is None:
            self.load()
        return self._sass.compile(string=source, **options)


class LesscpyCompiler(Compiler):
    """
    LESS → CSS with lesscpy.

    Options are passed to ``lesscpy.compile`` (tabs, spaces, ...).
    Output minification is left to the CSS minify stage.
    """

    asset_type = AssetType.LESS
    requires = ("lesscpy",)

    def __init__(self):
        self._lesscpy = None

    def load(self) -> None:
        import lesscpy

        self._lesscpy = lesscpy

    def compile(self, source: str, options: Dict[str, Any]) -> str:
        if self._lesscpy is None:
            self.load()
        options.setdefault("minify", False)
        return self._lesscpy.compile(io.StringIO(source), **options)


class StylusCompiler(Compiler):
    """
    Stylus → CSS with the ``stylus`` package (runs stylus via PyExecJS).

    Options are passed through as the compiler's render options.
    """

    asset_type = AssetType.STYLUS
    requires = ("stylus", "execjs")

    def __init__(self):
        self._compiler = None

    def load(self) -> None:
        from stylus import Stylus

        self._compiler = Stylus()

    def compile(self, source: str, options: Dict[str, Any]) -> str:
        if self._compiler is None:
            self.load()
        return self._compiler.compile(source, options)


class CoffeeScriptCompiler(Compiler):
    """
    CoffeeScript → JavaScript with the ``CoffeeScript`` package.

    Options:
        bare (bool): compile without the top-level function wrapper
    """

    asset_type = AssetType.COFFEE
    requires = ("coffeescript", "execjs")

    def __init__(self):
        self._coffeescript = None

    def load(self) -> None:
        import coffeescript

        self._coffeescript = coffeescript

    def compile(self, source: str, options: Dict[str, Any]) -> str:
        if self._coffeescript is None:
            self.load()
        return self._coffeescript.compile(source, bare=bool(options.get("bare", False)))
