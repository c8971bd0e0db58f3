"""
Default minifiers for the base formats.

    JS    calmjs.parse   parse to an ES5 AST, print it back minified.
                         Invalid input raises, so broken scripts are never
                         "minified" into something else.
    CSS   csscompressor  Python port of the YUI compressor.
    JSON  json (stdlib)  parse and re-dump without whitespace.
"""

import json
import re
from typing import Any, Dict

from ..assets import AssetType
from .base import Minifier


class CalmjsMinifier(Minifier):
    """
    JavaScript minifier backed by calmjs.parse.

    Options:
        mangle (bool):          rename local identifiers (default True)
        mangle_globals (bool):  also rename globals (default False)
        drop_semi (bool):       drop the last semicolon in blocks
        preserve_comments (bool): keep /*! ... */ comments, moved to the top
                                of the output (default False)

    Bang comments are found textually, so one spelled out inside a string
    literal is also copied.
    """

    BANG_COMMENT = re.compile(r"/\*!.*?\*/", re.DOTALL)

    asset_type = AssetType.JS
    requires = ("calmjs.parse",)

    def __init__(self):
        self._parse = None
        self._print = None

    def load(self) -> None:
        from calmjs.parse import es5
        from calmjs.parse.unparsers.es5 import minify_print

        self._parse = es5
        self._print = minify_print

    def minify(self, source: str, options: Dict[str, Any]) -> str:
        if self._parse is None:
            self.load()

        preserve = bool(options.pop("preserve_comments", False))
        kwargs = {
            "obfuscate": bool(options.pop("mangle", True)),
            "obfuscate_globals": bool(options.pop("mangle_globals", False)),
        }
        kwargs.update(options)

        program = self._parse(source)
        output = self._print(program, **kwargs)

        if preserve:
            kept = self.BANG_COMMENT.findall(source)
            if kept:
                return "\n".join(kept) + "\n" + output
        return output


class CssCompressorMinifier(Minifier):
    """
    CSS minifier backed by csscompressor.

    Options:
        preserve_comments (bool): keep /*! ... */ comments (default True)
        max_linelen (int):        wrap output lines (default 0, no wrapping)
    """

    asset_type = AssetType.CSS
    requires = ("csscompressor",)

    def __init__(self):
        self._compress = None

    def load(self) -> None:
        import csscompressor

        self._compress = csscompressor.compress

    def minify(self, source: str, options: Dict[str, Any]) -> str:
        if self._compress is None:
            self.load()

        kwargs = {}
        if "preserve_comments" in options:
            kwargs["preserve_exclamation_comments"] = bool(
                options.pop("preserve_comments")
            )
        kwargs.update(options)
        return self._compress(source, **kwargs)


class JsonMinifier(Minifier):
    """
    JSON minifier using the standard library.

    Options:
        sort_keys (bool): sort object keys (default False)
    """

    asset_type = AssetType.JSON

    def minify(self, source: str, options: Dict[str, Any]) -> str:
        return json.dumps(
            json.loads(source),
            separators=(",", ":"),
            ensure_ascii=False,
            sort_keys=bool(options.get("sort_keys", False)),
        )
