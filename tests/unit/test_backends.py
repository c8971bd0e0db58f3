"""
Unit tests for the default backends against their real libraries.

Optional backends are skipped when their extra isn't installed.
"""

import json

import pytest

from httpminify.assets import AssetType
from httpminify.backends import (
    BackendRegistry,
    CalmjsMinifier,
    CssCompressorMinifier,
    JsonMinifier,
    LesscpyCompiler,
    LibsassCompiler,
)
from httpminify.cache import MemoryCache
from httpminify.dispatcher import TransformDispatcher
from httpminify.options import MinifyOptions
from httpminify.pipeline import MinifyPipeline


class TestJsonMinifier:
    """Tests for the stdlib JSON minifier."""

    def test_whitespace_removed(self):
        source = '{\n  "name": "site",\n  "tags": [1, 2, 3]\n}'
        assert JsonMinifier().minify(source, {}) == '{"name":"site","tags":[1,2,3]}'

    def test_unicode_kept(self):
        assert JsonMinifier().minify('{ "a": "é" }', {}) == '{"a":"é"}'

    def test_sort_keys(self):
        assert JsonMinifier().minify('{"b": 1, "a": 2}', {"sort_keys": True}) == '{"a":2,"b":1}'

    def test_invalid_json_raises(self):
        with pytest.raises(json.JSONDecodeError):
            JsonMinifier().minify("{not json", {})


class TestCalmjsMinifier:
    """Tests for the calmjs.parse JavaScript minifier."""

    @pytest.fixture(autouse=True)
    def _requires_calmjs(self):
        pytest.importorskip("calmjs.parse")

    def test_minifies(self):
        source = "function add(first, second) {\n    return first + second;\n}\n"
        output = CalmjsMinifier().minify(source, {})

        assert len(output) < len(source)
        assert "\n    " not in output
        assert "function add(" in output

    def test_mangles_locals(self):
        source = "function f(longParameterName) { return longParameterName; }"
        assert "longParameterName" not in CalmjsMinifier().minify(source, {})

    def test_mangle_off(self):
        source = "function f(longParameterName) { return longParameterName; }"
        output = CalmjsMinifier().minify(source, {"mangle": False})
        assert "longParameterName" in output

    def test_syntax_error_raises(self):
        with pytest.raises(Exception):
            CalmjsMinifier().minify("var = ;", {})


class TestCssCompressorMinifier:
    """Tests for the csscompressor CSS minifier."""

    @pytest.fixture(autouse=True)
    def _requires_csscompressor(self):
        pytest.importorskip("csscompressor")

    def test_minifies(self):
        source = "body {\n    background-color: #ffffff;\n}\n"
        assert CssCompressorMinifier().minify(source, {}) == "body{background-color:#fff}"


class TestCompilers:
    """Tests for the optional dialect compilers."""

    def test_libsass(self):
        pytest.importorskip("sass")
        output = LibsassCompiler().compile("$c: red;\na { b { color: $c; } }", {})
        assert "a b" in output
        assert "red" in output

    def test_libsass_error(self):
        pytest.importorskip("sass")
        with pytest.raises(Exception):
            LibsassCompiler().compile("a { color: $undefined; }", {})

    def test_lesscpy(self):
        pytest.importorskip("lesscpy")
        output = LesscpyCompiler().compile("@c: #ff0000;\na { color: @c; }", {})
        assert "a" in output
        assert "#ff0000" in output.lower() or "red" in output.lower()


class TestRealPipeline:
    """Scenarios through the dispatcher with the default backends."""

    @pytest.fixture
    def dispatcher(self):
        return TransformDispatcher(BackendRegistry())

    def test_js_scenario(self, dispatcher):
        pytest.importorskip("calmjs.parse")
        source = b"(function(undefined){ window.hello = 'world'; })();"

        result = dispatcher.process(AssetType.JS, MinifyOptions(), source)

        assert not result.failed
        assert len(result.body) <= len(source)
        assert b"window.hello" in result.body

    def test_js_preserve_comments(self, dispatcher):
        """Test that bang comments survive minification when asked for."""
        pytest.importorskip("calmjs.parse")
        options = MinifyOptions(js={"preserve_comments": True})

        result = dispatcher.process(AssetType.JS, options, b"/*! keep me */\nvar a = 1;")

        assert not result.failed
        assert result.body.startswith(b"/*! keep me */\n")
        assert b"var a=1" in result.body

    def test_js_comments_dropped_by_default(self, dispatcher):
        pytest.importorskip("calmjs.parse")

        result = dispatcher.process(AssetType.JS, MinifyOptions(), b"/*! keep me */\nvar a = 1;")

        assert not result.failed
        assert b"keep me" not in result.body

    def test_css_scenario(self, dispatcher):
        pytest.importorskip("csscompressor")
        result = dispatcher.process(
            AssetType.CSS, MinifyOptions(), b"body {   background-color: #FFFFFF;   }"
        )
        assert result.body == b"body{background-color:#fff}"

    @pytest.mark.parametrize("asset_type, module, source", [
        (AssetType.JS, "calmjs.parse", b"(function(undefined){ window.hello = 'world'; })();"),
        (AssetType.CSS, "csscompressor", b"a {\n  color: #FF0000;\n  margin: 0px;\n}\n"),
    ])
    def test_minify_is_a_fixed_point(self, dispatcher, asset_type, module, source):
        """Test that minifying minified output changes nothing."""
        pytest.importorskip(module)

        once = dispatcher.process(asset_type, MinifyOptions(), source).body
        twice = dispatcher.process(asset_type, MinifyOptions(), once).body

        assert twice == once

    def test_sass_compile_failure(self):
        """Test malformed SCSS: compile-stage error, original served, nothing cached."""
        pytest.importorskip("sass")
        pytest.importorskip("csscompressor")

        cache = MemoryCache()
        pipeline = MinifyPipeline(cache, TransformDispatcher(BackendRegistry()))
        source = b"a { color: $undefined-variable; "

        output, outcome = pipeline.run(AssetType.SASS, MinifyOptions(), source)

        assert output == source
        assert outcome.stage_error.stage == "compile"
        assert len(cache) == 0
