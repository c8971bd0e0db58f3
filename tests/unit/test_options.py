"""
Unit tests for per-response minify options.
"""

import json

from httpminify.assets import AssetType
from httpminify.options import MinifyOptions


class TestMinifyOptions:
    """Tests for MinifyOptions flags and serialization."""

    def test_defaults(self):
        options = MinifyOptions()
        assert options.enabled is True
        assert options.minify is True
        assert options.cache is None
        assert options.js == {}

    def test_should_cache_follows_minify_by_default(self):
        """Test the tri-state cache flag."""
        assert MinifyOptions().should_cache() is True
        assert MinifyOptions(minify=False).should_cache() is False
        assert MinifyOptions(minify=False, cache=True).should_cache() is True
        assert MinifyOptions(cache=False).should_cache() is False

    def test_backend_options_is_a_copy(self):
        """Test that a backend mutating its bag can't change the options."""
        options = MinifyOptions(js={"mangle": False, "nested": {"a": 1}})

        bag = options.backend_options("js")
        bag.pop("mangle")
        bag["nested"]["a"] = 2

        assert options.js == {"mangle": False, "nested": {"a": 1}}

    def test_backend_options_unknown_name(self):
        assert MinifyOptions().backend_options("typescript") == {}

    def test_canonical_is_key_order_independent(self):
        """Test that equal options serialize to identical text."""
        a = MinifyOptions(js={"mangle": False, "drop_semi": True})
        b = MinifyOptions(js={"drop_semi": True, "mangle": False})
        assert a.canonical() == b.canonical()

    def test_canonical_includes_asset_type(self):
        """Test that the asset type is part of the serialization."""
        options = MinifyOptions()
        assert options.canonical(AssetType.JS) != options.canonical(AssetType.CSS)
        assert json.loads(options.canonical(AssetType.JS))["asset_type"] == "js"

    def test_canonical_is_compact(self):
        assert " " not in MinifyOptions().canonical()

    def test_copy_is_deep(self):
        options = MinifyOptions(css={"max_linelen": 80})
        clone = options.copy()
        clone.css["max_linelen"] = 0
        assert options.css["max_linelen"] == 80
