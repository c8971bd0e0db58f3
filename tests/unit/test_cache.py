"""
Unit tests for the content-addressed cache.
"""

import os
import threading

import pytest

from httpminify.assets import AssetType
from httpminify.cache import (
    FileCache,
    MemoryCache,
    cache_key,
    create_cache,
    is_writable_directory,
)
from httpminify.errors import CacheError
from httpminify.options import MinifyOptions


class TestCacheKey:
    """Tests for cache key derivation."""

    def test_deterministic(self):
        """Test that equal inputs give equal keys."""
        body = b"var a = 1;"
        assert cache_key(MinifyOptions(), body) == cache_key(MinifyOptions(), body)

    def test_is_sha256_hex(self):
        key = cache_key(MinifyOptions(), b"x")
        assert len(key) == 64
        int(key, 16)

    def test_body_changes_key(self):
        assert cache_key(MinifyOptions(), b"a") != cache_key(MinifyOptions(), b"b")

    def test_options_change_key(self):
        """Test that the same body under different options is a different entry."""
        body = b"function f(longName) { return longName; }"
        mangled = cache_key(MinifyOptions(), body)
        unmangled = cache_key(MinifyOptions(js={"mangle": False}), body)
        assert mangled != unmangled

    def test_asset_type_changes_key(self):
        body = b"a{}"
        options = MinifyOptions()
        assert cache_key(options, body, AssetType.CSS) != cache_key(options, body, AssetType.LESS)


class TestMemoryCache:
    """Tests for MemoryCache."""

    def test_miss_then_hit(self):
        cache = MemoryCache()
        assert cache.get("k") is None

        cache.put("k", b"value")
        assert cache.get("k") == b"value"
        assert "k" in cache
        assert len(cache) == 1

    def test_put_is_idempotent(self):
        cache = MemoryCache()
        cache.put("k", b"v")
        cache.put("k", b"v")
        assert len(cache) == 1

    def test_stores_a_copy(self):
        cache = MemoryCache()
        body = bytearray(b"abc")
        cache.put("k", body)
        body[0] = ord("z")
        assert cache.get("k") == b"abc"


class TestFileCache:
    """Tests for FileCache."""

    @pytest.fixture
    def key(self) -> str:
        return cache_key(MinifyOptions(), b"body{}")

    def test_miss_then_hit(self, tmp_path, key):
        """Test a round trip through the file system."""
        cache = FileCache(tmp_path)
        assert cache.get(key) is None

        cache.put(key, b"minified")
        assert cache.get(key) == b"minified"
        assert (tmp_path / key).read_bytes() == b"minified"

    def test_no_temp_files_left(self, tmp_path, key):
        """Test that the temp file is renamed into place."""
        FileCache(tmp_path).put(key, b"x")
        assert os.listdir(tmp_path) == [key]

    def test_survives_new_instance(self, tmp_path, key):
        """Test durability across cache instances (process restarts)."""
        FileCache(tmp_path).put(key, b"persisted")
        assert FileCache(tmp_path).get(key) == b"persisted"

    def test_overwrite_replaces_atomically(self, tmp_path, key):
        cache = FileCache(tmp_path)
        cache.put(key, b"old")
        cache.put(key, b"new")
        assert cache.get(key) == b"new"

    def test_concurrent_writers(self, tmp_path, key):
        """Test that racing writers of the same entry never corrupt it."""
        cache = FileCache(tmp_path)
        body = b"x" * 100_000

        threads = [threading.Thread(target=cache.put, args=(key, body)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert cache.get(key) == body
        assert os.listdir(tmp_path) == [key]

    def test_rejects_path_like_keys(self, tmp_path):
        """Test that keys can't escape the directory."""
        cache = FileCache(tmp_path)
        with pytest.raises(CacheError):
            cache.get("../../etc/passwd")
        with pytest.raises(CacheError):
            cache.put("not-hex", b"x")

    def test_write_failure_raises_cache_error(self, tmp_path, key):
        """Test that an unwritable directory surfaces as CacheError."""
        cache = FileCache(tmp_path / "missing")
        with pytest.raises(CacheError):
            cache.put(key, b"x")

    def test_read_failure_raises_cache_error(self, tmp_path, key):
        """Test that an unreadable entry surfaces as CacheError."""
        (tmp_path / key).mkdir()
        with pytest.raises(CacheError):
            FileCache(tmp_path).get(key)


class TestCreateCache:
    """Tests for cache selection."""

    def test_default_is_memory(self):
        assert isinstance(create_cache(None), MemoryCache)
        assert isinstance(create_cache(False), MemoryCache)

    def test_directory_is_file_cache(self, tmp_path):
        cache = create_cache(tmp_path / "cache")
        assert isinstance(cache, FileCache)
        assert (tmp_path / "cache").is_dir()

    def test_unusable_directory_falls_back(self, tmp_path, caplog):
        """Test the memory fallback when the directory can't be created."""
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")

        cache = create_cache(blocker / "cache")

        assert isinstance(cache, MemoryCache)
        assert "falling back" in caplog.text

    def test_true_is_rejected(self):
        with pytest.raises(ValueError):
            create_cache(True)

    def test_is_writable_directory(self, tmp_path):
        assert is_writable_directory(tmp_path / "new")
        blocker = tmp_path / "file"
        blocker.write_text("x")
        assert not is_writable_directory(blocker / "sub")
