"""
=============================================================================
CONTENT-ADDRESSED OUTPUT CACHE
=============================================================================

Minifying (and especially compiling) is expensive; serving the same asset
twice shouldn't pay for it twice. Outputs are stored under a digest of the
input, so identical bodies with identical options always land on the same
entry and no invalidation is ever needed: a changed body is a new key.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         CACHE KEY                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   options.canonical(asset_type)      body bytes                     │
    │   {"asset_type":"js","cache":null,   (function(){ ... })();         │
    │    "css":{},"enabled":true,...}                                     │
    │              │                            │                          │
    │              └────────── NUL ─────────────┘                          │
    │                           │                                          │
    │                        SHA-256                                       │
    │                           │                                          │
    │                           ▼                                          │
    │        "9f2c...e41a"  (64 hex chars, also the file name)            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
TWO BACKENDS, ONE CONTRACT
=============================================================================

    get(key) → bytes | None       None is a miss
    put(key, body)                idempotent, atomic per entry

MemoryCache:
    A dict behind a lock. Lost on restart, never evicts.

FileCache:
    One file per key. Writes go to a unique sibling "<key>.<nonce>.tmp"
    and are renamed over the final name with os.replace(), which is atomic
    on POSIX and Windows. A reader therefore sees either the old file, the
    new file, or no file; never a half-written one.

        put("ab12")                         get("ab12")
          │                                    │
          ├─► write ab12.5f0c.tmp              │
          │                                    ├─► open ab12 → ENOENT → miss
          ├─► os.replace(tmp, ab12)  ◄── atomic
          │                                    ├─► open ab12 → full body
          ▼                                    ▼

Two requests racing on the same miss both transform and both put. That's
duplicate work, not corruption: each writer has its own temp file and the
last rename wins with identical bytes.

=============================================================================
"""

import hashlib
import logging
import os
import re
import threading
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from .errors import CacheError
from .options import MinifyOptions


logger = logging.getLogger(__name__)


def cache_key(options: MinifyOptions, body: bytes, asset_type=None) -> str:
    """
    Derive the cache key for a body under a set of options.

    Args:
        options: Effective per-response options.
        body: The complete buffered response body.
        asset_type: Classified type, folded into the options serialization.

    Returns:
        Hex SHA-256 digest.
    """
    digest = hashlib.sha256()
    digest.update(options.canonical(asset_type).encode("utf-8"))
    digest.update(b"\x00")
    digest.update(body)
    return digest.hexdigest()


class ContentCache(ABC):
    """Key → bytes store shared by every response."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """
        Look up a cached body.

        Returns:
            The stored bytes, or None on a miss.

        Raises:
            CacheError: The store could not be read.
        """

    @abstractmethod
    def put(self, key: str, body: bytes) -> None:
        """
        Store a body.

        Raises:
            CacheError: The store could not be written.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MemoryCache(ContentCache):
    """In-process cache. Unbounded; entries live as long as the process."""

    def __init__(self):
        self._entries: Dict[str, bytes] = {}
        # Worker threads share this instance
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, body: bytes) -> None:
        with self._lock:
            self._entries[key] = bytes(body)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries


class FileCache(ContentCache):
    """
    Durable cache: one file per key under ``directory``.

    The file content is the body, nothing else. Temp files share the
    directory so the final rename never crosses a filesystem boundary.
    """

    # Keys become file names; refuse anything that could escape the directory
    KEY_PATTERN = re.compile(r"^[0-9a-f]{16,128}$")

    TEMP_SUFFIX = ".tmp"

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        if not self.KEY_PATTERN.match(key):
            raise CacheError(f"Invalid cache key: {key!r}")
        return self.directory / key

    def get(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheError(f"Failed to read cache entry {key}: {e}") from e

    def put(self, key: str, body: bytes) -> None:
        path = self.path_for(key)
        temp_path = path.with_name(f"{key}.{uuid.uuid4().hex[:12]}{self.TEMP_SUFFIX}")

        try:
            temp_path.write_bytes(body)
            os.replace(temp_path, path)
        except OSError as e:
            try:
                temp_path.unlink()
            except OSError:
                pass  # never created, or already renamed
            raise CacheError(f"Failed to write cache entry {key}: {e}") from e


def is_writable_directory(directory: Union[str, Path]) -> bool:
    """Check that a directory exists (creating it if needed) and is writable."""
    path = Path(directory)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return path.is_dir() and os.access(path, os.W_OK | os.X_OK)


def create_cache(setting: Union[None, bool, str, Path] = None) -> ContentCache:
    """
    Build the cache selected by configuration.

    Args:
        setting: None or False for the in-memory cache, a directory path
                 for the file cache.

    Returns:
        A ContentCache. An unusable directory falls back to MemoryCache
        with a single warning instead of failing startup.
    """
    if setting is None or setting is False:
        return MemoryCache()

    if setting is True:
        raise ValueError("cache=True is ambiguous; pass a directory path")

    if not is_writable_directory(setting):
        logger.warning(
            f"Cache directory {setting} is not writable, "
            f"falling back to memory cache"
        )
        return MemoryCache()

    logger.debug(f"Using file cache at {setting}")
    return FileCache(setting)
