"""
=============================================================================
PER-RESPONSE MINIFY OPTIONS
=============================================================================

Handlers steer the middleware for a single response through
``response.minify_options``:

    def handler(request, response):
        response.set_header("Content-Type", "application/javascript")

        response.minify_options.cache = False          # minify, don't cache
        response.minify_options.js["mangle"] = False   # keep local names
        response.end(render_jsonp())

=============================================================================
FLAGS
=============================================================================

    enabled  False → leave the response alone (headers included)
    minify   False → base formats pass through untouched; dialects are
                     still compiled, only the minify stage is skipped
    cache    None  → cache whenever the output was minified
             False → never cache this response
             True  → cache even un-minified compiled output

The per-backend dicts (js, css, json, sass, less, stylus, coffee) are handed
to the backend of the matching stage as keyword options.

=============================================================================
CACHE KEY CONTRIBUTION
=============================================================================

The same body under different options is a different output, so the
options are part of the cache key. canonical() serializes them with sorted
keys and no whitespace so that two equal option sets always produce the
same bytes, across processes and restarts.

=============================================================================
"""

import copy
import json
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional


@dataclass
class MinifyOptions:
    """Override flags and backend option bags for one response."""

    enabled: bool = True
    minify: bool = True
    cache: Optional[bool] = None

    js: Dict[str, Any] = field(default_factory=dict)
    css: Dict[str, Any] = field(default_factory=dict)
    json: Dict[str, Any] = field(default_factory=dict)
    sass: Dict[str, Any] = field(default_factory=dict)
    less: Dict[str, Any] = field(default_factory=dict)
    stylus: Dict[str, Any] = field(default_factory=dict)
    coffee: Dict[str, Any] = field(default_factory=dict)

    def backend_options(self, name: str) -> Dict[str, Any]:
        """
        Get a copy of the option bag for a backend ("js", "sass", ...).

        A copy, so a backend that pops keys can't leak changes into the
        next response or into the cache key.
        """
        return copy.deepcopy(getattr(self, name, None) or {})

    def should_cache(self) -> bool:
        """Resolve the tri-state cache flag against the minify flag."""
        if self.cache is None:
            return self.minify
        return self.cache

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def canonical(self, asset_type: Any = None) -> str:
        """
        Serialize the effective options for cache key derivation.

        Args:
            asset_type: The classified asset type (AssetType or its value).
                        Included so one body served as two different types
                        never shares a cache entry.

        Returns:
            Compact JSON with sorted keys.
        """
        payload = self.to_dict()
        if asset_type is not None:
            payload["asset_type"] = str(getattr(asset_type, "value", asset_type))
        return json.dumps(
            payload,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            default=repr,
        )

    def copy(self) -> "MinifyOptions":
        return copy.deepcopy(self)
