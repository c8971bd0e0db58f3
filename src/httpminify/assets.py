"""
=============================================================================
ASSET CLASSIFICATION
=============================================================================

Decides, once per response, what the body is and what to do with it.
Runs at the single decision point the response stream offers: the moment
headers are finalized.

=============================================================================
ASSET TYPES
=============================================================================

    ┌───────────┬──────────────────┬───────────────────┬────────────────┐
    │ Type      │ Default match    │ Pipeline          │ Sent as        │
    ├───────────┼──────────────────┼───────────────────┼────────────────┤
    │ SASS      │ /scss/           │ compile → minify  │ text/css       │
    │ LESS      │ /less/           │ compile → minify  │ text/css       │
    │ STYLUS    │ /stylus/         │ compile → minify  │ text/css       │
    │ COFFEE    │ /coffeescript/   │ compile → minify  │ text/javascript│
    │ JSON      │ /json/           │ minify            │ (unchanged)    │
    │ JS        │ /javascript/     │ minify            │ (unchanged)    │
    │ CSS       │ /css/            │ minify            │ (unchanged)    │
    │ PLAIN     │ anything else    │ none              │ (unchanged)    │
    └───────────┴──────────────────┴───────────────────┴────────────────┘

Dialects are tried first because their content types often contain the
base type's pattern too ("text/x-scss" would otherwise match /css/ and get
minified as if it were already CSS). JSON goes before JS for the same
reason ("application/json" vs a JSONP "application/javascript").

First match wins. A type whose backend is not installed never matches.

=============================================================================
DECISION TABLE
=============================================================================

    HEAD request ............................ passthrough
    options.enabled is False ................ passthrough
    no Content-Type header .................. passthrough
    classified PLAIN ........................ passthrough
    base format + options.minify is False ... passthrough
    otherwise ............................... buffer

=============================================================================
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Pattern, Union

from .options import MinifyOptions


class AssetType(Enum):
    """Logical format of a response body."""

    PLAIN = "plain"
    JS = "js"
    CSS = "css"
    JSON = "json"
    SASS = "sass"
    LESS = "less"
    STYLUS = "stylus"
    COFFEE = "coffee"

    @property
    def is_compiled(self) -> bool:
        """True for dialects that need a compile stage."""
        return self in _COMPILE_TARGETS

    @property
    def base(self) -> "AssetType":
        """The format this type is minified as (itself for base formats)."""
        return _COMPILE_TARGETS.get(self, self)


_COMPILE_TARGETS: Dict[AssetType, AssetType] = {
    AssetType.SASS: AssetType.CSS,
    AssetType.LESS: AssetType.CSS,
    AssetType.STYLUS: AssetType.CSS,
    AssetType.COFFEE: AssetType.JS,
}

# Content type a compiled dialect is served as
OUTWARD_CONTENT_TYPES: Dict[AssetType, str] = {
    AssetType.CSS: "text/css",
    AssetType.JS: "text/javascript",
}

# Matching order: dialects (they imply a compile stage), then json, js, css
MATCH_ORDER = (
    AssetType.SASS,
    AssetType.LESS,
    AssetType.STYLUS,
    AssetType.COFFEE,
    AssetType.JSON,
    AssetType.JS,
    AssetType.CSS,
)

DEFAULT_PATTERNS: Dict[AssetType, str] = {
    AssetType.SASS: r"scss",
    AssetType.LESS: r"less",
    AssetType.STYLUS: r"stylus",
    AssetType.COFFEE: r"coffeescript",
    AssetType.JSON: r"json",
    AssetType.JS: r"javascript",
    AssetType.CSS: r"css",
}

MatchPattern = Optional[Union[str, Pattern[str]]]


@dataclass(frozen=True)
class ResponseClassification:
    """
    What the interceptor decided for one response.

    Created once at header finalization and never changed afterwards.
    """

    asset_type: AssetType = AssetType.PLAIN
    should_buffer: bool = False
    should_minify: bool = False
    should_cache: bool = False


PASSTHROUGH = ResponseClassification()


class ContentTypeMatchers:
    """
    Ordered content-type patterns, one per asset family.

    Patterns are searched anywhere in the header value, like the original
    regex ``.test()`` semantics. Pass ``None`` for a family to switch it off.

    Usage:
        matchers = ContentTypeMatchers(js=r"^text/custom$")
        matchers.match("text/custom")                # AssetType.JS
        matchers.match("text/x-scss", lambda t: t is not AssetType.SASS)
                                                      # AssetType.CSS
    """

    def __init__(self, **patterns: MatchPattern):
        unknown = set(patterns) - {t.value for t in MATCH_ORDER}
        if unknown:
            raise ValueError(f"Unknown asset types: {', '.join(sorted(unknown))}")

        self._patterns: Dict[AssetType, Optional[Pattern[str]]] = {}
        for asset_type in MATCH_ORDER:
            pattern = patterns.get(asset_type.value, DEFAULT_PATTERNS[asset_type])
            self._patterns[asset_type] = _compile(pattern)

    def pattern(self, asset_type: AssetType) -> Optional[Pattern[str]]:
        return self._patterns.get(asset_type)

    def match(
        self,
        content_type: str,
        is_available: Optional[Callable[[AssetType], bool]] = None,
    ) -> AssetType:
        """
        Classify a Content-Type header value.

        Args:
            content_type: Raw header value, parameters included.
            is_available: Predicate telling whether a type's backends can
                          run. Unavailable types are skipped.

        Returns:
            The first matching AssetType, or PLAIN.
        """
        for asset_type in MATCH_ORDER:
            pattern = self._patterns[asset_type]
            if pattern is None:
                continue
            if is_available is not None and not is_available(asset_type):
                continue
            if pattern.search(content_type):
                return asset_type
        return AssetType.PLAIN


def _compile(pattern: MatchPattern) -> Optional[Pattern[str]]:
    if pattern is None:
        return None
    if isinstance(pattern, str):
        return re.compile(pattern)
    return pattern


def classify(
    content_type: Optional[str],
    options: MinifyOptions,
    matchers: ContentTypeMatchers,
    method: str = "GET",
    is_available: Optional[Callable[[AssetType], bool]] = None,
) -> ResponseClassification:
    """
    Decide how one response is handled (see the decision table above).

    Args:
        content_type: The response's Content-Type header, or None.
        options: The response's override flags at header time.
        matchers: Configured content-type patterns.
        method: Request method; HEAD responses are never buffered.
        is_available: Backend availability predicate.

    Returns:
        A frozen ResponseClassification.
    """
    if method.upper() == "HEAD":
        return PASSTHROUGH

    if not options.enabled:
        return PASSTHROUGH

    if content_type is None:
        return PASSTHROUGH

    asset_type = matchers.match(content_type, is_available)
    if asset_type is AssetType.PLAIN:
        return PASSTHROUGH

    # Nothing to do for a base format that must not be minified
    if not asset_type.is_compiled and not options.minify:
        return PASSTHROUGH

    return ResponseClassification(
        asset_type=asset_type,
        should_buffer=True,
        should_minify=options.minify,
        should_cache=options.should_cache(),
    )


def outward_content_type(content_type: str, asset_type: AssetType) -> str:
    """
    Content type to send for a classified response.

    Dialects are rewritten to their base type, keeping header parameters:
        "text/x-scss; charset=utf-8" → "text/css; charset=utf-8"
    Base formats are returned unchanged.
    """
    if not asset_type.is_compiled:
        return content_type

    media_type = OUTWARD_CONTENT_TYPES[asset_type.base]
    _, sep, params = content_type.partition(";")
    if sep and params.strip():
        return f"{media_type}; {params.strip()}"
    return media_type


def charset_of(content_type: Optional[str], default: str = "utf-8") -> str:
    """
    Extract the charset parameter from a Content-Type value.

    "text/css; charset=ISO-8859-1" → "ISO-8859-1"
    """
    if not content_type:
        return default
    for param in content_type.split(";")[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset" and value.strip():
            return value.strip().strip('"')
    return default
