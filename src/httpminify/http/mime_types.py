"""
File extension → Content-Type for the static handler.

Besides the usual web assets, the stylesheet and script dialects get
content types the default matchers recognize, so serving ``site.scss``
through the middleware yields compiled, minified CSS:

    .scss    text/x-scss          (matches /scss/)
    .less    text/x-less          (matches /less/)
    .styl    text/x-stylus        (matches /stylus/)
    .coffee  text/x-coffeescript  (matches /coffeescript/)
"""

from pathlib import Path
from typing import Optional, Union


MIME_TYPES = {
    # Documents
    ".html": "text/html",
    ".htm": "text/html",
    ".txt": "text/plain",
    ".xml": "application/xml",
    ".md": "text/markdown",

    # Assets the middleware minifies
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".map": "application/json",

    # Dialects the middleware compiles
    ".scss": "text/x-scss",
    ".less": "text/x-less",
    ".styl": "text/x-stylus",
    ".coffee": "text/x-coffeescript",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

_TEXT_APPLICATION_TYPES = {
    "application/json",
    "application/xml",
    "application/javascript",
    "image/svg+xml",
}


def get_mime_type(path: Union[str, Path], default: Optional[str] = None) -> str:
    extension = Path(path).suffix.lower()
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type in _TEXT_APPLICATION_TYPES


def get_content_type(path: Union[str, Path], charset: str = "utf-8") -> str:
    """
    Full Content-Type header value, with a charset for text types.

        get_content_type("site.scss")   → "text/x-scss; charset=utf-8"
        get_content_type("logo.png")    → "image/png"
    """
    mime_type = get_mime_type(path)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
