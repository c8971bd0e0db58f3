"""
Request handlers shipped with the package.
"""

from .static import StaticFileHandler

__all__ = ["StaticFileHandler"]
