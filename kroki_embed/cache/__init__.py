"""Content-addressed file cache for localLink rendering."""

from .lib import (
    CACHE_BUCKET,
    FILE_MODE,
    CacheEntry,
    CacheError,
    DiagramCache,
    content_hash,
)

__all__ = [
    "CACHE_BUCKET",
    "FILE_MODE",
    "CacheEntry",
    "CacheError",
    "DiagramCache",
    "content_hash",
]
