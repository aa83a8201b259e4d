"""Per-file extraction cache."""

from .file_cache import FileCache, PassAbandoned, SourceReadError

__all__ = ["FileCache", "PassAbandoned", "SourceReadError"]
