"""Change-aware cache of per-file extraction results."""

from __future__ import annotations

import json
import os
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..logging import get_logger
from ..models import CacheEntry, Diagnostic, ExtractionResult, SourceFile
from ..parsing.extractor import DeclarationExtractor
from ..parsing.transforms import transform_env_imports

_CACHE_VERSION = 2

logger = get_logger("cache")


class SourceReadError(OSError):
    """Raised when a candidate file cannot be read or decoded."""


class PassAbandoned(RuntimeError):
    """Raised by :meth:`FileCache.refresh` when its pass was superseded."""


def file_marker(path: str) -> str:
    """Return the modification marker for ``path`` (mtime in ns plus size)."""
    stat_result = os.stat(path)
    mtime_ns = getattr(stat_result, "st_mtime_ns", int(stat_result.st_mtime * 1_000_000_000))
    return f"{mtime_ns}:{stat_result.st_size}"


def read_source(path: str) -> SourceFile:
    try:
        marker = file_marker(path)
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceReadError(f"Error reading file {path}: {exc}") from exc
    return SourceFile(path=path, text=text, marker=marker)


class FileCache:
    """Maps file path to ``{marker, extraction result}``.

    The cache is owned by whoever constructs it; nothing is process-global.
    ``refresh`` rebuilds it against the current candidate universe, so files
    that disappear or stop matching the patterns are evicted.
    """

    def __init__(
        self,
        path: Path | None = None,
        *,
        extractor: Optional[DeclarationExtractor] = None,
        reader: Callable[[str], SourceFile] = read_source,
    ) -> None:
        self._path = path
        self._entries: Dict[str, CacheEntry] = {}
        self._extractor = extractor or DeclarationExtractor()
        self._reader = reader
        self._dirty = False
        self.reads = 0
        if self._path is not None:
            self._load(self._path)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def paths(self) -> List[str]:
        return sorted(self._entries)

    def entry(self, path: str) -> Optional[CacheEntry]:
        return self._entries.get(path)

    def get_or_extract(self, path: str) -> ExtractionResult:
        """Return the extraction result for ``path``, re-reading only when stale."""
        cached = self._fresh_entry(path)
        if cached is not None:
            return cached.result
        entry, _ = self._load_entry(path)
        if entry is None:
            self.evict(path)
            return _read_failure(path)
        self.reads += 1
        self._store(entry)
        return entry.result

    def refresh(
        self,
        paths: Sequence[str],
        *,
        max_workers: Optional[int] = None,
        cancelled: Callable[[], bool] = lambda: False,
    ) -> List[Tuple[str, ExtractionResult]]:
        """Bring the cache in line with ``paths`` and return results in path order.

        Stale files are read concurrently; the cache itself is only written
        after every read has joined, from the calling thread.
        """
        ordered = sorted(set(paths))
        stale: List[str] = []
        for path in ordered:
            if self._fresh_entry(path) is None:
                stale.append(path)
            else:
                logger.debug("Cache hit for %s", path)

        loaded: Dict[str, Tuple[Optional[CacheEntry], Optional[str]]] = {}
        if stale:
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="exportkit-read") as pool:
                futures: Dict[str, Future[Tuple[Optional[CacheEntry], Optional[str]]]] = {
                    path: pool.submit(self._load_entry, path) for path in stale
                }
                for path, future in futures.items():
                    if cancelled():
                        for pending in futures.values():
                            pending.cancel()
                        raise PassAbandoned("Scan pass superseded by a newer request")
                    loaded[path] = future.result()
        if cancelled():
            raise PassAbandoned("Scan pass superseded by a newer request")

        self.prune(ordered)
        results: List[Tuple[str, ExtractionResult]] = []
        for path in ordered:
            if path in loaded:
                entry, error = loaded[path]
                if entry is None:
                    self.evict(path)
                    results.append((path, _read_failure(path, error)))
                    continue
                self.reads += 1
                self._store(entry)
                results.append((path, entry.result))
            else:
                results.append((path, self._entries[path].result))
        return results

    def transformed_text(self, path: str) -> Optional[str]:
        """Return the env-rewritten copy of a cached file, reading it if needed."""
        entry = self._entries.get(path)
        if entry is not None and entry.transformed_text is not None:
            return entry.transformed_text
        try:
            source = self._reader(path)
        except SourceReadError as exc:
            logger.warning("%s", exc)
            return None
        transformed = transform_env_imports(source.text, path)
        if entry is not None and entry.marker == source.marker:
            entry.transformed_text = transformed
        return transformed

    def evict(self, path: str) -> bool:
        if self._entries.pop(path, None) is not None:
            self._dirty = True
            return True
        return False

    def prune(self, keys_to_keep: Iterable[str]) -> None:
        keep = set(keys_to_keep)
        removed = [key for key in self._entries if key not in keep]
        if removed:
            for key in removed:
                logger.debug("Evicting %s from cache", key)
                self._entries.pop(key, None)
            self._dirty = True

    def persist(self) -> None:
        if not self._dirty or self._path is None:
            return
        payload = {
            "version": _CACHE_VERSION,
            "entries": {
                path: {"marker": entry.marker, "result": entry.result.to_dict()}
                for path, entry in self._entries.items()
            },
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        self._dirty = False

    def clear(self) -> None:
        self._entries.clear()
        self._dirty = True

    # ------------------------------------------------------------------
    # Internal helpers

    def _fresh_entry(self, path: str) -> Optional[CacheEntry]:
        entry = self._entries.get(path)
        if entry is None:
            return None
        try:
            marker = file_marker(path)
        except OSError:
            return None
        return entry if entry.marker == marker else None

    def _load_entry(self, path: str) -> Tuple[Optional[CacheEntry], Optional[str]]:
        # Runs on worker threads: reads and computes only, never mutates the cache.
        try:
            source = self._reader(path)
        except SourceReadError as exc:
            logger.warning("%s", exc)
            return None, str(exc)
        transformed = transform_env_imports(source.text, path)
        # Extract from the original text: env names live in the imports the
        # rewrite removes, and exported declarations are identical in both.
        result = self._extractor.extract(source.text, path)
        return CacheEntry(path=path, marker=source.marker, result=result, transformed_text=transformed), None

    def _store(self, entry: CacheEntry) -> None:
        self._entries[entry.path] = entry
        self._dirty = True

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError):
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        valid_entries: Dict[str, CacheEntry] = {}
        for key, raw in entries.items():
            if not isinstance(key, str) or not isinstance(raw, dict):
                continue
            marker = raw.get("marker")
            result = raw.get("result")
            if not isinstance(marker, str) or not isinstance(result, dict):
                continue
            try:
                valid_entries[key] = CacheEntry(
                    path=key, marker=marker, result=ExtractionResult.from_dict(result)
                )
            except (KeyError, ValueError, TypeError):
                continue
        self._entries = valid_entries
        self._dirty = False


def _read_failure(path: str, message: Optional[str] = None) -> ExtractionResult:
    return ExtractionResult(
        diagnostics=[
            Diagnostic(kind="read", message=message or f"Error reading file {path}", path=path)
        ]
    )


__all__ = ["FileCache", "PassAbandoned", "SourceReadError", "file_marker", "read_source"]
