"""Directory scanning for candidate source files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Set

from .logging import get_logger
from .models import Diagnostic
from .patterns import matches, matches_directory

logger = get_logger("scanner")

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".svelte-kit",
    ".turbo",
    ".idea",
    ".exportkit",
}


class DirectoryScanner:
    """Walks configured root directories and yields files matching the patterns.

    Missing roots are reported through ``diagnostics`` and skipped; they never
    fail the scan.
    """

    def __init__(self, base: Optional[Path] = None) -> None:
        self.base = (base or Path.cwd()).expanduser().resolve()
        self.diagnostics: List[Diagnostic] = []

    def resolve_root(self, root: str) -> Path:
        path = Path(root).expanduser()
        if not path.is_absolute():
            path = self.base / path
        return path.resolve()

    def scan(
        self,
        root_dirs: Sequence[str],
        include_patterns: Sequence[str],
        exclude_patterns: Sequence[str],
    ) -> List[str]:
        """Return absolute candidate paths, deduplicated and sorted lexically."""
        self.diagnostics = []
        found: Set[str] = set()
        for root in root_dirs:
            root_path = self.resolve_root(root)
            if not root_path.is_dir():
                message = f"Directory {root_path} does not exist"
                logger.warning(message)
                self.diagnostics.append(
                    Diagnostic(kind="configuration", message=message, path=str(root_path))
                )
                continue
            for path in _iter_files(root_path, include_patterns, exclude_patterns):
                found.add(str(path))
        paths = sorted(found)
        logger.debug("Scanner discovered %d candidate files", len(paths))
        return paths

    def is_candidate(
        self,
        path: str,
        root_dirs: Sequence[str],
        include_patterns: Sequence[str],
        exclude_patterns: Sequence[str],
    ) -> bool:
        """Return True when ``path`` would be returned by ``scan`` if it existed."""
        target = Path(path).expanduser()
        if not target.is_absolute():
            target = self.base / target
        target = target.resolve()
        for root in root_dirs:
            root_path = self.resolve_root(root)
            try:
                relative = target.relative_to(root_path)
            except ValueError:
                continue
            parts = relative.parts
            if not parts:
                continue
            directories = parts[:-1]
            if any(part in _EXCLUDED_DIRS for part in directories):
                continue
            pruned = False
            for depth in range(1, len(directories) + 1):
                if matches_directory("/".join(directories[:depth]), exclude_patterns):
                    pruned = True
                    break
            if pruned:
                continue
            if matches(relative.as_posix(), include_patterns, exclude_patterns):
                return True
        return False


def scan(
    root_dirs: Sequence[str],
    include_patterns: Sequence[str],
    exclude_patterns: Sequence[str],
    *,
    base: Optional[Path] = None,
) -> List[str]:
    """Convenience wrapper around :class:`DirectoryScanner`."""
    return DirectoryScanner(base).scan(root_dirs, include_patterns, exclude_patterns)


def _iter_files(
    root: Path, include_patterns: Sequence[str], exclude_patterns: Sequence[str]
) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        dirnames[:] = [name for name in dirnames if name not in _EXCLUDED_DIRS]

        filtered_dirs = []
        for name in dirnames:
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if matches_directory(rel_path, exclude_patterns):
                continue
            filtered_dirs.append(name)
        dirnames[:] = filtered_dirs

        for filename in filenames:
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if matches(rel_path, include_patterns, exclude_patterns):
                yield current_dir / filename


__all__ = ["DirectoryScanner", "scan"]
