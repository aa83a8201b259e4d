"""Glob-style include/exclude matching for scanned paths."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import List, Optional, Pattern, Sequence, Tuple

from .logging import get_logger

logger = get_logger("patterns")


class PatternSyntaxError(ValueError):
    """Raised internally when a glob pattern cannot be compiled."""


def matches(path: str, include_patterns: Sequence[str], exclude_patterns: Sequence[str]) -> bool:
    """Return True when ``path`` matches an include pattern and no exclude pattern.

    ``path`` is expected relative to the directory the patterns apply to; back
    slashes are normalised so Windows paths behave the same way.
    """
    normalized = _normalize(path)
    if not any(_pattern_matches(normalized, pattern) for pattern in include_patterns):
        return False
    return not any(_pattern_matches(normalized, pattern) for pattern in exclude_patterns)


def matches_directory(rel_dir: str, exclude_patterns: Sequence[str]) -> bool:
    """Return True when a directory should be pruned before descending into it."""
    normalized = _normalize(rel_dir)
    if not normalized:
        return False
    name = normalized.rsplit("/", 1)[-1]
    for pattern in exclude_patterns:
        if _pattern_matches(normalized, pattern) or _pattern_matches(name, pattern):
            return True
    return False


def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` alternations, including nested ones, into plain globs."""
    start = _find_brace_group(pattern)
    if start is None:
        if "{" in pattern or "}" in pattern:
            raise PatternSyntaxError(f"Unbalanced braces in pattern: {pattern}")
        return [pattern]
    open_index, close_index = start
    head = pattern[:open_index]
    tail = pattern[close_index + 1 :]
    expanded: List[str] = []
    for option in _split_options(pattern[open_index + 1 : close_index]):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


def _normalize(path: str) -> str:
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.strip("/")


def _pattern_matches(path: str, pattern: str) -> bool:
    compiled = _compile(pattern)
    if not compiled:
        return False
    return any(regex.match(path) for regex in compiled)


@lru_cache(maxsize=512)
def _compile(pattern: str) -> Tuple[Pattern[str], ...]:
    try:
        return tuple(
            re.compile(_translate(_normalize(option))) for option in expand_braces(pattern)
        )
    except (PatternSyntaxError, re.error) as exc:
        logger.debug("Ignoring malformed pattern %r: %s", pattern, exc)
        return ()


def _find_brace_group(pattern: str) -> Optional[Tuple[int, int]]:
    depth = 0
    open_index = -1
    for index, char in enumerate(pattern):
        if char == "{":
            if depth == 0:
                open_index = index
            depth += 1
        elif char == "}":
            if depth == 0:
                raise PatternSyntaxError(f"Unbalanced braces in pattern: {pattern}")
            depth -= 1
            if depth == 0:
                return open_index, index
    if depth:
        raise PatternSyntaxError(f"Unbalanced braces in pattern: {pattern}")
    return None


def _split_options(body: str) -> List[str]:
    options: List[str] = []
    depth = 0
    current: List[str] = []
    for char in body:
        if char == "," and depth == 0:
            options.append("".join(current))
            current = []
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        current.append(char)
    options.append("".join(current))
    return options


def _translate(pattern: str) -> str:
    """Translate a brace-free glob into an anchored regular expression."""
    parts: List[str] = []
    index = 0
    length = len(pattern)
    while index < length:
        char = pattern[index]
        if char == "*":
            if pattern.startswith("**", index):
                at_segment_start = index == 0 or pattern[index - 1] == "/"
                after = index + 2
                if at_segment_start and pattern.startswith("/", after):
                    # "**/" matches zero or more leading directories.
                    parts.append("(?:.*/)?")
                    index = after + 1
                    continue
                if at_segment_start and after == length:
                    if index == 0:
                        parts.append(".*")
                    else:
                        # "dir/**" also matches "dir" itself.
                        parts[-1] = parts[-1][:-1] if parts[-1].endswith("/") else parts[-1]
                        parts.append("(?:/.*)?")
                    index = after
                    continue
                parts.append(".*")
                index = after
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "[":
            end = pattern.find("]", index + 1)
            if end == -1:
                raise PatternSyntaxError(f"Unterminated character class in pattern: {pattern}")
            body = pattern[index + 1 : end]
            if body.startswith("!"):
                body = "^" + body[1:]
            if not body or body == "^":
                raise PatternSyntaxError(f"Empty character class in pattern: {pattern}")
            parts.append(f"[{body.replace(chr(92), chr(92) * 2)}]")
            index = end
        elif char == "/":
            parts.append("/")
        else:
            parts.append(re.escape(char))
        index += 1
    return "^" + "".join(parts) + "$"


__all__ = ["expand_braces", "matches", "matches_directory", "PatternSyntaxError"]
