"""Tests for exportkit.patterns."""

from __future__ import annotations

import pytest

from exportkit.config import DEFAULT_EXCLUDE_PATTERNS, DEFAULT_INCLUDE_PATTERNS
from exportkit.patterns import PatternSyntaxError, expand_braces, matches, matches_directory


@pytest.mark.parametrize(
    "path",
    ["utils.ts", "server/email.ts", "deep/nested/dir/helpers.js", "stores/counter.svelte.ts"],
)
def test_default_patterns_include_sources(path: str) -> None:
    assert matches(path, DEFAULT_INCLUDE_PATTERNS, DEFAULT_EXCLUDE_PATTERNS)


@pytest.mark.parametrize(
    "path",
    [
        "utils.test.ts",
        "server/email.spec.ts",
        "node_modules/pkg/index.js",
        "types/app.d.ts",
        "README.md",
        "component.svelte",
    ],
)
def test_default_patterns_reject_other_files(path: str) -> None:
    assert not matches(path, DEFAULT_INCLUDE_PATTERNS, DEFAULT_EXCLUDE_PATTERNS)


@pytest.mark.parametrize(
    ("path", "pattern", "expected"),
    [
        ("a.ts", "*.ts", True),
        ("dir/a.ts", "*.ts", False),
        ("dir/a.ts", "dir/*.ts", True),
    ],
)
def test_single_star_stays_within_a_segment(path: str, pattern: str, expected: bool) -> None:
    assert matches(path, [pattern], []) is expected


@pytest.mark.parametrize(
    ("path", "pattern", "expected"),
    [
        ("v1.ts", "v?.ts", True),
        ("v10.ts", "v?.ts", False),
        ("b.ts", "[abc].ts", True),
        ("d.ts", "[abc].ts", False),
        ("d.ts", "[!abc].ts", True),
    ],
)
def test_question_mark_and_character_classes(path: str, pattern: str, expected: bool) -> None:
    assert matches(path, [pattern], []) is expected


def test_windows_separators_are_normalised() -> None:
    assert matches("server\\email.ts", ["**/*.ts"], [])


def test_expand_braces_handles_nesting() -> None:
    assert expand_braces("**/*.{ts,{m,c}js}") == ["**/*.ts", "**/*.mjs", "**/*.cjs"]
    assert expand_braces("plain.ts") == ["plain.ts"]


def test_expand_braces_rejects_unbalanced_groups() -> None:
    with pytest.raises(PatternSyntaxError):
        expand_braces("**/*.{ts,js")


def test_malformed_patterns_never_match() -> None:
    assert not matches("a.ts", ["**/*.{ts"], [])
    assert not matches("a.ts", ["[a.ts"], [])
    assert matches("a.ts", ["*.ts"], ["[a.ts"])
    # A malformed include does not poison the remaining patterns.
    assert matches("a.ts", ["**/*.{ts", "*.ts"], [])


def test_matches_directory_checks_path_and_name() -> None:
    assert matches_directory("node_modules", ["**/node_modules/**"])
    assert matches_directory("pkg/node_modules", ["**/node_modules/**"])
    assert matches_directory("generated", ["generated"])
    assert matches_directory("src/generated", ["generated"])
    assert not matches_directory("server", ["**/node_modules/**"])
    assert not matches_directory("", ["**"])
