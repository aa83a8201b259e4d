"""Tests for exportkit.scanner."""

from __future__ import annotations

from pathlib import Path

from exportkit.config import DEFAULT_EXCLUDE_PATTERNS, DEFAULT_INCLUDE_PATTERNS
from exportkit.scanner import DirectoryScanner, scan
from tests._fixtures.project_builder import ProjectBuilder


def _seed(project_builder: ProjectBuilder) -> None:
    project_builder.write(
        {
            "src/lib/utils.ts": "export const a = 1;\n",
            "src/lib/server/email.ts": "export function send() {}\n",
            "src/lib/stores/counter.svelte.ts": "export class Counter {}\n",
            "src/lib/legacy/helpers.js": "export function help() {}\n",
            "src/lib/utils.test.ts": "test('x', () => {});\n",
            "src/lib/server/email.spec.ts": "test('y', () => {});\n",
            "src/lib/Widget.svelte": "<script></script>\n",
            "src/lib/node_modules/pkg/index.js": "module.exports = {};\n",
            "src/lib/app.d.ts": "declare const x: number;\n",
            "src/routes/+page.ts": "export function load() {}\n",
        }
    )


def test_scan_returns_exactly_matching_files(project_builder: ProjectBuilder) -> None:
    _seed(project_builder)
    root = project_builder.path()

    paths = scan(["src/lib"], DEFAULT_INCLUDE_PATTERNS, DEFAULT_EXCLUDE_PATTERNS, base=root)

    expected = sorted(
        str(root / relative)
        for relative in [
            "src/lib/utils.ts",
            "src/lib/server/email.ts",
            "src/lib/stores/counter.svelte.ts",
            "src/lib/legacy/helpers.js",
        ]
    )
    assert paths == expected


def test_scan_deduplicates_overlapping_roots(project_builder: ProjectBuilder) -> None:
    _seed(project_builder)
    root = project_builder.path()

    paths = scan(
        ["src/lib", "src/lib/server", "src"],
        DEFAULT_INCLUDE_PATTERNS,
        DEFAULT_EXCLUDE_PATTERNS,
        base=root,
    )

    assert len(paths) == len(set(paths)) == 5
    assert paths == sorted(paths)
    assert str(root / "src/routes/+page.ts") in paths


def test_scan_reports_missing_directory(project_builder: ProjectBuilder) -> None:
    _seed(project_builder)
    scanner = DirectoryScanner(project_builder.path())

    paths = scanner.scan(["src/missing", "src/lib"], DEFAULT_INCLUDE_PATTERNS, DEFAULT_EXCLUDE_PATTERNS)

    assert len(paths) == 4
    assert len(scanner.diagnostics) == 1
    diagnostic = scanner.diagnostics[0]
    assert diagnostic.kind == "configuration"
    assert "does not exist" in diagnostic.message


def test_scan_prunes_excluded_directories(project_builder: ProjectBuilder) -> None:
    _seed(project_builder)
    root = project_builder.path()

    paths = scan(["src/lib"], ["**/*.ts", "**/*.js"], ["legacy"], base=root)

    assert all("/legacy/" not in Path(path).as_posix() for path in paths)
    assert all("/node_modules/" not in Path(path).as_posix() for path in paths)


def test_is_candidate_matches_scan(project_builder: ProjectBuilder) -> None:
    _seed(project_builder)
    root = project_builder.path()
    scanner = DirectoryScanner(root)
    args = (["src/lib"], DEFAULT_INCLUDE_PATTERNS, DEFAULT_EXCLUDE_PATTERNS)

    assert scanner.is_candidate(str(root / "src/lib/server/email.ts"), *args)
    assert scanner.is_candidate("src/lib/new-file.ts", *args)
    assert not scanner.is_candidate(str(root / "src/lib/utils.test.ts"), *args)
    assert not scanner.is_candidate(str(root / "src/lib/node_modules/pkg/index.js"), *args)
    assert not scanner.is_candidate(str(root / "src/routes/+page.ts"), *args)
