"""CLI behaviour tests."""

from __future__ import annotations

import pytest

from exportkit.cli import _build_parser, main
from exportkit.generation.synthesizer import SynthesisError
from tests._fixtures.project_builder import ProjectBuilder


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "generate"])
    assert args.verbose is True
    assert args.command == "generate"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["list", "--verbose"])
    assert args.verbose is True
    assert args.command == "list"


def test_cli_serve_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(["serve", "app", "--port", "9000"])
    assert args.path == "app"
    assert args.port == 9000
    assert args.host == "127.0.0.1"


def test_generate_writes_declarations(project_builder: ProjectBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    project_builder.write({"src/lib/user.ts": "export function getUser(id: string) {}\n"})

    main(["generate", str(project_builder.path()), "--stdout"])

    out = capsys.readouterr().out
    assert "export { getUser };" in out
    assert "1 exports, 0 environment variables" in out
    assert project_builder.path("src/exportkit.d.ts").exists()


def test_list_prints_exports(project_builder: ProjectBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    project_builder.write(
        {
            "src/lib/a/util.ts": "export function helper() {}\n",
            "src/lib/b/util.ts": "export function helper() {}\nexport class Store {}\n",
        }
    )

    main(["list", str(project_builder.path())])

    captured = capsys.readouterr()
    lines = captured.out.splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("function  helper")
    assert lines[0].endswith("src/lib/a/util.ts")
    assert lines[1].startswith("class     Store")
    assert "Duplicate export 'helper'" in captured.err
    assert "1 diagnostic (duplicate: 1)" in captured.err


def test_invalid_config_exits_with_error(project_builder: ProjectBuilder) -> None:
    project_builder.path(".exportkit.yml").write_text(
        "export_strategy:\n  mode: flat\n", encoding="utf-8"
    )

    with pytest.raises(SystemExit) as excinfo:
        main(["generate", str(project_builder.path())])

    assert excinfo.value.code == 1


def test_generate_exits_when_synthesis_fails(
    project_builder: ProjectBuilder,
    capsys: pytest.CaptureFixture[str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    project_builder.write({"src/lib/user.ts": "export function getUser(id: string) {}\n"})

    def _fail(*_args: object, **_kwargs: object) -> str:
        raise SynthesisError("conflicting names")

    monkeypatch.setattr("exportkit.engine.synthesize", _fail)

    with pytest.raises(SystemExit) as excinfo:
        main(["generate", str(project_builder.path())])

    assert excinfo.value.code == 1
    assert "exportkit generate failed: conflicting names" in capsys.readouterr().err
