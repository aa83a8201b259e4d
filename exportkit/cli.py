"""CLI entrypoints for exportkit commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .engine import ExportEngine
from .logging import configure_logging, get_logger, summarize_diagnostics


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Increase log verbosity for troubleshooting.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Project root or config file (defaults to current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="exportkit",
        description="Generate a virtual module re-exporting a project's functions and classes.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Scan the project and write the declaration file.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    _add_path_argument(generate_parser)
    generate_parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print the generated module text.",
    )

    list_parser = subparsers.add_parser(
        "list",
        help="List discovered exports.",
    )
    _add_verbose_option(list_parser, suppress_default=True)
    _add_path_argument(list_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve the engine over HTTP for an external build host.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_path_argument(serve_parser)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for exportkit commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    try:
        config = load_config(Path(args.path))
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "serve":
        from .service import run_service

        run_service(config.root, host=args.host, port=args.port)
        return

    engine = ExportEngine(config)
    module = engine.build()
    if module is None or engine.last_error is not None:
        parser.exit(
            1,
            f"exportkit {args.command} failed: {engine.last_error}\nRun with --verbose for more details.\n",
        )

    if args.command == "generate":
        if args.stdout:
            sys.stdout.write(module.code)
        target = config.declaration_path
        if target is not None:
            print(f"Declarations written to {_relativize(target)}")
        print(f"{len(module.exports)} exports, {len(module.env_vars)} environment variables")
    elif args.command == "list":
        plan_items = _listing(engine)
        for line in plan_items:
            print(line)
        if not plan_items:
            print("No exports found")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")

    summarize_diagnostics(get_logger("cli"), module.diagnostics)


def _listing(engine: ExportEngine) -> list[str]:
    lines = []
    module = engine.module
    remaining = set(module.exports) if module is not None else set()
    for path in engine.cache.paths():
        entry = engine.cache.entry(path)
        if entry is None:
            continue
        for item in entry.result.items:
            # Cache paths follow plan order, so the first hit is the owner.
            if item.name not in remaining:
                continue
            remaining.discard(item.name)
            lines.append(f"{item.kind.value:<9} {item.name}  {_relativize(Path(path))}")
    return lines


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
