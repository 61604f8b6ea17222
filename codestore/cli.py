"""CLI entrypoints for codestore commands."""

from __future__ import annotations

import argparse
from pathlib import Path

from .config import ConfigError, ensure_storage_root, load_config
from .errors import StorageRootError
from .logging import configure_logging, get_logger

_LOGGING_DEFAULTS = {"verbose": False, "log_file": None, "access_log": True}


def _add_logging_options(parser: argparse.ArgumentParser, *, nested: bool = False) -> None:
    """Attach logging flags; a nested parser only sets what was actually passed.

    Options may then appear before or after the subcommand without the
    subcommand's defaults clobbering values given at the top level.
    """

    def default(dest: str) -> object:
        return argparse.SUPPRESS if nested else _LOGGING_DEFAULTS[dest]

    group = parser.add_argument_group("logging")
    group.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=default("verbose"),
        help="Log storage activity at DEBUG level.",
    )
    group.add_argument(
        "--log-file",
        type=Path,
        default=default("log_file"),
        help="Also write logs to this file.",
    )
    group.add_argument(
        "--no-access-log",
        dest="access_log",
        action="store_false",
        default=default("access_log"),
        help="Do not log one line per HTTP request.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codestore",
        description="Store uploaded codebases and serve them back as files or archives.",
    )
    _add_logging_options(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP storage service.",
    )
    _add_logging_options(serve_parser, nested=True)
    serve_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to codestore.yml (or a directory containing it).",
    )
    serve_parser.add_argument("--host", default=None, help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to listen on.")
    serve_parser.add_argument(
        "--storage-root",
        type=Path,
        default=None,
        help="Directory that holds stored codebases (overrides STORAGE_ROOT).",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for codestore commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=args.verbose, log_file=args.log_file, access_log=args.access_log
    )
    logger = get_logger("cli")

    if args.command == "serve":
        try:
            config = load_config(args.config)
        except ConfigError as exc:
            parser.exit(1, f"Invalid configuration: {exc}\n")
        if args.host is not None:
            config.host = args.host
        if args.port is not None:
            config.port = args.port
        if args.storage_root is not None:
            config.storage_root = args.storage_root

        try:
            ensure_storage_root(config)
        except StorageRootError as exc:
            logger.critical("%s", exc)
            parser.exit(1, f"{exc}\n")

        from .service import run_service

        run_service(config)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


if __name__ == "__main__":  # pragma: no cover
    main()
