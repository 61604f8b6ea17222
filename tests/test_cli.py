"""CLI parser behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest

import codestore.service
from codestore.cli import _build_parser, main
from codestore.config import ServiceConfig


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "serve"])
    assert args.verbose is True
    assert args.command == "serve"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["serve", "--verbose"])
    assert args.verbose is True


def test_cli_logging_defaults_survive_subcommand() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--log-file", "service.log", "--no-access-log", "serve"])
    assert args.verbose is False
    assert args.log_file == Path("service.log")
    assert args.access_log is False

    defaults = parser.parse_args(["serve"])
    assert defaults.log_file is None
    assert defaults.access_log is True


def test_cli_parses_serve_overrides() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["serve", "--host", "127.0.0.1", "--port", "9100", "--storage-root", "data"]
    )
    assert args.host == "127.0.0.1"
    assert args.port == 9100
    assert args.storage_root == Path("data")


def test_serve_applies_overrides_and_starts_service(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    started: list[ServiceConfig] = []
    monkeypatch.setattr(codestore.service, "run_service", started.append)
    monkeypatch.delenv("STORAGE_ROOT", raising=False)
    monkeypatch.delenv("PORT", raising=False)

    root = tmp_path / "store"
    main(["serve", "--port", "9100", "--storage-root", str(root)])

    assert len(started) == 1
    assert started[0].port == 9100
    assert started[0].storage_root == root
    assert root.is_dir()


def test_serve_exits_when_storage_root_cannot_be_created(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(codestore.service, "run_service", lambda config: None)
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["serve", "--storage-root", str(blocker / "storage")])

    assert excinfo.value.code == 1
