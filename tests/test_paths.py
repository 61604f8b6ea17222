"""Tests for codestore.paths."""

from __future__ import annotations

from pathlib import Path

import pytest

from codestore.errors import InvalidIdentifier, InvalidPath
from codestore.paths import PathResolver, normalize_relative


def test_resolve_keeps_nested_structure(resolver: PathResolver, codebase_id: str) -> None:
    resolved = resolver.resolve(codebase_id, "a/b/c.txt")

    assert resolved.relative == "a/b/c.txt"
    assert resolved.absolute == resolver.root / codebase_id / "a" / "b" / "c.txt"


def test_resolve_collapses_dot_segments(resolver: PathResolver, codebase_id: str) -> None:
    resolved = resolver.resolve(codebase_id, "./a//b/../c.txt")
    assert resolved.relative == "a/c.txt"


def test_resolve_treats_leading_slash_as_codebase_relative(
    resolver: PathResolver, codebase_id: str
) -> None:
    resolved = resolver.resolve(codebase_id, "/etc/passwd")
    assert resolved.absolute == resolver.root / codebase_id / "etc" / "passwd"


@pytest.mark.parametrize(
    "relative",
    [
        "../../etc/passwd",
        "a/../../b",
        "..",
        "a/b/../../../c",
        "..\\..\\windows\\system.ini",
        "sub/..\\..\\x",
    ],
)
def test_resolve_rejects_traversal(
    resolver: PathResolver, codebase_id: str, relative: str
) -> None:
    with pytest.raises(InvalidPath):
        resolver.resolve(codebase_id, relative)


@pytest.mark.parametrize("relative", ["", ".", "a/..", "/", "bad\x00name"])
def test_resolve_rejects_paths_naming_no_file(
    resolver: PathResolver, codebase_id: str, relative: str
) -> None:
    with pytest.raises(InvalidPath):
        resolver.resolve(codebase_id, relative)


@pytest.mark.parametrize(
    "value",
    [
        "",
        "not-a-uuid",
        "../etc",
        "0f8fad5bd9cb469fa16570867728950e",
        "{0f8fad5b-d9cb-469f-a165-70867728950e}",
        "urn:uuid:0f8fad5b-d9cb-469f-a165-70867728950e",
        " 0f8fad5b-d9cb-469f-a165-70867728950e",
        "0f8fad5b-d9cb-469f-a165-70867728950e/..",
    ],
)
def test_invalid_identifier_rejected_before_filesystem(tmp_path: Path, value: str) -> None:
    root = tmp_path / "never-created"
    resolver = PathResolver(root)

    with pytest.raises(InvalidIdentifier):
        resolver.resolve(value, "a.txt")
    with pytest.raises(InvalidIdentifier):
        resolver.codebase_dir(value)
    assert not root.exists()


def test_identifier_is_canonicalised_to_lower_case(resolver: PathResolver) -> None:
    upper = "0F8FAD5B-D9CB-469F-A165-70867728950E"
    assert resolver.validate_codebase_id(upper) == upper.lower()
    assert resolver.codebase_dir(upper).name == upper.lower()


def test_resolve_rejects_symlink_escaping_into_prefix_sibling(
    resolver: PathResolver, codebase_id: str
) -> None:
    sibling = resolver.root / f"{codebase_id}-evil"
    sibling.mkdir()
    (sibling / "secret.txt").write_text("nope", encoding="utf-8")
    base = resolver.root / codebase_id
    base.mkdir()
    (base / "link").symlink_to(sibling, target_is_directory=True)

    with pytest.raises(InvalidPath):
        resolver.resolve(codebase_id, "link/secret.txt")


def test_normalize_relative_keeps_unresolvable_parent_segments() -> None:
    assert normalize_relative("a/../../b") == "../b"
    assert normalize_relative("\\x\\y") == "x/y"
    assert normalize_relative("") == ""
