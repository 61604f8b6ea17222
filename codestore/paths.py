"""Identifier and relative path validation with root containment."""

from __future__ import annotations

import posixpath
import uuid
from pathlib import Path

from .errors import InvalidIdentifier, InvalidPath
from .models import ResolvedPath


def normalize_relative(raw: str) -> str:
    """Return the collapsed posix form of a caller path.

    Backslashes count as separators and leading slashes are dropped, so the
    result is always relative. ``..`` segments that cannot be collapsed are
    kept for the caller to reject.
    """
    candidate = raw.replace("\\", "/").lstrip("/")
    if not candidate:
        return ""
    return posixpath.normpath(candidate)


class PathResolver:
    """Maps codebase identifiers and caller paths onto the storage root."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    def validate_codebase_id(self, codebase_id: str | None) -> str:
        """Return the canonical lower-case form of a UUID identifier."""
        if not codebase_id:
            raise InvalidIdentifier("Codebase ID is required")
        try:
            canonical = str(uuid.UUID(codebase_id))
        except ValueError as exc:
            raise InvalidIdentifier("Invalid codebase ID") from exc
        # uuid.UUID also takes brace, urn and unhyphenated spellings.
        if canonical != codebase_id.lower():
            raise InvalidIdentifier("Invalid codebase ID")
        return canonical

    def codebase_dir(self, codebase_id: str | None) -> Path:
        return self.root / self.validate_codebase_id(codebase_id)

    def resolve(self, codebase_id: str | None, relative: str | None) -> ResolvedPath:
        """Validate both inputs and return a path strictly inside the codebase."""
        canonical_id = self.validate_codebase_id(codebase_id)
        if not relative:
            raise InvalidPath("File path is required")
        if "\x00" in relative:
            raise InvalidPath("Invalid file path")

        normalized = normalize_relative(relative)
        if not normalized or normalized == ".":
            raise InvalidPath("Invalid file path")
        parts = normalized.split("/")
        if parts[0] == ".." or ".." in parts:
            raise InvalidPath("Invalid file path")

        base = self.root / canonical_id
        candidate = base.joinpath(*parts)

        # Symlinks inside the tree may still point elsewhere.
        resolved_base = base.resolve()
        resolved = candidate.resolve()
        if resolved == resolved_base or not resolved.is_relative_to(resolved_base):
            raise InvalidPath("Invalid file path")

        return ResolvedPath(
            codebase_id=canonical_id, relative=normalized, absolute=candidate
        )


__all__ = ["PathResolver", "normalize_relative"]
