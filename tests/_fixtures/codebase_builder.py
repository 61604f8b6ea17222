"""Helper utilities for laying out stored codebases in tests."""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Mapping


class CodebaseBuilder:
    """Writes files directly under ``storage_root/<codebase_id>``."""

    def __init__(self, storage_root: Path, codebase_id: str | None = None) -> None:
        self.codebase_id = codebase_id or str(uuid.uuid4())
        self.root = storage_root / self.codebase_id

    def write(self, files: Mapping[str, bytes | str]) -> None:
        """Write `path -> contents` entries into the codebase."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                path.write_text(content, encoding="utf-8")
            else:
                path.write_bytes(content)

    def mkdir(self, relative: str) -> Path:
        path = self.root / relative
        path.mkdir(parents=True, exist_ok=True)
        return path

    def path(self, relative: str = "") -> Path:
        """Return the on-disk location of ``relative`` inside the codebase."""
        return self.root / relative if relative else self.root


__all__ = ["CodebaseBuilder"]
