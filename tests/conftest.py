from __future__ import annotations

import uuid
from pathlib import Path

import pytest

from codestore.paths import PathResolver
from tests._fixtures.codebase_builder import CodebaseBuilder


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def resolver(storage_root: Path) -> PathResolver:
    return PathResolver(storage_root)


@pytest.fixture
def codebase_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def codebase(storage_root: Path, codebase_id: str) -> CodebaseBuilder:
    """Provide a builder for a codebase stored under the test storage root."""
    return CodebaseBuilder(storage_root, codebase_id)
