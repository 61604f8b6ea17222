"""Core data models shared across codestore components."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, List, Optional


@dataclass
class ResolvedPath:
    """A caller path that passed validation and root containment."""

    codebase_id: str
    relative: str
    absolute: Path


@dataclass
class IncomingFile:
    """One file part of an upload batch."""

    filename: str
    stream: BinaryIO
    relative_path: Optional[str] = None


@dataclass
class SkippedFile:
    """A file of an upload batch that was not stored."""

    name: str
    reason: str


@dataclass
class UploadSummary:
    """Outcome of a batch where at least one file was stored."""

    codebase_id: str
    stored: List[str] = field(default_factory=list)
    skipped: List[SkippedFile] = field(default_factory=list)
    total_bytes: int = 0

    @property
    def file_count(self) -> int:
        return len(self.stored)

    @property
    def message(self) -> str:
        return (
            f"Successfully stored {self.file_count} files "
            f"({self.total_bytes} bytes total)"
        )


@dataclass
class FileContent:
    """Inline view of a stored file for the content endpoint."""

    file_path: str
    size: int
    modified: datetime
    is_text: bool
    content: str
    download_url: Optional[str] = None


@dataclass
class Download:
    """A stored file ready to be streamed back verbatim."""

    filename: str
    size: int
    chunks: Callable[[], Iterator[bytes]]


@dataclass
class ArchiveEntry:
    """One record produced by the codebase walk."""

    name: str
    path: Path
    is_dir: bool
