"""Stream stored codebases back as zip archives.

Everything that can fail before the first byte is produced (identifier,
path, existence) is checked in :meth:`ArchiveBuilder.open_archive` and turns
into a normal error response. Once :meth:`Archive.chunks` starts yielding the
response headers are committed: a walk or copy failure after that point is
logged and re-raised, and the client receives a truncated archive.
"""

from __future__ import annotations

import os
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List

from .config import DEFAULT_CHUNK_SIZE
from .errors import NotFound
from .logging import get_logger
from .models import ArchiveEntry
from .paths import PathResolver

logger = get_logger("archive")


class _StreamSink:
    """Write-only, unseekable target that hands written bytes back in chunks."""

    def __init__(self) -> None:
        self._pending: List[bytes] = []

    def write(self, data: bytes) -> int:
        self._pending.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._pending)
        self._pending.clear()
        return data


def _entry_name(path: Path, base: Path) -> str:
    # Zip entry names always use "/" regardless of the host separator.
    return path.relative_to(base).as_posix().replace("\\", "/")


def _raise_walk_error(error: OSError) -> None:
    raise error


def iter_entries(directory: Path, base: Path) -> Iterator[ArchiveEntry]:
    """Walk ``directory`` depth-first, naming entries relative to ``base``.

    Files are always yielded; a directory only when it is empty, since every
    other directory is implied by the files below it. Symlinks are skipped.
    A directory that cannot be listed raises instead of being left out.
    """
    for dirpath, dirnames, filenames in os.walk(directory, onerror=_raise_walk_error):
        current = Path(dirpath)
        dirnames[:] = sorted(
            name for name in dirnames if not (current / name).is_symlink()
        )
        files = sorted(name for name in filenames if not (current / name).is_symlink())

        if not dirnames and not files and current != base:
            yield ArchiveEntry(
                name=_entry_name(current, base) + "/", path=current, is_dir=True
            )

        for filename in files:
            path = current / filename
            yield ArchiveEntry(name=_entry_name(path, base), path=path, is_dir=False)


@dataclass
class Archive:
    """A validated archive request whose bytes are produced lazily."""

    codebase_id: str
    base: Path
    target: Path
    chunk_size: int = DEFAULT_CHUNK_SIZE
    compression: int = zipfile.ZIP_DEFLATED

    @property
    def filename(self) -> str:
        return f"{self.codebase_id}.zip"

    def entries(self) -> Iterator[ArchiveEntry]:
        if self.target.is_dir():
            yield from iter_entries(self.target, self.base)
            return
        yield ArchiveEntry(
            name=_entry_name(self.target, self.base), path=self.target, is_dir=False
        )

    def chunks(self) -> Iterator[bytes]:
        sink = _StreamSink()
        count = 0
        try:
            with zipfile.ZipFile(sink, mode="w", compression=self.compression) as archive:
                for entry in self.entries():
                    if entry.is_dir:
                        archive.mkdir(entry.name.rstrip("/"))
                    else:
                        yield from self._write_file(archive, sink, entry)
                    count += 1
                    pending = sink.drain()
                    if pending:
                        yield pending
            tail = sink.drain()
            if tail:
                yield tail
        except (OSError, ValueError, zipfile.LargeZipFile):
            logger.exception(
                "Error creating ZIP for codebase %s after %d entries",
                self.codebase_id,
                count,
            )
            raise
        logger.info(
            "Downloaded ZIP archive for codebase: %s (%d entries)",
            self.codebase_id,
            count,
        )

    def _write_file(
        self, archive: zipfile.ZipFile, sink: _StreamSink, entry: ArchiveEntry
    ) -> Iterator[bytes]:
        info = zipfile.ZipInfo.from_file(
            entry.path, arcname=entry.name, strict_timestamps=False
        )
        info.compress_type = self.compression
        with entry.path.open("rb") as source, archive.open(info, mode="w") as target:
            for chunk in iter(lambda: source.read(self.chunk_size), b""):
                target.write(chunk)
                pending = sink.drain()
                if pending:
                    yield pending


class ArchiveBuilder:
    """Validates archive requests against the storage root."""

    def __init__(
        self,
        resolver: PathResolver,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        compression: int = zipfile.ZIP_DEFLATED,
    ) -> None:
        self._resolver = resolver
        self._chunk_size = chunk_size
        self._compression = compression

    def open_archive(self, codebase_id: str, relative: str | None = None) -> Archive:
        """Return an archive of the whole codebase, or of one file or sub-directory."""
        base = self._resolver.codebase_dir(codebase_id)
        if not base.is_dir():
            raise NotFound("Codebase not found")

        target = base
        if relative:
            resolved = self._resolver.resolve(base.name, relative)
            if not resolved.absolute.exists():
                raise NotFound("File not found")
            target = resolved.absolute

        return Archive(
            codebase_id=base.name,
            base=base,
            target=target,
            chunk_size=self._chunk_size,
            compression=self._compression,
        )


__all__ = ["Archive", "ArchiveBuilder", "iter_entries"]
