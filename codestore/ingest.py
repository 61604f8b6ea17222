"""Persist upload batches under a codebase directory."""

from __future__ import annotations

import os
import posixpath
import tempfile
from pathlib import Path
from typing import BinaryIO, Iterable, List

from .config import DEFAULT_CHUNK_SIZE
from .errors import AllUploadsFailed, InvalidPath
from .logging import get_logger
from .models import IncomingFile, SkippedFile, UploadSummary
from .paths import PathResolver

logger = get_logger("ingest")

_REJECTED_BASENAMES = {"", ".", ".."}
_FILE_MODE = 0o644


def destination_for(item: IncomingFile) -> str:
    """Return the caller-intended relative path of an upload part."""
    if item.relative_path:
        return item.relative_path.replace("\\", "/")
    return posixpath.basename((item.filename or "").replace("\\", "/"))


class UploadIngester:
    """Writes each part of a batch independently; one failure never aborts the rest."""

    def __init__(self, resolver: PathResolver, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._resolver = resolver
        self._chunk_size = chunk_size

    def ingest(self, codebase_id: str, parts: Iterable[IncomingFile]) -> UploadSummary:
        codebase_dir = self._resolver.codebase_dir(codebase_id)
        canonical_id = codebase_dir.name
        summary = UploadSummary(codebase_id=canonical_id)
        created: List[Path] = []

        for item in parts:
            destination = destination_for(item)
            label = destination or item.filename or "<unnamed>"

            if posixpath.basename(destination) in _REJECTED_BASENAMES:
                logger.warning("Invalid filename: %r", item.filename)
                summary.skipped.append(SkippedFile(name=label, reason="invalid filename"))
                continue

            try:
                resolved = self._resolver.resolve(canonical_id, destination)
            except InvalidPath as exc:
                logger.warning("Invalid path (directory traversal attempt): %r", destination)
                summary.skipped.append(SkippedFile(name=label, reason=exc.message))
                continue

            try:
                written = self._write(resolved.absolute, item.stream, created)
            except OSError as exc:
                logger.error("Error writing file %s: %s", resolved.absolute, exc)
                summary.skipped.append(SkippedFile(name=resolved.relative, reason=str(exc)))
                continue

            summary.total_bytes += written
            summary.stored.append(resolved.relative)
            logger.info("Stored file: %s (%d bytes)", resolved.relative, written)

        if not summary.stored:
            self._rollback(created)
            raise AllUploadsFailed(
                "No valid files were stored",
                skipped=[skipped.name for skipped in summary.skipped],
            )

        logger.info(
            "Files stored for codebase %s: %d files, %d bytes",
            canonical_id,
            summary.file_count,
            summary.total_bytes,
        )
        return summary

    def _write(self, target: Path, source: BinaryIO, created: List[Path]) -> int:
        missing = []
        for directory in (target.parent, *target.parent.parents):
            if directory.exists():
                break
            missing.append(directory)
        target.parent.mkdir(parents=True, exist_ok=True)
        created.extend(missing)
        if target.is_dir():
            raise IsADirectoryError(f"Destination is a directory: {target}")

        # The temp file shares the target directory so os.replace stays atomic.
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".part", dir=target.parent
        )
        temp_path = Path(temp_name)
        written = 0
        try:
            with os.fdopen(fd, "wb") as handle:
                for chunk in iter(lambda: source.read(self._chunk_size), b""):
                    handle.write(chunk)
                    written += len(chunk)
            os.chmod(temp_path, _FILE_MODE)
            os.replace(temp_path, target)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise
        return written

    def _rollback(self, created: List[Path]) -> None:
        # rmdir only removes empty directories; anything another request
        # stored in the meantime keeps its directory alive.
        for directory in sorted(set(created), key=lambda path: len(path.parts), reverse=True):
            try:
                directory.rmdir()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.info("Kept directory %s after failed upload: %s", directory, exc)
            else:
                logger.info("Removed empty directory %s after failed upload", directory)


__all__ = ["UploadIngester", "destination_for"]
