"""Serve single stored files as raw streams or inline JSON content."""

from __future__ import annotations

import os
import stat
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Iterator
from urllib.parse import quote

from .classifier import is_text
from .config import DEFAULT_CHUNK_SIZE
from .errors import IOFailure, IsDirectory, NotFound
from .logging import get_logger
from .models import Download, FileContent, ResolvedPath
from .paths import PathResolver

logger = get_logger("streamer")

BINARY_PLACEHOLDER = "Binary file - use download endpoint to get the file"


def iter_file(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the bytes of ``path``; the handle is closed on every exit path."""
    try:
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(chunk_size), b""):
                yield chunk
    except OSError:
        # Headers are already sent; the transport can only drop the connection.
        logger.exception("Error streaming file %s", path)
        raise


def download_url(codebase_id: str, relative: str) -> str:
    return f"/download/{codebase_id}?file={quote(relative, safe='/')}"


class FileStreamer:
    """Resolves one stored file and exposes it for download or inline display."""

    def __init__(
        self,
        resolver: PathResolver,
        *,
        classifier: Callable[[bytes], bool] = is_text,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._resolver = resolver
        self._classifier = classifier
        self._chunk_size = chunk_size

    def open_download(self, codebase_id: str, relative: str | None) -> Download:
        """Check the file eagerly so failures surface before any header is sent."""
        resolved = self._resolver.resolve(codebase_id, relative)
        stat_result = self._stat_file(resolved, "Cannot download directory")
        if not os.access(resolved.absolute, os.R_OK):
            raise IOFailure("Failed to open file")

        path = resolved.absolute
        chunk_size = self._chunk_size

        def _chunks() -> Iterator[bytes]:
            yield from iter_file(path, chunk_size)
            logger.info(
                "Downloaded file: %s from codebase %s",
                resolved.relative,
                resolved.codebase_id,
            )

        return Download(
            filename=path.name,
            size=stat_result.st_size,
            chunks=_chunks,
        )

    def read_content(self, codebase_id: str, relative: str | None) -> FileContent:
        resolved = self._resolver.resolve(codebase_id, relative)
        logger.debug(
            "Requesting content for file: %s in codebase: %s",
            resolved.relative,
            resolved.codebase_id,
        )
        stat_result = self._stat_file(resolved, "Cannot read directory as file")
        try:
            data = resolved.absolute.read_bytes()
        except OSError as exc:
            logger.error("Failed to read %s: %s", resolved.absolute, exc)
            raise IOFailure("Failed to read file") from exc

        modified = datetime.fromtimestamp(stat_result.st_mtime, tz=UTC)
        if self._classifier(data):
            return FileContent(
                file_path=resolved.relative,
                size=stat_result.st_size,
                modified=modified,
                is_text=True,
                content=data.decode("utf-8"),
            )
        return FileContent(
            file_path=resolved.relative,
            size=stat_result.st_size,
            modified=modified,
            is_text=False,
            content=BINARY_PLACEHOLDER,
            download_url=download_url(resolved.codebase_id, resolved.relative),
        )

    def _stat_file(self, resolved: ResolvedPath, directory_message: str) -> os.stat_result:
        try:
            stat_result = resolved.absolute.stat()
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFound("File not found") from exc
        except OSError as exc:
            logger.error("Failed to stat %s: %s", resolved.absolute, exc)
            raise IOFailure("Failed to read file metadata") from exc
        if stat.S_ISDIR(stat_result.st_mode):
            raise IsDirectory(directory_message)
        return stat_result


__all__ = ["BINARY_PLACEHOLDER", "FileStreamer", "download_url", "iter_file"]
