"""FastAPI application exposing the codestore HTTP surface."""

from __future__ import annotations

import asyncio
import functools
from datetime import datetime
from typing import Any, Callable, List, Optional, TypeVar
from urllib.parse import quote

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel
from starlette.datastructures import FormData, Headers, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .. import __version__
from ..archive import ArchiveBuilder
from ..config import ServiceConfig, ensure_storage_root, load_config
from ..errors import StorageError, UploadParseFailure
from ..ingest import UploadIngester
from ..logging import get_logger
from ..models import IncomingFile
from ..paths import PathResolver
from ..streamer import FileStreamer

logger = get_logger("service")

_T = TypeVar("_T")

UPLOAD_TOO_LARGE = "File too large or invalid form data"


class StoreResponse(BaseModel):
    success: bool
    message: str
    file_count: int
    total_bytes: int
    skipped: List[str] = []


class ContentResponse(BaseModel):
    success: bool
    file_path: str
    size: int
    is_text: bool
    modified: datetime
    content: str
    download_url: Optional[str] = None


class HealthResponse(BaseModel):
    status: str


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": message}
    )


def content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


class BodySizeLimitMiddleware:
    """Rejects request bodies above ``max_body_size`` before they are processed."""

    def __init__(self, app: ASGIApp, max_body_size: int) -> None:
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = Headers(scope=scope).get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_body_size:
            logger.warning(
                "Rejected %s %s: declared body of %s bytes exceeds %d",
                scope.get("method"),
                scope.get("path"),
                declared,
                self.max_body_size,
            )
            response = _error_response(400, UPLOAD_TOO_LARGE)
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    raise UploadParseFailure(UPLOAD_TOO_LARGE)
            return message

        await self.app(scope, limited_receive, send)


async def _run_blocking(func: Callable[..., _T], *args: Any) -> _T:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args))


async def _read_form(request: Request, max_files: int) -> FormData:
    try:
        return await request.form(max_files=max_files, max_fields=max_files + 1)
    except (StarletteHTTPException, MultiPartException) as exc:
        logger.warning("Failed to parse multipart body: %s", exc)
        raise UploadParseFailure(UPLOAD_TOO_LARGE) from exc


def _incoming_files(form: FormData) -> List[IncomingFile]:
    parts: List[IncomingFile] = []
    for value in form.getlist("files"):
        if not isinstance(value, UploadFile):
            continue
        filename = value.filename or ""
        explicit = form.get(f"path_{filename}")
        parts.append(
            IncomingFile(
                filename=filename,
                stream=value.file,
                relative_path=explicit if isinstance(explicit, str) else None,
            )
        )
    return parts


def create_app(config: ServiceConfig | None = None) -> FastAPI:
    """Create the FastAPI application bound to one storage root."""
    config = config or load_config()
    root = ensure_storage_root(config)

    resolver = PathResolver(root)
    ingester = UploadIngester(resolver, chunk_size=config.chunk_size)
    streamer = FileStreamer(resolver, chunk_size=config.chunk_size)
    archiver = ArchiveBuilder(resolver, chunk_size=config.chunk_size)

    app = FastAPI(title="Codestore Service", version=__version__)
    app.add_middleware(BodySizeLimitMiddleware, max_body_size=config.max_upload_bytes)
    app.state.config = config
    app.state.storage_root = root

    @app.exception_handler(StorageError)
    async def storage_error_handler(_: Request, exc: StorageError) -> JSONResponse:
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error_response(400, "Invalid request")

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    async def _store(codebase_id: Optional[str], request: Request) -> StoreResponse:
        form = await _read_form(request, config.max_files)
        try:
            if codebase_id is None:
                field = form.get("codebase_id")
                codebase_id = field if isinstance(field, str) else None
            canonical_id = resolver.validate_codebase_id(codebase_id)

            parts = _incoming_files(form)
            if not parts:
                raise UploadParseFailure("No files provided")

            summary = await _run_blocking(ingester.ingest, canonical_id, parts)
        finally:
            await form.close()

        return StoreResponse(
            success=True,
            message=summary.message,
            file_count=summary.file_count,
            total_bytes=summary.total_bytes,
            skipped=[skipped.name for skipped in summary.skipped],
        )

    @app.post("/store", response_model=StoreResponse)
    async def store_files(request: Request) -> StoreResponse:
        return await _store(None, request)

    @app.post("/upload/{codebase_id}", response_model=StoreResponse)
    async def upload_files(codebase_id: str, request: Request) -> StoreResponse:
        return await _store(codebase_id, request)

    @app.get(
        "/content/{codebase_id}",
        response_model=ContentResponse,
        response_model_exclude_none=True,
    )
    async def get_file_content(
        codebase_id: str, file: Optional[str] = None
    ) -> ContentResponse:
        content = await _run_blocking(streamer.read_content, codebase_id, file)
        return ContentResponse(
            success=True,
            file_path=content.file_path,
            size=content.size,
            is_text=content.is_text,
            modified=content.modified,
            content=content.content,
            download_url=content.download_url,
        )

    async def _download(codebase_id: str, file: Optional[str]) -> StreamingResponse:
        download = await _run_blocking(streamer.open_download, codebase_id, file)
        return StreamingResponse(
            download.chunks(),
            media_type="application/octet-stream",
            headers={
                "Content-Length": str(download.size),
                "Content-Disposition": content_disposition(download.filename),
            },
        )

    @app.get("/download/{codebase_id}")
    async def download_file(
        codebase_id: str, file: Optional[str] = None
    ) -> StreamingResponse:
        return await _download(codebase_id, file)

    @app.get("/download/{codebase_id}/{file_path:path}")
    async def download_file_by_path(
        codebase_id: str, file_path: str
    ) -> StreamingResponse:
        return await _download(codebase_id, file_path)

    async def _zip(codebase_id: str, file: Optional[str]) -> StreamingResponse:
        archive = await _run_blocking(archiver.open_archive, codebase_id, file)
        return StreamingResponse(
            archive.chunks(),
            media_type="application/zip",
            headers={"Content-Disposition": f'attachment; filename="{archive.filename}"'},
        )

    @app.get("/zip/{codebase_id}")
    async def download_zip(
        codebase_id: str, file: Optional[str] = None
    ) -> StreamingResponse:
        return await _zip(codebase_id, file)

    @app.get("/download-zip/{codebase_id}")
    async def download_zip_alias(
        codebase_id: str, file: Optional[str] = None
    ) -> StreamingResponse:
        return await _zip(codebase_id, file)

    logger.info("Storage directory: %s", root)
    return app


def run_service(config: ServiceConfig) -> None:  # pragma: no cover - integration path
    import uvicorn

    app = create_app(config)
    logger.info("Codestore starting on %s:%d", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)
