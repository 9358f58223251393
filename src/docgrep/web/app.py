"""FastAPI application exposing DocGrep over HTTP."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, List, Optional

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from docgrep.config import AppConfig
from docgrep.errors import (
    DocGrepError,
    InternalError,
    InvalidInputError,
    SessionNotFoundError,
    UploadTooLargeError,
)
from docgrep.ingestion.pdf_loader import PdfTextExtractor, TextExtractor
from docgrep.models import DocumentLocation, SearchReport
from docgrep.search.searcher import CorpusSearcher, validate_query
from docgrep.sessions.storage import UploadStorage
from docgrep.sessions.store import UploadSessionStore
from docgrep.utils.files import has_supported_extension

LOGGER = logging.getLogger(__name__)


class SearchPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    folder_path: Optional[str] = Field(default=None, alias="folderPath")
    search_text: Optional[str] = Field(default=None, alias="searchText")


class SessionSearchPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    search_text: Optional[str] = Field(default=None, alias="searchText")


def _error_response(exc: DocGrepError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, "kind": exc.kind},
    )


def _validation_message(exc: RequestValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = str(error.get("msg", "invalid value"))
        problems.append(f"{location}: {message}" if location else message)
    if not problems:
        return "Invalid request"
    return "Invalid request: " + "; ".join(problems)


def _report_summary(report: SearchReport) -> dict[str, Any]:
    summary: dict[str, Any] = {
        "success": True,
        "searchText": report.query_text,
        "totalPdfs": report.total_documents,
        "matchingPdfs": report.matching_count,
        "failedPdfs": report.failed_documents,
        "processingTime": round(report.elapsed_seconds, 3),
    }
    if report.message:
        summary["message"] = report.message
    return summary


async def _run_search(job: Callable[[], SearchReport]) -> SearchReport:
    """Run a blocking search off the event loop; unexpected faults become InternalError."""
    try:
        return await asyncio.to_thread(job)
    except DocGrepError:
        raise
    except Exception as exc:
        LOGGER.exception("Search error: %s", exc)
        raise InternalError(f"An error occurred during the search: {exc}") from exc


def _release_all(storage: UploadStorage, locations: List[DocumentLocation]) -> None:
    for location in locations:
        storage.release(location)


def _log_progress(processed: int, total: int) -> None:
    LOGGER.debug("Search progress %s/%s", processed, total)


def create_app(
    config: AppConfig | None = None,
    *,
    extractor: TextExtractor | None = None,
    clock: Callable[[], float] | None = None,
) -> FastAPI:
    """Build the API with its own searcher and upload session store."""
    config = config or AppConfig()
    storage = UploadStorage(config.resolve_upload_dir())
    store_kwargs: dict[str, Any] = {"ttl": config.session_ttl, "sweep_interval": config.sweep_interval}
    if clock is not None:
        store_kwargs["clock"] = clock
    sessions = UploadSessionStore(storage, **store_kwargs)
    searcher = CorpusSearcher(
        extractor or PdfTextExtractor(timeout=config.extraction_timeout),
        max_workers=config.max_workers,
    )
    extensions = config.normalized_extensions()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        sessions.start()
        LOGGER.info("Upload storage at %s, session TTL %ss", storage.root, config.session_ttl)
        try:
            yield
        finally:
            sessions.close()
            storage.cleanup()

    app = FastAPI(title="DocGrep", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.config = config
    app.state.storage = storage
    app.state.sessions = sessions
    app.state.searcher = searcher

    @app.exception_handler(DocGrepError)
    async def handle_docgrep_error(_: Request, exc: DocGrepError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(InvalidInputError(_validation_message(exc)))

    @app.post("/api/search")
    async def search_by_path(payload: SearchPayload) -> dict[str, Any]:
        if not payload.folder_path or not payload.search_text:
            raise InvalidInputError("Both folderPath and searchText are required")
        validate_query(payload.search_text)

        report = await _run_search(
            lambda: searcher.search_directory(
                payload.folder_path,
                payload.search_text,
                extensions=extensions,
                progress=_log_progress,
            )
        )
        summary = _report_summary(report)
        summary["folderPath"] = payload.folder_path
        summary["results"] = [
            {
                "fileName": match.display_name,
                "filePath": match.identifier,
                "relativePath": match.relative_path,
            }
            for match in report.matches
        ]
        return summary

    @app.post("/api/upload")
    async def upload_batch(files: List[UploadFile] = File(default=[])) -> dict[str, Any]:
        if not files:
            raise InvalidInputError("No files uploaded")
        if len(files) > config.max_upload_files:
            raise UploadTooLargeError(
                f"Too many files: {len(files)} (limit {config.max_upload_files})"
            )
        for upload in files:
            if not has_supported_extension(upload.filename or "", extensions):
                raise InvalidInputError(
                    f"Unsupported file type: {upload.filename}. Only {', '.join(extensions)} files are allowed"
                )

        saved: List[DocumentLocation] = []
        try:
            for upload in files:
                too_large = UploadTooLargeError(
                    f"File too large: {upload.filename} (limit {config.max_upload_bytes} bytes)"
                )
                if upload.size is not None and upload.size > config.max_upload_bytes:
                    raise too_large
                location = await asyncio.to_thread(
                    storage.save, upload.filename or "document.pdf", upload.file
                )
                saved.append(location)
                if (location.size_bytes or 0) > config.max_upload_bytes:
                    raise too_large
        except Exception:
            await asyncio.to_thread(_release_all, storage, saved)
            raise
        finally:
            for upload in files:
                await upload.close()

        session_id = sessions.create(saved)
        return {
            "success": True,
            "sessionId": session_id,
            "filesCount": len(saved),
            "files": [{"name": doc.original_name, "size": doc.size_bytes} for doc in saved],
            "expiresIn": config.session_ttl,
        }

    @app.post("/api/search-session")
    async def search_in_session(payload: SessionSearchPayload) -> dict[str, Any]:
        if not payload.session_id or not payload.search_text:
            raise InvalidInputError("Both sessionId and searchText are required")
        validate_query(payload.search_text)
        # get() may evict an expired session, which deletes files.
        documents = await asyncio.to_thread(sessions.get, payload.session_id)

        report = await _run_search(
            lambda: searcher.search(documents, payload.search_text, progress=_log_progress)
        )
        summary = _report_summary(report)
        summary["results"] = [
            {"fileName": match.display_name, "fileSize": match.size_bytes}
            for match in report.matches
        ]
        return summary

    @app.delete("/api/session/{session_id}")
    async def delete_session(session_id: str) -> dict[str, Any]:
        if not await asyncio.to_thread(sessions.delete, session_id):
            raise SessionNotFoundError(session_id)
        return {"success": True, "sessionId": session_id}

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "OK",
            "message": "PDF Search Server is running",
            "activeSessions": len(sessions),
        }

    return app


app = create_app()
