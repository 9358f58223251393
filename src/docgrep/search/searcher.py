"""Corpus search pipeline: scan, extract, match, aggregate."""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from docgrep.errors import InvalidInputError, NotFoundError
from docgrep.ingestion.pdf_loader import TextExtractor
from docgrep.models import DocumentLocation, ExtractionResult, MatchRecord, SearchReport
from docgrep.search.matcher import matches
from docgrep.utils.files import scan_directory

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

NO_DOCUMENTS_MESSAGE = "No PDF files found"


def validate_query(query: Optional[str]) -> str:
    """Reject a missing or blank query before any work starts."""
    if query is None or not query.strip():
        raise InvalidInputError("searchText is required")
    return query


def resolve_root(folder: Optional[str | Path]) -> Path:
    """Check that ``folder`` names an existing directory."""
    if folder is None or not str(folder).strip():
        raise InvalidInputError("folderPath is required")
    root = Path(str(folder).strip()).expanduser()
    try:
        if not root.exists():
            raise NotFoundError(f"Folder not found: {folder}")
        if not root.is_dir():
            raise NotFoundError("The provided path is not a directory")
    except OSError as exc:
        raise NotFoundError(f"Folder not found: {folder}") from exc
    return root


class SearchProgress:
    """Thread-safe processed/total counter feeding an optional callback."""

    def __init__(self, total: int, callback: Optional[ProgressCallback] = None) -> None:
        self.total = total
        self.processed = 0
        self._callback = callback
        self._lock = threading.Lock()

    def advance(self) -> int:
        with self._lock:
            self.processed += 1
            processed = self.processed
            if self._callback is not None:
                self._callback(processed, self.total)
        return processed


class CorpusSearcher:
    """Runs one query over a list of documents."""

    def __init__(self, extractor: TextExtractor, *, max_workers: int | None = None) -> None:
        self.extractor = extractor
        self.max_workers = max_workers

    def _worker_count(self, document_count: int) -> int:
        limit = self.max_workers or os.cpu_count() or 1
        return max(1, min(limit, document_count))

    def search(
        self,
        documents: Sequence[DocumentLocation],
        query: str,
        *,
        progress: Optional[ProgressCallback] = None,
        root: Optional[Path] = None,
    ) -> SearchReport:
        query = validate_query(query)
        started = time.perf_counter()
        documents = list(documents)

        if not documents:
            return SearchReport(
                query_text=query,
                total_documents=0,
                message=NO_DOCUMENTS_MESSAGE,
                elapsed_seconds=time.perf_counter() - started,
                root=root,
            )

        tracker = SearchProgress(len(documents), progress)

        def _process(document: DocumentLocation) -> Optional[bool]:
            LOGGER.debug("Processing %s", document.storage_location)
            try:
                result = self.extractor.extract(document.storage_location)
            except Exception as exc:
                LOGGER.exception("Extractor raised on %s", document.storage_location)
                result = ExtractionResult.failure(str(exc) or type(exc).__name__)
            processed = tracker.advance()
            LOGGER.info("Processed %s/%s: %s", processed, tracker.total, document.original_name)
            if not result.ok:
                LOGGER.warning(
                    "Treating %s as non-matching: %s", document.original_name, result.error
                )
                return None
            return matches(result.pages, query)

        # map() yields in submission order, so matches keep the input order.
        with ThreadPoolExecutor(
            max_workers=self._worker_count(len(documents)), thread_name_prefix="docgrep-search"
        ) as executor:
            outcomes = list(executor.map(_process, documents))

        report = SearchReport(query_text=query, total_documents=len(documents), root=root)
        for document, outcome in zip(documents, outcomes):
            if outcome is None:
                report.failed_documents += 1
            elif outcome:
                report.matches.append(_to_match(document))
        report.elapsed_seconds = time.perf_counter() - started

        LOGGER.info(
            "Search complete. Found %s matching of %s documents (%s failed)",
            report.matching_count,
            report.total_documents,
            report.failed_documents,
        )
        return report

    def search_directory(
        self,
        folder: Optional[str | Path],
        query: Optional[str],
        *,
        extensions: Sequence[str] = (".pdf",),
        progress: Optional[ProgressCallback] = None,
    ) -> SearchReport:
        """Validate inputs, scan ``folder`` and search every document found."""
        query = validate_query(query)
        root = resolve_root(folder)
        LOGGER.info("Searching for documents in: %s", root)
        documents = scan_directory(root, extensions)
        LOGGER.info("Found %s documents", len(documents))
        return self.search(documents, query, progress=progress, root=root)


def _to_match(document: DocumentLocation) -> MatchRecord:
    return MatchRecord(
        display_name=document.original_name,
        identifier=Path(document.storage_location).as_posix(),
        size_bytes=document.size_bytes,
        relative_path=document.relative_path,
    )
