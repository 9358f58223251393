"""PDF text extraction.

Uses PyMuPDF (fitz) to pull raw page text. Extraction of a single document is
isolated: any fault, and any document that takes longer than the configured
ceiling, is reported as a failed ``ExtractionResult`` instead of raising.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Protocol

import fitz  # PyMuPDF

from docgrep.models import ExtractionResult

LOGGER = logging.getLogger(__name__)


class TextExtractor(Protocol):
    def extract(self, path: Path) -> ExtractionResult: ...


def read_pages(path: Path) -> List[str]:
    """Return the text of every page of a PDF, in page order.

    Pages that fail to render are logged and left out. Raises if the file
    cannot be opened at all.
    """
    doc = fitz.open(path)
    try:
        pages: List[str] = []
        for index in range(len(doc)):
            try:
                pages.append(doc[index].get_text() or "")
            except Exception as exc:
                LOGGER.warning("Failed to read page %s in %s: %s", index, path, exc)
        return pages
    finally:
        doc.close()


class PdfTextExtractor:
    """Turns a PDF path into an ``ExtractionResult``, never raising.

    Each extraction runs on its own daemon thread. When it exceeds ``timeout``
    the caller gets a failure right away, but the thread cannot be killed and
    keeps running until PyMuPDF returns. Those abandoned threads still use CPU,
    so a batch of pathological documents can run more extractions at once than
    the searcher's worker count. ``abandoned_count`` reports how many are
    still alive and every timeout logs it.
    """

    def __init__(self, *, timeout: float | None = 30.0) -> None:
        self.timeout = timeout
        self._abandoned: List[threading.Thread] = []
        self._lock = threading.Lock()

    @property
    def abandoned_count(self) -> int:
        """Timed-out extractions whose threads have not finished yet."""
        with self._lock:
            self._abandoned = [thread for thread in self._abandoned if thread.is_alive()]
            return len(self._abandoned)

    def extract(self, path: Path) -> ExtractionResult:
        outcome: dict[str, ExtractionResult] = {}

        def _run() -> None:
            try:
                outcome["result"] = ExtractionResult.success(read_pages(path))
            except Exception as exc:
                outcome["result"] = ExtractionResult.failure(str(exc) or type(exc).__name__)

        # Daemon, so a document that never finishes cannot keep the process alive.
        worker = threading.Thread(target=_run, name=f"extract-{Path(path).name}", daemon=True)
        worker.start()
        worker.join(self.timeout)

        if worker.is_alive():
            with self._lock:
                self._abandoned.append(worker)
            LOGGER.warning(
                "Extraction of %s timed out after %ss (%s timed-out extractions still running)",
                path,
                self.timeout,
                self.abandoned_count,
            )
            return ExtractionResult.failure(f"timed out after {self.timeout}s")

        result = outcome.get("result")
        if result is None:
            return ExtractionResult.failure("extractor exited without a result")
        if not result.ok:
            LOGGER.error("Error parsing PDF %s: %s", path, result.error)
        return result
