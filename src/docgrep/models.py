"""Core DocGrep data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple


@dataclass(slots=True, frozen=True)
class DocumentLocation:
    """Where a document's bytes live, plus what to call it in results."""

    original_name: str
    storage_location: Path
    size_bytes: Optional[int] = None
    relative_path: Optional[str] = None


@dataclass(slots=True, frozen=True)
class ExtractionResult:
    """Page texts of one document, or the reason extraction failed."""

    pages: Tuple[str, ...] = ()
    error: Optional[str] = None

    @classmethod
    def success(cls, pages: Sequence[str]) -> "ExtractionResult":
        return cls(pages=tuple(pages))

    @classmethod
    def failure(cls, reason: str) -> "ExtractionResult":
        return cls(error=reason or "unknown error")

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True, frozen=True)
class MatchRecord:
    """A document that contained the query."""

    display_name: str
    identifier: str
    size_bytes: Optional[int] = None
    relative_path: Optional[str] = None


@dataclass(slots=True)
class SearchReport:
    """Aggregate outcome of one search call."""

    query_text: str
    total_documents: int
    matches: List[MatchRecord] = field(default_factory=list)
    failed_documents: int = 0
    message: Optional[str] = None
    elapsed_seconds: float = 0.0
    root: Optional[Path] = None

    @property
    def matching_count(self) -> int:
        return len(self.matches)


@dataclass(slots=True, frozen=True)
class UploadSession:
    """A batch of uploaded documents held under one opaque id."""

    session_id: str
    documents: Tuple[DocumentLocation, ...]
    created_at: float
