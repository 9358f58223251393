"""Shared fixtures for DocGrep tests."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from docgrep.models import ExtractionResult


class TextFileExtractor:
    """Stand-in for the PDF extractor that reads test files as plain text.

    Pages are separated by form feeds. Files starting with ``CORRUPT`` fail
    like an unparseable PDF would.
    """

    def __init__(self) -> None:
        self.calls: List[Path] = []

    def extract(self, path: Path) -> ExtractionResult:
        self.calls.append(Path(path))
        try:
            content = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            return ExtractionResult.failure(str(exc))
        if content.startswith("CORRUPT"):
            return ExtractionResult.failure("invalid PDF structure")
        if not content:
            return ExtractionResult.success([])
        return ExtractionResult.success(content.split("\f"))


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def extractor() -> TextFileExtractor:
    return TextFileExtractor()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """The /docs example corpus: two PDFs and a text file."""
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "a.pdf").write_text("invoice 2023")
    (docs / "b.pdf").write_text("receipt 2024")
    (docs / "notes.txt").write_text("2023 notes")
    return docs
