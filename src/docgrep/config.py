"""Application configuration defaults."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

DEFAULT_EXTENSIONS: Tuple[str, ...] = (".pdf",)


def _get_default_upload_dir() -> Path:
    """Per-process directory for uploaded batches, under the system temp dir."""
    return Path(tempfile.gettempdir()) / "docgrep-uploads" / str(os.getpid())


@dataclass(slots=True)
class AppConfig:
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    session_ttl: float = 60 * 60
    sweep_interval: float = 60.0
    extraction_timeout: float | None = 30.0
    max_workers: int | None = None
    upload_dir: Path | None = None
    max_upload_files: int = 1000
    max_upload_bytes: int = 100 * 1024 * 1024

    def normalized_extensions(self) -> Tuple[str, ...]:
        """Lower-cased, dot-prefixed extensions."""
        normalized = []
        for ext in self.extensions:
            ext = ext.strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = "." + ext
            if ext not in normalized:
                normalized.append(ext)
        return tuple(normalized) or DEFAULT_EXTENSIONS

    def resolve_upload_dir(self, base_dir: Path | None = None) -> Path:
        if self.upload_dir is None:
            return _get_default_upload_dir()
        if Path(self.upload_dir).is_absolute() or base_dir is None:
            return Path(self.upload_dir)
        return base_dir / self.upload_dir
