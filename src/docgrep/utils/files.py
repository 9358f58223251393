"""Utility helpers for working with files."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Iterable, List, Sequence

from docgrep.models import DocumentLocation

LOGGER = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def has_supported_extension(name: str, extensions: Iterable[str]) -> bool:
    """Case-insensitive check of ``name``'s suffix against ``extensions``."""
    suffix = Path(name).suffix.lower()
    return bool(suffix) and suffix in {ext.lower() for ext in extensions}


def scan_directory(root: Path, extensions: Sequence[str] = (".pdf",)) -> List[DocumentLocation]:
    """Collect every supported document below ``root``.

    Directories that cannot be listed are logged and skipped; their siblings
    are still scanned. Symlinked directories are not followed. Traversal uses
    an explicit stack, so nesting depth is not bounded by the recursion limit.
    """
    root = Path(root)
    extensions = tuple(ext.lower() for ext in extensions)
    found: List[DocumentLocation] = []
    pending: List[Path] = [root]

    while pending:
        directory = pending.pop()
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as exc:
            LOGGER.warning("Error reading directory %s: %s", directory, exc)
            continue

        subdirectories: List[Path] = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirectories.append(Path(entry.path))
                    continue
                if not entry.is_file() or not has_supported_extension(entry.name, extensions):
                    continue
            except OSError as exc:
                LOGGER.warning("Skipping %s: %s", entry.path, exc)
                continue
            found.append(_to_location(entry, root))

        # Reversed so subdirectories are popped in name order.
        pending.extend(reversed(subdirectories))

    return found


def _to_location(entry: os.DirEntry, root: Path) -> DocumentLocation:
    path = Path(entry.path)
    try:
        size = entry.stat().st_size
    except OSError:
        size = None
    return DocumentLocation(
        original_name=entry.name,
        storage_location=path,
        size_bytes=size,
        relative_path=path.relative_to(root).as_posix(),
    )


def safe_file_name(name: str) -> str:
    """Reduce a client-supplied file name to a safe basename."""
    base = Path(name.replace("\\", "/")).name
    cleaned = _UNSAFE_NAME_CHARS.sub("_", base).strip("._")
    return cleaned or "document"
