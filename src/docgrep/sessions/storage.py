"""On-disk storage for uploaded documents."""

from __future__ import annotations

import logging
import os
import secrets
import shutil
import time
from pathlib import Path
from typing import BinaryIO, Union

from docgrep.models import DocumentLocation
from docgrep.utils.files import safe_file_name

LOGGER = logging.getLogger(__name__)


class UploadStorage:
    """One file per uploaded document under a directory this storage owns.

    ``parent`` may be a directory the user already has; uploads go into a
    fresh ``docgrep-<pid>-<token>`` subdirectory of it, and ``cleanup`` only
    removes that subdirectory.
    """

    def __init__(self, parent: Path) -> None:
        self.parent = Path(parent)
        self.root = self.parent / f"docgrep-{os.getpid()}-{secrets.token_hex(4)}"

    def save(self, original_name: str, source: Union[bytes, BinaryIO]) -> DocumentLocation:
        """Store ``source`` (bytes or a readable binary file) and describe where it went."""
        self.root.mkdir(parents=True, exist_ok=True)
        stored_name = f"{time.time_ns()}-{secrets.token_hex(6)}-{safe_file_name(original_name)}"
        target = self.root / stored_name
        if isinstance(source, bytes):
            target.write_bytes(source)
        else:
            with target.open("wb") as handle:
                shutil.copyfileobj(source, handle, 1 << 20)
        size = target.stat().st_size
        LOGGER.debug("Stored upload %s as %s", original_name, target)
        return DocumentLocation(
            original_name=Path(original_name.replace("\\", "/")).name or stored_name,
            storage_location=target,
            size_bytes=size,
        )

    def release(self, location: DocumentLocation) -> None:
        """Delete the stored bytes behind ``location``; already-gone is fine."""
        try:
            Path(location.storage_location).unlink(missing_ok=True)
        except OSError as exc:
            LOGGER.error("Failed to delete %s: %s", location.storage_location, exc)

    def cleanup(self) -> None:
        """Remove this storage's own directory and everything left in it."""
        if self.root.exists():
            shutil.rmtree(self.root, ignore_errors=True)
