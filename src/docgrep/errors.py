"""Error types surfaced to DocGrep callers.

Every error carries a ``kind`` that clients can branch on and the HTTP status
the web layer answers with. Per-document extraction failures and unreadable
subdirectories are not errors at this level: they are absorbed by the
searcher and the scanner.
"""

from __future__ import annotations


class DocGrepError(Exception):
    """Base class for errors reported back to the caller."""

    kind = "InternalError"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(DocGrepError):
    """Missing or empty query, path or session id."""

    kind = "InvalidInput"
    status_code = 400


class UploadTooLargeError(InvalidInputError):
    """An uploaded batch exceeds the configured count or size limits."""

    kind = "UploadTooLarge"
    status_code = 413


class NotFoundError(DocGrepError):
    """The folder to search does not exist or is not a directory."""

    kind = "NotFound"
    status_code = 400


class SessionNotFoundError(NotFoundError):
    """Unknown or expired upload session."""

    kind = "SessionExpiredOrInvalid"
    status_code = 400

    def __init__(self, session_id: str) -> None:
        super().__init__("Session expired or invalid. Please upload the files again.")
        self.session_id = session_id


class InternalError(DocGrepError):
    """Unexpected fault while orchestrating a search."""
