"""Ephemeral upload sessions with time-based eviction."""

from __future__ import annotations

import logging
import secrets
import threading
import time
from typing import Callable, Dict, List, Sequence, Tuple

from docgrep.errors import SessionNotFoundError
from docgrep.models import DocumentLocation, UploadSession
from docgrep.sessions.storage import UploadStorage

LOGGER = logging.getLogger(__name__)


def new_session_id() -> str:
    return f"{time.time_ns():x}-{secrets.token_hex(8)}"


class UploadSessionStore:
    """Maps session ids to uploaded documents until their TTL runs out.

    Expired sessions are evicted by a background sweeper (see ``start``) and
    lazily on ``get``. Eviction drops the mapping entry and then deletes every
    document's stored bytes. A search that already holds a session's documents
    keeps its own reference; it is not interrupted by eviction.

    ``clock`` returns seconds and defaults to ``time.monotonic``; tests inject
    a fake one to expire sessions without waiting.
    """

    def __init__(
        self,
        storage: UploadStorage,
        *,
        ttl: float = 60 * 60,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.storage = storage
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def create(self, documents: Sequence[DocumentLocation]) -> str:
        with self._lock:
            session_id = new_session_id()
            while session_id in self._sessions:
                session_id = new_session_id()
            self._sessions[session_id] = UploadSession(
                session_id=session_id,
                documents=tuple(documents),
                created_at=self._clock(),
            )
        LOGGER.info("Created session %s with %s documents", session_id, len(documents))
        return session_id

    def get(self, session_id: str) -> Tuple[DocumentLocation, ...]:
        expired = None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and self._is_expired(session):
                expired = self._sessions.pop(session_id)
                session = None
        if expired is not None:
            self._release(expired, reason="expired")
        if session is None:
            raise SessionNotFoundError(session_id)
        return session.documents

    def delete(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        self._release(session, reason="deleted")
        return True

    def sweep(self) -> int:
        """Evict every expired session; returns how many were evicted."""
        with self._lock:
            expired = [s for s in self._sessions.values() if self._is_expired(s)]
            for session in expired:
                del self._sessions[session.session_id]
        for session in expired:
            self._release(session, reason="expired")
        return len(expired)

    def start(self) -> None:
        """Start the background sweeper thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="docgrep-session-sweeper", daemon=True
        )
        self._sweeper.start()

    def close(self) -> None:
        """Stop the sweeper and evict every remaining session."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None
        with self._lock:
            remaining: List[UploadSession] = list(self._sessions.values())
            self._sessions.clear()
        for session in remaining:
            self._release(session, reason="shutdown")

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            try:
                evicted = self.sweep()
            except Exception:
                LOGGER.exception("Session sweep failed")
                continue
            if evicted:
                LOGGER.info("Evicted %s expired sessions", evicted)

    def _is_expired(self, session: UploadSession) -> bool:
        return self._clock() - session.created_at >= self.ttl

    def _release(self, session: UploadSession, *, reason: str) -> None:
        for document in session.documents:
            self.storage.release(document)
        LOGGER.info("Session %s %s, released %s files", session.session_id, reason, len(session.documents))
