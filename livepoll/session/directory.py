"""
Session Directory - Registry of live sessions.

LIFECYCLE:
1. Presenter creates a session -> fresh code allocated, session registered
2. Participants find it by code; connections find it by identity
3. Presenter ends it -> is_active=False, still registered and readable
4. Removal (explicit, or reaping of long-ended sessions) frees the code

PERSISTENCE RULES:
- In-memory only, nothing survives a restart
- A code is never reused while its session is registered
- Sessions never move between codes

The directory is an ordinary object passed to whoever needs it;
there is no module-level registry.
"""

from __future__ import annotations
from typing import Iterator
import logging
import random
import time

from .codes import allocate_code
from .engine import DEFAULT_SESSION_NAME, Session

logger = logging.getLogger(__name__)


class SessionDirectory:
    """
    Maps codes to sessions.

    Responsibilities:
    - Create sessions with unique codes
    - Look sessions up by code or by connection identity
    - Remove sessions and reap ended ones
    """

    def __init__(
        self,
        accept_late_submissions: bool = True,
        rng: random.Random | None = None,
    ):
        self._sessions: dict[str, Session] = {}
        self._accept_late_submissions = accept_late_submissions
        self._rng = rng

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def __contains__(self, code: str) -> bool:
        return code in self._sessions

    def codes(self) -> set[str]:
        """Codes currently registered."""
        return set(self._sessions)

    def create(self, name: str | None, presenter_id: str) -> Session:
        """
        Create and register a new session.

        Args:
            name: Session title (defaults to "Untitled Session")
            presenter_id: Connection identity of the creator

        Returns:
            The registered Session
        """
        code = allocate_code(self._sessions.keys(), rng=self._rng)
        session = Session(
            code=code,
            presenter_id=presenter_id,
            name=name or DEFAULT_SESSION_NAME,
            accept_late_submissions=self._accept_late_submissions,
        )
        self._sessions[code] = session
        logger.info("Session %s created (%s)", code, session.name)
        return session

    def get(self, code: str) -> Session | None:
        """Get a session by code."""
        return self._sessions.get(code)

    def find_by_identity(self, identity: str) -> Session | None:
        """
        Find the session a connection belongs to.

        Presenter ownership is checked across all sessions before
        participant membership.
        """
        for session in self._sessions.values():
            if session.presenter_id == identity:
                return session
        for session in self._sessions.values():
            if identity in session.participants:
                return session
        return None

    def remove(self, code: str) -> bool:
        """Remove a session. Its code becomes available again."""
        session = self._sessions.pop(code, None)
        if session:
            logger.info("Session %s removed", code)
        return session is not None

    def list_active_sessions(self) -> list[str]:
        """List codes of sessions that have not ended."""
        return [
            code for code, session in self._sessions.items()
            if session.is_active
        ]

    def cleanup_ended_sessions(self, max_age_seconds: float = 3600) -> list[str]:
        """
        Remove sessions that ended more than max_age_seconds ago.

        Active sessions are never reaped, however old.
        """
        current_time = time.time()
        to_remove = [
            code for code, session in self._sessions.items()
            if not session.is_active
            and session.ended_at is not None
            and current_time - session.ended_at > max_age_seconds
        ]

        for code in to_remove:
            self.remove(code)
        return to_remove
