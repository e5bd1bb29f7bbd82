"""
Server-side session storage for the OAuth gateway.

The browser only ever holds an opaque session identifier (inside the signed
session cookie); the credential obtained from the authorization server lives
here, keyed by that identifier. Sessions idle for longer than the configured
max age are expired and discarded.
"""

import asyncio
import time
from typing import Callable, Dict, Optional

from ..shared.logging_utils import OAuthLogger
from ..shared.oauth_models import Credential
from ..shared.security import mask_token
from .errors import SessionDestructionError, Unauthenticated

logger = OAuthLogger("SESSION-STORE")

PURGE_INTERVAL = 60.0


class Session:
    """
    Per-client session state.

    Holds at most one credential. A session without a credential is
    unauthenticated.
    """

    def __init__(self, session_id: str, now: float):
        self.session_id = session_id
        self.credential: Optional[Credential] = None
        self.created_at = now
        self.last_seen = now

    @property
    def authenticated(self) -> bool:
        return self.credential is not None

    def __repr__(self):
        return (f"Session(id={mask_token(self.session_id)!r}, "
                f"authenticated={self.authenticated})")


class SessionStore:
    """
    In-memory session store with idle expiry and per-session locking.

    All operations that read or mutate a session's credential across an
    ``await`` must hold ``lock(session_id)``, so that two requests on the
    same session (for example a logout and a query) never interleave.
    """

    def __init__(self, max_age: int, clock: Callable[[], float] = time.time):
        self.max_age = max_age
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_purge = clock()

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def _is_expired(self, session: Session, now: float) -> bool:
        return now - session.last_seen > self.max_age

    def find(self, session_id: Optional[str]) -> Optional[Session]:
        """
        Look up a live session without creating one.

        An expired session is discarded and reported as missing.
        """
        now = self._clock()
        if now - self._last_purge >= PURGE_INTERVAL:
            self.purge_expired()

        if not session_id:
            return None

        session = self._sessions.get(session_id)
        if session is None:
            return None

        if self._is_expired(session, now):
            logger.log_oauth_message(
                "SESSION-STORE", "SESSION-STORE",
                "Session Expired",
                {
                    "session_id": mask_token(session_id),
                    "idle_seconds": int(now - session.last_seen)
                }
            )
            del self._sessions[session_id]
            session.credential = None
            return None

        session.last_seen = now
        return session

    def get(self, session_id: str) -> Session:
        """
        Retrieve the session for ``session_id``, creating it if needed.

        An expired session is discarded and replaced by a fresh,
        unauthenticated one under the same identifier.
        """
        session = self.find(session_id)
        if session is None:
            session = Session(session_id, self._clock())
            self._sessions[session_id] = session
        return session

    def require_authenticated(self, session: Session) -> Credential:
        """
        Return the session's credential.

        Raises:
            Unauthenticated: If the session holds no credential
        """
        if session.credential is None:
            raise Unauthenticated()
        return session.credential

    def set_credential(self, session: Session, credential: Credential) -> None:
        """Store ``credential`` in the session, replacing any previous one."""
        replaced = session.credential is not None
        session.credential = credential

        logger.log_oauth_message(
            "GATEWAY", "SESSION-STORE",
            "Credential Stored",
            {
                "session_id": mask_token(session.session_id),
                "instance_url": credential.instance_url,
                "replaced_previous": replaced
            }
        )

    def destroy(self, session: Session) -> bool:
        """
        Clear all state for ``session``.

        Failures are logged and reported through the return value, never
        raised: the caller's redirect must complete regardless.

        Returns:
            bool: True if the session was removed from the store
        """
        session.credential = None
        try:
            del self._sessions[session.session_id]
        except KeyError:
            error = SessionDestructionError(
                f"Session {mask_token(session.session_id)} is not in the store"
            )
            logger.log_error(type(error).__name__, error.description)
            return False

        logger.log_oauth_message(
            "GATEWAY", "SESSION-STORE",
            "Session Destroyed",
            {"session_id": mask_token(session.session_id)}
        )
        return True

    def lock(self, session_id: str) -> asyncio.Lock:
        """Lock serializing credential operations on one session."""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def purge_expired(self) -> int:
        """
        Drop every session idle longer than the max age.

        Returns:
            int: Number of sessions dropped
        """
        now = self._clock()
        self._last_purge = now

        expired = [sid for sid, session in self._sessions.items()
                   if self._is_expired(session, now)]
        for sid in expired:
            self._sessions.pop(sid).credential = None

        for sid in [sid for sid, lock in self._locks.items()
                    if sid not in self._sessions and not lock.locked()]:
            del self._locks[sid]

        if expired:
            logger.log_info("Expired sessions purged", {"count": len(expired)})
        return len(expired)
