"""
auth/sessions.py -- Server-side session store and the session cookie.

The browser only ever holds an opaque random token (the "session_id"
cookie). Everything the server knows about the session -- which user, what
name to greet them with, when it expires -- lives in a SessionStore keyed by
that token. Logging out or deleting the user removes the entry, which
invalidates the cookie immediately.

SessionStore is a protocol so the in-memory implementation below can be
swapped for a shared store without touching route code. The application
keeps its instance on app.state.sessions.

Token: secrets.token_urlsafe(32) -- 256 bits of entropy, never derived from
user data.

Layer rule: no imports from api/, web/, or users/.
"""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Protocol

from auth.models import SessionContext
from core.config import get_settings

logger = logging.getLogger("userdir.auth")

SESSION_COOKIE = "session_id"


class SessionStore(Protocol):
    def get(self, token: str) -> SessionContext | None: ...

    def set(self, token: str, context: SessionContext) -> None: ...

    def destroy(self, token: str) -> None: ...

    def destroy_user(self, user_id: int) -> int: ...

    def rename_user(self, user_id: int, user_name: str) -> None: ...


class InMemorySessionStore:
    """Process-local SessionStore. Entries expire max_age seconds after creation.

    A lock guards the dict because sync route handlers run concurrently in
    the threadpool.
    """

    def __init__(self, max_age: int = 3600) -> None:
        self.max_age = max_age
        self._sessions: dict[str, SessionContext] = {}
        self._lock = threading.Lock()

    def get(self, token: str) -> SessionContext | None:
        """Return the live session for token, dropping it if it has expired."""
        with self._lock:
            context = self._sessions.get(token)
            if context is not None and context.is_expired:
                del self._sessions[token]
                return None
            return context

    def set(self, token: str, context: SessionContext) -> None:
        with self._lock:
            self._sessions[token] = context

    def destroy(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def destroy_user(self, user_id: int) -> int:
        """Drop every session owned by user_id. Returns how many were removed."""
        with self._lock:
            tokens = [t for t, ctx in self._sessions.items() if ctx.user_id == user_id]
            for token in tokens:
                del self._sessions[token]
        return len(tokens)

    def rename_user(self, user_id: int, user_name: str) -> None:
        """Refresh the display name on every session owned by user_id."""
        with self._lock:
            for token, ctx in self._sessions.items():
                if ctx.user_id == user_id:
                    self._sessions[token] = replace(ctx, user_name=user_name)

    def purge_expired(self) -> int:
        """Delete all expired entries. Returns number removed."""
        with self._lock:
            expired = [t for t, ctx in self._sessions.items() if ctx.is_expired]
            for token in expired:
                del self._sessions[token]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


def new_session(store: SessionStore, user_id: int, user_name: str, max_age: int = 0) -> tuple[str, SessionContext]:
    """Create and register a fresh session. Returns (token, context).

    max_age of 0 (default) uses Settings.session_max_age.
    """
    duration = max_age if max_age > 0 else get_settings().session_max_age
    context = SessionContext(
        user_id=user_id,
        user_name=user_name,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=duration),
    )
    token = secrets.token_urlsafe(32)
    store.set(token, context)
    return token, context


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie.
    samesite="lax": not sent on cross-site POSTs.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the server-side expiry so both lapse together.
    """
    settings = get_settings()
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=settings.session_max_age,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE)
