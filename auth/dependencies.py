"""
auth/dependencies.py -- Resolve an inbound request to its session.

This is the session boundary: every auth-gated route starts by asking
try_get_session() who (if anyone) the request belongs to. The answer comes
from the "session_id" cookie and the SessionStore on app.state.sessions.

Layer rule: no imports from web/ or users/.
  auth/dependencies.py may import from fastapi (for Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import SessionContext
from auth.sessions import SESSION_COOKIE


def session_token(request: Request) -> str | None:
    """Return the raw session token carried by the request, if any."""
    return request.cookies.get(SESSION_COOKIE) or None


def try_get_session(request: Request) -> SessionContext | None:
    """Return the live SessionContext for this request, or None.

    Never raises. Unknown, expired, and destroyed tokens all read as
    unauthenticated.
    """
    token = session_token(request)
    if token is None:
        return None
    return request.app.state.sessions.get(token)

