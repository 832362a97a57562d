"""
auth/models.py -- Domain dataclasses for accounts and sessions.

Pattern: Data class (pure data container, almost no logic). Stores and
services do the work; these only own the domain shape.

Layer rule: no imports from api/, web/, or users/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass
class UserRecord:
    """A registered account.

    password_hash is a bcrypt digest; the salt is embedded in the digest
    itself, so every record carries its own random salt. The clear password
    never reaches this object.

    failed_attempts counts consecutive bad passwords since the last successful
    login. account_locked flips to True once that count reaches the lockout
    threshold and nothing in this application flips it back.

    profile_picture is the public path of the uploaded image
    (e.g. "/uploads/1700000000000.png"), or None.
    """

    name: str
    email: str
    age: int
    password_hash: str
    id: int | None = None
    failed_attempts: int = 0
    account_locked: bool = False
    profile_picture: str | None = None
    created_at: str | None = None


@dataclass
class SessionContext:
    """Who a browser session belongs to, and until when."""

    user_id: int
    user_name: str
    expires_at: datetime

    @property
    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.expires_at
