"""
auth/lockout.py -- Login attempts and the brute-force lockout state machine.

Every account is in one of two states:

    ACTIVE --(5th consecutive bad password)--> LOCKED

LOCKED is terminal: no attempt, correct password or not, moves an account
out of it. Administrative unlock does not exist in this application.

Transition table for an attempt (email, password):
  no such email          -> InvalidCredentials, nothing written
  account LOCKED         -> AccountLocked, nothing written
  ACTIVE, bad password   -> failed_attempts += 1;
                            reaches LOCKOUT_THRESHOLD -> LOCKED, AccountLocked
                            otherwise                 -> InvalidCredentials
  ACTIVE, good password  -> failed_attempts = 0, success

The counter update is delegated to UserRepository.record_failed_attempt(),
which performs it as one compare-and-set statement (see auth/store.py).

Timing: an unknown email still pays for one bcrypt check against
_DUMMY_HASH, so response time does not reveal which emails are registered.

Layer rule: no imports from api/, web/, or users/.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum

from auth.models import SessionContext, UserRecord
from auth.passwords import hash_password, verify_password
from auth.sessions import SessionStore, new_session
from auth.store import UserRepository
from core.errors import AccountLocked, InvalidCredentials

logger = logging.getLogger("userdir.auth")

LOCKOUT_THRESHOLD = 5

# Computed once at module load so the first unknown-email attempt is not
# measurably slower than later ones.
_DUMMY_HASH: str = hash_password("userdir_timing_dummy")


class AccountState(str, Enum):
    ACTIVE = "active"
    LOCKED = "locked"


def account_state(user: UserRecord) -> AccountState:
    return AccountState.LOCKED if user.account_locked else AccountState.ACTIVE


def authenticate(store: UserRepository, email: str, password: str) -> UserRecord:
    """Run one login attempt through the state machine.

    Returns the authenticated UserRecord (with failed_attempts reset to 0).
    Raises InvalidCredentials or AccountLocked on failure.
    """
    user = store.get_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        logger.warning("Login failed for unknown email %r", email)
        raise InvalidCredentials()

    if account_state(user) is AccountState.LOCKED:
        logger.warning("Login refused for locked account %d", user.id)
        raise AccountLocked()

    if not verify_password(password, user.password_hash):
        updated = store.record_failed_attempt(user.id, LOCKOUT_THRESHOLD)
        if updated is None:
            raise InvalidCredentials()
        if account_state(updated) is AccountState.LOCKED:
            logger.warning("Account %d locked after %d failed attempts", user.id, updated.failed_attempts)
            raise AccountLocked()
        logger.warning("Login failed for account %d (%d/%d)", user.id, updated.failed_attempts, LOCKOUT_THRESHOLD)
        raise InvalidCredentials()

    if not store.reset_failed_attempts(user.id):
        # Locked (or deleted) between our read and the reset.
        current = store.get_by_id(user.id)
        if current is None:
            raise InvalidCredentials()
        raise AccountLocked()

    return replace(user, failed_attempts=0)


def login(
    store: UserRepository, sessions: SessionStore, email: str, password: str
) -> tuple[str, SessionContext]:
    """Authenticate and, on success, open a new session.

    Returns (session token, SessionContext). Failures propagate from authenticate().
    """
    user = authenticate(store, email, password)
    token, context = new_session(sessions, user.id, user.name)
    logger.info("User %d logged in", user.id)
    return token, context
