"""
users/service.py -- Registration, profile edits, and deletion.

Route handlers in web/routes.py validate form input into DTOs and then call
these functions; the functions talk to the store only through the
UserRepository protocol and report failures as core.errors types:

  register_user   -- ValidationFailure on duplicate email
  update_profile  -- NotFound for an unknown id, ValidationFailure when the
                     new email already belongs to another account
  delete_user     -- NotFound for an unknown id

Duplicate emails are detected from the UNIQUE constraint's IntegrityError
rather than a read-then-insert check, so two concurrent requests cannot both
claim the same address.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import UserRecord
from auth.passwords import hash_password
from auth.sessions import SessionStore
from auth.store import UserRepository
from core.errors import NotFound, ValidationFailure

logger = logging.getLogger("userdir.users")

_DUPLICATE_EMAIL = "Email already registered."


def register_user(store: UserRepository, name: str, email: str, age: int, password: str) -> int:
    """Hash the password, create the account, and return its id."""
    user = UserRecord(name=name, email=email, age=age, password_hash=hash_password(password))
    try:
        user_id = store.create_user(user)
    except IntegrityError as exc:
        raise ValidationFailure(_DUPLICATE_EMAIL) from exc
    logger.info("Registered user %d", user_id)
    return user_id


def get_user(store: UserRepository, user_id: int) -> UserRecord:
    user = store.get_by_id(user_id)
    if user is None:
        raise NotFound()
    return user


def update_profile(
    store: UserRepository,
    sessions: SessionStore,
    user_id: int,
    *,
    name: Optional[str] = None,
    email: Optional[str] = None,
    age: Optional[int] = None,
    profile_picture: Optional[str] = None,
) -> UserRecord:
    """Overwrite the supplied fields on user_id and return the updated record.

    None means "leave unchanged". A new profile_picture replaces the stored
    reference; the previous file is left on disk.
    """
    changes = {
        key: value
        for key, value in (("name", name), ("email", email), ("age", age), ("profile_picture", profile_picture))
        if value is not None
    }
    try:
        found = store.update_fields(user_id, **changes)
    except IntegrityError as exc:
        raise ValidationFailure(_DUPLICATE_EMAIL) from exc
    if not found:
        raise NotFound()

    if name is not None:
        sessions.rename_user(user_id, name)
    logger.info("Updated user %d (%s)", user_id, ", ".join(sorted(changes)) or "no changes")
    return get_user(store, user_id)


def delete_user(store: UserRepository, sessions: SessionStore, user_id: int) -> None:
    """Remove the account and sign out every session it owns."""
    if not store.delete_user(user_id):
        raise NotFound()
    dropped = sessions.destroy_user(user_id)
    logger.info("Deleted user %d (%d sessions closed)", user_id, dropped)
