"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Route, service and
lockout code never touches SQL directly -- they depend on the UserRepository
protocol below, and UserStore is its SQL implementation.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Email uniqueness is a UNIQUE constraint on the users table; inserts and
  updates that collide raise sqlalchemy.exc.IntegrityError for the caller to
  translate.

Lockout bookkeeping:
  record_failed_attempt() is a single compare-and-set UPDATE. The increment,
  the threshold check and the lock all happen in one statement guarded by
  account_locked = false, so two concurrent bad passwords for the same account
  can never under-count, and a locked row is never touched again.

Connectivity:
  sqlalchemy.exc.OperationalError (database missing, unreachable, locked) is
  re-raised as core.errors.StoreUnavailable.

DB URL: Settings.database_url (defaults to auth/userdir.db).

Layer rule: no imports from api/, web/, or users/.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, create_engine, event, false, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.sql import Select

from auth.models import UserRecord
from core.errors import StoreUnavailable

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

users_table = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("age", Integer, nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("failed_attempts", Integer, nullable=False, server_default="0"),
    Column("account_locked", Boolean, nullable=False, server_default=false()),
    Column("profile_picture", Text),  # public path, e.g. /uploads/1700000000000.png
    Column("created_at", String(32), nullable=False),
)

# Columns a profile edit may overwrite. Validated before any SQL write so a
# caller can never reach password_hash or the lockout columns through it.
_MUTABLE_FIELDS = frozenset({"name", "email", "age", "profile_picture"})


# ---------------------------------------------------------------------------
# Repository interface
# ---------------------------------------------------------------------------


class SelectBuilder(Protocol):
    """Anything that turns the users table into a filtered/sorted SELECT (see users/query.py)."""

    def to_select(self, table: Table) -> Select: ...


class UserRepository(Protocol):
    """Capabilities the lockout machine and user services depend on."""

    def create_user(self, user: UserRecord) -> int: ...

    def get_by_email(self, email: str) -> UserRecord | None: ...

    def get_by_id(self, user_id: int) -> UserRecord | None: ...

    def list_users(self, query: SelectBuilder | None = None) -> list[UserRecord]: ...

    def update_fields(self, user_id: int, **fields) -> bool: ...

    def delete_user(self, user_id: int) -> bool: ...

    def record_failed_attempt(self, user_id: int, threshold: int) -> UserRecord | None: ...

    def reset_failed_attempts(self, user_id: int) -> bool: ...


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """SQL repository for UserRecord entities.

    Usage:
        store = UserStore("sqlite:///userdir.db")
        uid = store.create_user(UserRecord(name="Ann", email="ann@x.com", age=30, password_hash=hash_password("pw")))
        user = store.get_by_email("ann@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        try:
            _metadata.create_all(self.engine)
        except OperationalError as exc:
            raise StoreUnavailable() from exc

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Yield a connection, turning connectivity failures into StoreUnavailable."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except OperationalError as exc:
            raise StoreUnavailable() from exc

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute(text("SELECT 1"))
        except StoreUnavailable:
            return False
        return True

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: UserRecord) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers (users/service.py) translate that into ValidationFailure.
        """
        with self._connect() as conn:
            result = conn.execute(
                users_table.insert().values(
                    name=user.name,
                    email=user.email,
                    age=user.age,
                    password_hash=user.password_hash,
                    failed_attempts=user.failed_attempts,
                    account_locked=user.account_locked,
                    profile_picture=user.profile_picture,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_email(self, email: str) -> UserRecord | None:
        """Look up a user by exact email. Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(users_table.select().where(users_table.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> UserRecord | None:
        """Look up a user by primary key. Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(users_table.select().where(users_table.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self, query: SelectBuilder | None = None) -> list[UserRecord]:
        """Return the users selected by query, or every user in id order when query is None."""
        stmt = query.to_select(users_table) if query is not None else users_table.select().order_by(users_table.c.id)
        with self._connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_fields(self, user_id: int, **fields) -> bool:
        """Overwrite profile fields on an existing user.

        Accepted fields: name, email, age, profile_picture. Unknown keys raise
        ValueError rather than being silently ignored.

        Returns True if the user exists (and was updated), False otherwise.
        Raises sqlalchemy.exc.IntegrityError if email collides with another user.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        if not fields:
            return self.get_by_id(user_id) is not None
        with self._connect() as conn:
            result = conn.execute(users_table.update().where(users_table.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found."""
        with self._connect() as conn:
            result = conn.execute(users_table.delete().where(users_table.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Lockout bookkeeping
    # ------------------------------------------------------------------

    def record_failed_attempt(self, user_id: int, threshold: int) -> UserRecord | None:
        """Count one bad password and lock the account when the count reaches threshold.

        Compare-and-set: the UPDATE only matches unlocked rows, and both SET
        expressions read the pre-update failed_attempts, so the increment and
        the lock decision are atomic. A row that is already locked is left
        exactly as it is.

        Returns the record as it stands after the update, or None if the user
        no longer exists.
        """
        c = users_table.c
        with self._connect() as conn:
            conn.execute(
                users_table.update()
                .where((c.id == user_id) & (c.account_locked == false()))
                .values(
                    failed_attempts=c.failed_attempts + 1,
                    account_locked=(c.failed_attempts + 1) >= threshold,
                )
            )
            row = conn.execute(users_table.select().where(c.id == user_id)).fetchone()
            conn.commit()
        return _row_to_user(row) if row is not None else None

    def reset_failed_attempts(self, user_id: int) -> bool:
        """Zero the failure counter after a successful login.

        Guarded by account_locked = false: returns False (and changes nothing)
        if the account was locked by a concurrent request or no longer exists.
        """
        c = users_table.c
        with self._connect() as conn:
            result = conn.execute(
                users_table.update().where((c.id == user_id) & (c.account_locked == false())).values(failed_attempts=0)
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> UserRecord:
    return UserRecord(
        id=row.id,
        name=row.name,
        email=row.email,
        age=row.age,
        password_hash=row.password_hash,
        failed_attempts=row.failed_attempts or 0,
        account_locked=bool(row.account_locked),
        profile_picture=row.profile_picture,
        created_at=row.created_at,
    )
