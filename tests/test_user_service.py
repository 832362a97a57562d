"""Unit tests for users/service.py -- registration, profile edits, deletion."""

import pytest

from auth.passwords import verify_password
from auth.sessions import new_session
from core.errors import NotFound, ValidationFailure
from users.service import delete_user, get_user, register_user, update_profile

# ---------------------------------------------------------------------------
# register_user
# ---------------------------------------------------------------------------


def test_register_stores_a_salted_hash(store):
    uid = register_user(store, "Ann", "ann@example.com", 30, "pw1")
    user = store.get_by_id(uid)
    assert user.password_hash != "pw1"
    assert user.password_hash.startswith("$2")
    assert verify_password("pw1", user.password_hash)
    assert user.failed_attempts == 0
    assert user.account_locked is False


def test_same_password_gets_different_hashes(store):
    a = register_user(store, "A", "a@example.com", 30, "same")
    b = register_user(store, "B", "b@example.com", 30, "same")
    assert store.get_by_id(a).password_hash != store.get_by_id(b).password_hash


def test_register_duplicate_email(store):
    register_user(store, "Ann", "ann@example.com", 30, "pw1")
    with pytest.raises(ValidationFailure) as exc_info:
        register_user(store, "Other Ann", "ann@example.com", 31, "pw2")
    assert exc_info.value.message == "Email already registered."
    assert len(store.list_users()) == 1


def test_get_user_unknown_id(store):
    with pytest.raises(NotFound):
        get_user(store, 12345)


# ---------------------------------------------------------------------------
# update_profile
# ---------------------------------------------------------------------------


def test_update_name_only_keeps_everything_else(store, sessions):
    uid = register_user(store, "Ann", "ann@example.com", 30, "pw1")
    store.update_fields(uid, profile_picture="/uploads/1.png")

    user = update_profile(store, sessions, uid, name="Ann B")
    assert user.name == "Ann B"
    assert user.email == "ann@example.com"
    assert user.age == 30
    assert user.profile_picture == "/uploads/1.png"


def test_update_replaces_picture(store, sessions):
    uid = register_user(store, "Ann", "ann@example.com", 30, "pw1")
    update_profile(store, sessions, uid, profile_picture="/uploads/1.png")
    user = update_profile(store, sessions, uid, profile_picture="/uploads/2.png")
    assert user.profile_picture == "/uploads/2.png"


def test_update_with_nothing_is_a_no_op(store, sessions):
    uid = register_user(store, "Ann", "ann@example.com", 30, "pw1")
    before = store.get_by_id(uid)
    assert update_profile(store, sessions, uid) == before


def test_update_to_taken_email(store, sessions):
    register_user(store, "Ann", "ann@example.com", 30, "pw1")
    uid = register_user(store, "Bob", "bob@example.com", 30, "pw1")
    with pytest.raises(ValidationFailure):
        update_profile(store, sessions, uid, email="ann@example.com")
    assert store.get_by_id(uid).email == "bob@example.com"


def test_update_unknown_user(store, sessions):
    with pytest.raises(NotFound):
        update_profile(store, sessions, 999, name="Ghost")


def test_rename_refreshes_open_sessions(store, sessions):
    uid = register_user(store, "Ann", "ann@example.com", 30, "pw1")
    token, _ = new_session(sessions, uid, "Ann")
    update_profile(store, sessions, uid, name="Annabel")
    assert sessions.get(token).user_name == "Annabel"


# ---------------------------------------------------------------------------
# delete_user
# ---------------------------------------------------------------------------


def test_delete_removes_user_and_sessions(store, sessions):
    uid = register_user(store, "Ann", "ann@example.com", 30, "pw1")
    token, _ = new_session(sessions, uid, "Ann")

    delete_user(store, sessions, uid)
    assert store.get_by_id(uid) is None
    assert sessions.get(token) is None


def test_delete_unknown_user(store, sessions):
    with pytest.raises(NotFound):
        delete_user(store, sessions, 999)
