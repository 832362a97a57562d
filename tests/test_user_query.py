"""Unit tests for users/query.py -- listing search and sort.

Covers:
- search matches name OR email, case-insensitively
- % and _ in the search text are literal, not wildcards
- sortBy/order, including fallbacks for unknown or odd values
- ties and the unsorted listing come back in id order on every call
"""

import pytest

from users.query import UserQuery

# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def seeded(store, make_user):
    """Store with four users, inserted in this id order:

    1. John Doe    john@example.com   40
    2. Bob         bob@joe.com        25
    3. alice       alice@example.com  40
    4. Zed 100%    zed@x.com          50
    """
    make_user(store, "John Doe", "john@example.com", age=40)
    make_user(store, "Bob", "bob@joe.com", age=25)
    make_user(store, "alice", "alice@example.com", age=40)
    make_user(store, "Zed 100%", "zed@x.com", age=50)
    return store


def _names(store, **params) -> list[str]:
    return [u.name for u in store.list_users(UserQuery.from_params(**params))]


# ---------------------------------------------------------------------------
# from_params
# ---------------------------------------------------------------------------


def test_from_params_defaults():
    q = UserQuery.from_params()
    assert q == UserQuery(search=None, sort_by=None, descending=False)


def test_from_params_blank_search_is_no_filter():
    assert UserQuery.from_params(search="").search is None
    assert UserQuery.from_params(search="   ").search is None


def test_from_params_keeps_search_text_as_given():
    assert UserQuery.from_params(search=" John ").search == " John "


def test_from_params_drops_unknown_sort_field():
    assert UserQuery.from_params(sort_by="password_hash").sort_by is None


def test_from_params_only_exact_desc_is_descending():
    assert UserQuery.from_params(order="desc").descending is True
    assert UserQuery.from_params(order="DESC").descending is False
    assert UserQuery.from_params(order="descending").descending is False
    assert UserQuery.from_params(order="asc").descending is False


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


def test_search_matches_name_or_email(seeded):
    assert _names(seeded, search="jo") == ["John Doe", "Bob"]


def test_search_is_case_insensitive(seeded):
    assert _names(seeded, search="JOHN") == ["John Doe"]
    assert _names(seeded, search="Alice") == ["alice"]


def test_empty_search_returns_everyone(seeded):
    assert _names(seeded, search="") == ["John Doe", "Bob", "alice", "Zed 100%"]


def test_search_wildcards_are_literal(seeded):
    assert _names(seeded, search="%") == ["Zed 100%"]
    assert _names(seeded, search="_") == []


def test_search_without_match_is_empty(seeded):
    assert _names(seeded, search="nobody") == []


def test_trailing_space_in_search_is_significant(store, make_user):
    make_user(store, "John Doe", "jd@example.com")
    make_user(store, "Johnny", "johnny@example.com")
    assert _names(store, search="John ") == ["John Doe"]
    assert _names(store, search="John") == ["John Doe", "Johnny"]


# ---------------------------------------------------------------------------
# Sort
# ---------------------------------------------------------------------------


def test_sort_by_age_ascending_breaks_ties_by_id(seeded):
    assert _names(seeded, sort_by="age") == ["Bob", "John Doe", "alice", "Zed 100%"]


def test_sort_by_age_descending(seeded):
    assert _names(seeded, sort_by="age", order="desc") == ["Zed 100%", "John Doe", "alice", "Bob"]


def test_sort_by_email(seeded):
    assert _names(seeded, sort_by="email") == ["alice", "Bob", "John Doe", "Zed 100%"]


def test_unknown_sort_field_falls_back_to_id_order(seeded):
    assert _names(seeded, sort_by="nope", order="desc") == ["John Doe", "Bob", "alice", "Zed 100%"]


def test_search_and_sort_combine(seeded):
    assert _names(seeded, search="example", sort_by="email", order="desc") == ["John Doe", "alice"]


def test_listing_is_stable_across_calls(seeded):
    first = _names(seeded, sort_by="age")
    assert all(_names(seeded, sort_by="age") == first for _ in range(3))
