"""
users/query.py -- Search and sort for the user listing.

Turns the listing's query string (?search=&sortBy=&order=) into a SQLAlchemy
Core SELECT over the users table.

  search  -- case-insensitive substring match against name OR email. The text
             is matched literally and as given: surrounding spaces count, and
             % and _ are escaped, not treated as wildcards. Empty or
             whitespace-only means "no filter".
  sortBy  -- one of SORTABLE_FIELDS. Unknown names fall back to natural order
             instead of erroring.
  order   -- descending only for the exact string "desc"; anything else,
             including absence, is ascending.

Every ordering ends with id ascending, so rows that tie on the sort column
(and the unsorted listing) come back in the same order on every call.
No pagination: the full matching set is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import Table, or_
from sqlalchemy.sql import Select

logger = logging.getLogger("userdir.users")

SORTABLE_FIELDS = ("name", "email", "age", "created_at", "id")


@dataclass(frozen=True)
class UserQuery:
    search: Optional[str] = None
    sort_by: Optional[str] = None
    descending: bool = False

    @classmethod
    def from_params(
        cls,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        order: Optional[str] = None,
    ) -> "UserQuery":
        """Normalize raw query-string values into a UserQuery."""
        search_clean = search if search and search.strip() else None
        sort_clean = (sort_by or "").strip() or None
        if sort_clean is not None and sort_clean not in SORTABLE_FIELDS:
            logger.debug("Ignoring unknown sort field %r", sort_clean)
            sort_clean = None
        return cls(search=search_clean, sort_by=sort_clean, descending=order == "desc")

    def to_select(self, table: Table) -> Select:
        stmt = table.select()
        if self.search:
            stmt = stmt.where(
                or_(
                    table.c.name.icontains(self.search, autoescape=True),
                    table.c.email.icontains(self.search, autoescape=True),
                )
            )
        if self.sort_by:
            column = table.c[self.sort_by]
            stmt = stmt.order_by(column.desc() if self.descending else column.asc())
        return stmt.order_by(table.c.id.asc())
