"""Read-only access to the category catalog."""

from __future__ import annotations

import sqlite3
from typing import Optional

from .builtin import UNCATEGORIZED
from .db import (
    fetch_categories,
    fetch_category_by_id,
    fetch_category_by_name,
    storage_errors,
)
from .errors import StorageError
from .models import Category


class CategoryStore:
    """Lookup service over the ``categories`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def list_categories(self) -> list[Category]:
        with storage_errors("listing categories"):
            return fetch_categories(self._conn)

    def get_by_id(self, category_id: int) -> Optional[Category]:
        with storage_errors("loading category"):
            return fetch_category_by_id(self._conn, category_id)

    def get_by_name(self, name: str) -> Optional[Category]:
        with storage_errors("loading category"):
            return fetch_category_by_name(self._conn, name)

    def uncategorized(self) -> Category:
        category = self.get_by_name(UNCATEGORIZED)
        if category is None:
            # initialize_schema always creates it.
            raise StorageError(f"Category {UNCATEGORIZED!r} is missing")
        return category
