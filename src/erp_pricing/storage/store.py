"""
Row Store - typed CRUD over named tables of dataclass rows.

Stands in for the relational database: services talk to it through
insert/get/select/update/delete and never see how rows are kept.
"""
import dataclasses
from datetime import datetime
from typing import Any, Optional

import pandas as pd

from ..errors import NotFoundError


class RowStore:
    """In-process table store keyed by row ``id``."""

    def __init__(self):
        self._tables: dict[str, dict[str, Any]] = {}

    def _table(self, table: str) -> dict[str, Any]:
        return self._tables.setdefault(table, {})

    def insert(self, table: str, row):
        """Insert a row and return the stored copy."""
        rows = self._table(table)
        if row.id in rows:
            raise ValueError(f"Duplicate id '{row.id}' in table '{table}'")
        rows[row.id] = dataclasses.replace(row)
        return dataclasses.replace(row)

    def bulk_insert(self, table: str, rows: list) -> list:
        return [self.insert(table, row) for row in rows]

    def get(self, table: str, row_id: str):
        """Return a copy of the row, or None."""
        row = self._table(table).get(row_id)
        return dataclasses.replace(row) if row is not None else None

    def select(self, table: str, **filters) -> list:
        """Rows whose attributes equal every filter value, in insertion order."""
        result = []
        for row in self._table(table).values():
            if all(getattr(row, key, None) == value for key, value in filters.items()):
                result.append(dataclasses.replace(row))
        return result

    def count(self, table: str, **filters) -> int:
        return len(self.select(table, **filters))

    def update(self, table: str, row_id: str, **changes):
        """Apply field changes to a row and return the updated copy."""
        rows = self._table(table)
        existing = rows.get(row_id)
        if existing is None:
            raise NotFoundError(f"Record '{row_id}' not found in {table}")

        unknown = [key for key in changes if not hasattr(existing, key)]
        if unknown:
            raise ValueError(f"Unknown field(s) for {table}: {', '.join(unknown)}")

        if hasattr(existing, 'updated_at') and 'updated_at' not in changes:
            changes['updated_at'] = datetime.now()

        updated = dataclasses.replace(existing, **changes)
        rows[row_id] = updated
        return dataclasses.replace(updated)

    def delete(self, table: str, row_id: str) -> bool:
        return self._table(table).pop(row_id, None) is not None

    def delete_where(self, table: str, **filters) -> int:
        """Delete every row matching the filters; returns the count."""
        doomed = [row.id for row in self.select(table, **filters)]
        for row_id in doomed:
            self.delete(table, row_id)
        return len(doomed)

    def to_frame(self, table: str, columns: Optional[list[str]] = None) -> pd.DataFrame:
        """Table contents as a DataFrame for reporting."""
        records = [dataclasses.asdict(row) for row in self._table(table).values()]
        if not records:
            return pd.DataFrame(columns=columns or [])
        return pd.DataFrame.from_records(records)
