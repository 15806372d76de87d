"""Source tables read from the data directory.

Tables are CSV files stored under ``<data_dir>/in/tables/<table_id>.csv``.
The row count requires a full scan of the file, every upload pass then opens
its own reader so that only a single page of rows is ever held in memory.
"""

from __future__ import annotations

import csv
import logging
import os
from dataclasses import dataclass
from typing import Iterator, List, Optional

from sheets_writer.errors import UserError
from sheets_writer.settings import DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)


class Table:
    """A CSV table with its dimensions computed up front."""

    def __init__(self, data_dir: str, table_id: str) -> None:
        self.data_dir = data_dir
        self.table_id = table_id
        if not os.path.isfile(self.pathname):
            raise UserError(f'Input table "{table_id}" not found: {self.pathname}')
        self._row_count: Optional[int] = None
        self._column_count: Optional[int] = None

    def __repr__(self) -> str:
        return f"csv file: {self.pathname}"

    @property
    def pathname(self) -> str:
        return os.path.join(self.data_dir, "in", "tables", f"{self.table_id}.csv")

    def rows(self) -> Iterator[List[str]]:
        """Yield the rows of the table from a fresh reader."""

        with open(self.pathname, "r", encoding="utf-8", newline="") as handle:
            yield from csv.reader(handle)

    @property
    def row_count(self) -> int:
        if self._row_count is None:
            self._row_count = sum(1 for _ in self.rows())
        return self._row_count

    @property
    def column_count(self) -> int:
        if self._column_count is None:
            rows = self.rows()
            try:
                first = next(rows, None)
            finally:
                rows.close()
            self._column_count = len(first) if first is not None else 0
        return self._column_count


class TableFactory:
    def __init__(self, data_dir: str) -> None:
        self.data_dir = data_dir

    def get_table(self, table_id: str) -> Table:
        return Table(self.data_dir, table_id)


@dataclass(frozen=True)
class Page:
    values: List[List[str]]
    offset: int
    limit: int

    @property
    def is_first(self) -> bool:
        return self.offset == 1

    def __len__(self) -> int:
        return len(self.values)


class Paginator:
    """Split a table into consecutive pages of at most ``limit`` rows."""

    def __init__(self, table: Table, limit: int = DEFAULT_PAGE_SIZE) -> None:
        if limit < 1:
            raise ValueError("Page limit must be >= 1")
        self.table = table
        self.limit = limit

    def pages(self) -> Iterator[Page]:
        offset = 1
        values: List[List[str]] = []
        for row in self.table.rows():
            values.append(row)
            if len(values) == self.limit:
                yield Page(values=values, offset=offset, limit=self.limit)
                offset += len(values)
                values = []
        if values:
            yield Page(values=values, offset=offset, limit=self.limit)
