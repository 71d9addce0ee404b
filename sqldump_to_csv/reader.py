"""
Row-by-row reading of SQL dumps.
"""

from typing import Any, Iterator, NamedTuple, Optional, TextIO

from .exceptions import MalformedStatement
from .models import TableInfo
from .scanner import DumpScanner
from .tracker import InsertStatement, SchemaTracker


class DumpRow(NamedTuple):
    """A decoded row and the table it belongs to."""
    table: str
    columns: list[str]
    values: list[Any]


class SqlDumpReader:
    """Reads the rows of a SQL dump one value tuple at a time, with context manager support.

    ``current_table`` and ``current_columns`` describe the table of the last
    row returned; ``table_changed`` tells whether that table differs from the
    one of the row before it.
    """

    def __init__(
        self,
        stream: TextIO,
        chunk_size: int = DumpScanner.DEFAULT_CHUNK_SIZE,
        encoding: str = 'utf-8'
    ):
        self.stream = stream
        self.scanner = DumpScanner(stream, chunk_size)
        self.tracker = SchemaTracker(self.scanner, encoding)
        self.current_table: Optional[str] = None
        self.current_columns: list[str] = []
        self.table_changed = False
        self._statement: Optional[InsertStatement] = None
        self._table: Optional[TableInfo] = None
        self._order: Optional[list[int]] = None

    def __enter__(self) -> "SqlDumpReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[DumpRow]:
        while True:
            row = self.read_row()
            if row is None:
                return
            yield row

    def close(self) -> None:
        self.stream.close()

    @property
    def tables(self) -> list[TableInfo]:
        """Tables seen so far, in order of first appearance."""
        return list(self.tracker.tables.values())

    def read_row(self) -> Optional[DumpRow]:
        """Return the next row, or None when the dump is exhausted.

        Raises:
            MalformedStatement: If a value tuple does not match its table's columns.
            TruncatedInput: If the dump ends inside a statement.
        """
        while True:
            values = self.tracker.next_values()
            if values is not None:
                break
            self._statement = self.tracker.next_insert()
            self._table = None
            if self._statement is None:
                return None

        if self._table is None:
            self._table, self._order = self.tracker.bind(self._statement, len(values))
        table = self._table

        if len(values) != len(table.columns):
            raise MalformedStatement(
                f"Table '{table.name}': value tuple has {len(values)} field(s), "
                f"expected {len(table.columns)}",
                self.tracker.values_line
            )
        if self._order is not None:
            values = [values[i] for i in self._order]

        self.table_changed = table.name != self.current_table
        self.current_table = table.name
        self.current_columns = table.columns
        return DumpRow(table.name, table.columns, values)
