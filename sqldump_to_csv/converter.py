"""
Conversion orchestration: drives the row reader and routes rows to per-table emitters.
"""

import logging
from contextlib import ExitStack
from typing import Callable, NamedTuple, Optional, Sequence, TextIO

from .emitters import OutputEmitter
from .factory import EmitterFactory
from .models import ALL_TABLES, ConversionOutcome, ConversionResult, ConversionSettings, TableInfo
from .reader import SqlDumpReader
from .scanner import DumpScanner
from .source import open_dump

SUMMARY_TABLE = 'tables'
SUMMARY_COLUMNS = ['name', 'columns', 'rows']

EmitterFactoryType = Callable[[str, Sequence[str]], OutputEmitter]


class ActiveTable(NamedTuple):
    """The table rows are currently routed to; emitter is None for tables not exported."""
    info: TableInfo
    emitter: Optional[OutputEmitter]


class TableRouter:
    """Routes rows to one lazily created emitter per table.

    The router is either without an active table (``active`` is None) or has an
    ``ActiveTable``. Every switch looks the table's emitter up in the registry
    and creates it on first use. Emitters are registered on ``exit_stack``,
    which closes them exactly once when the run ends, whatever the reason.
    """

    def __init__(
        self,
        table_filter: Optional[str],
        emitter_factory: EmitterFactoryType,
        exit_stack: ExitStack
    ):
        self.table_filter = table_filter
        self.emitter_factory = emitter_factory
        self.exit_stack = exit_stack
        self.registry: dict[str, OutputEmitter] = {}
        self.active: Optional[ActiveTable] = None

    def is_exported(self, table: str) -> bool:
        return self.table_filter == ALL_TABLES or self.table_filter == table

    def switch_to(self, table: TableInfo) -> None:
        emitter = None
        if self.is_exported(table.name):
            emitter = self.registry.get(table.name)
            if emitter is None:
                logging.info(f"Converting table '{table.name}' ({len(table.columns)} columns)")
                emitter = self.exit_stack.enter_context(
                    self.emitter_factory(table.name, table.columns)
                )
                self.registry[table.name] = emitter
        self.active = ActiveTable(table, emitter)

    def forward(self, values: list) -> None:
        self.active.info.row_count += 1
        if self.active.emitter is not None:
            self.active.emitter.emit(values)


def run_conversion(
    stream: TextIO,
    table_filter: Optional[str],
    emitter_factory: EmitterFactoryType,
    chunk_size: int = DumpScanner.DEFAULT_CHUNK_SIZE,
    encoding: str = 'utf-8'
) -> ConversionResult:
    """
    Convert every row of a dump read from ``stream``.

    Args:
        stream: Text stream of the dump; closed when the run ends.
        table_filter: Name of the table to export, ``ALL_TABLES``, or None for
            summary mode (no rows exported, one summary record per table).
        emitter_factory: Callable returning a bound emitter for a table name
            and its column names.

    Returns:
        ConversionResult with the tables found and the run outcome.

    Raises:
        TruncatedInput: If the dump ends inside a statement.
        MalformedStatement: If a statement or value tuple cannot be decoded.
    """
    with ExitStack() as exit_stack, SqlDumpReader(stream, chunk_size, encoding) as reader:
        router = TableRouter(table_filter, emitter_factory, exit_stack)
        for row in reader:
            if reader.table_changed:
                router.switch_to(reader.tracker.tables[row.table])
            router.forward(row.values)
        tables = reader.tables
        inconsistencies = tuple(reader.tracker.inconsistencies)

    if table_filter is None:
        with emitter_factory(SUMMARY_TABLE, SUMMARY_COLUMNS) as summary:
            for table in tables:
                summary.emit([table.name, len(table.columns), table.row_count])

    if table_filter not in (None, ALL_TABLES) and all(t.name != table_filter for t in tables):
        outcome = ConversionOutcome.UNKNOWN_TABLE
    elif not tables:
        outcome = ConversionOutcome.EMPTY_DUMP
    else:
        outcome = ConversionOutcome.OK
    return ConversionResult(tables=tables, outcome=outcome, inconsistencies=inconsistencies)


class DumpConverter:
    """Main class for dump conversion runs."""

    def __init__(self, settings: ConversionSettings, stdout: Optional[TextIO] = None):
        self.settings = settings
        self.stdout = stdout

    def run(self) -> ConversionResult:
        """Open the dump named in the settings and convert it."""
        settings = self.settings
        if settings.summary_mode:
            logging.info(f"Listing tables of '{settings.dump_path}'")
        else:
            logging.info(
                f"Converting '{settings.dump_path}' to {settings.output_format.value} "
                f"(table: {'all' if settings.all_tables else settings.table})"
            )

        stream = open_dump(settings.dump_path, settings.encoding)
        return run_conversion(
            stream,
            settings.table,
            EmitterFactory(settings, self.stdout),
            chunk_size=settings.chunk_size,
            encoding=settings.encoding
        )
