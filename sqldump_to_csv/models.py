"""
Data models and enums for the SQL dump converter.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, NamedTuple, Optional, Sequence

from .exceptions import ConfigurationError, MalformedStatement, SchemaInconsistency

ALL_TABLES = '*'


class OutputFormat(Enum):
    """Supported output formats."""
    CSV = "csv"
    JSON = "json"
    XLSX = "xlsx"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def streaming(self) -> bool:
        """Whether rows can be written one by one to a text stream."""
        return self is not OutputFormat.XLSX

    @classmethod
    def from_path(cls, path: str | Path) -> Optional["OutputFormat"]:
        """Guess the format from a destination extension, ignoring a trailing .gz."""
        suffixes = [s.lower() for s in Path(path).suffixes]
        if suffixes and suffixes[-1] == '.gz':
            suffixes.pop()
        if not suffixes:
            return None
        try:
            return cls(suffixes[-1][1:])
        except ValueError:
            return None


class ConversionOutcome(Enum):
    """Non-fatal result of a conversion run."""
    OK = "ok"
    UNKNOWN_TABLE = "unknown_table"
    EMPTY_DUMP = "empty_dump"

    @property
    def exit_status(self) -> int:
        return 0 if self is ConversionOutcome.OK else 1


@dataclass
class TableInfo:
    """A table observed in the dump and the number of rows read for it."""
    name: str
    columns: list[str] = field(default_factory=list)
    row_count: int = 0
    defined: bool = False

    @property
    def anonymous(self) -> bool:
        """Columns were made up from the arity of the first value tuple."""
        return not self.defined


@dataclass(frozen=True)
class RowSchema:
    """Field names used by emitters to label the values of a table's rows."""
    table: str
    fields: tuple[str, ...]

    @classmethod
    def bind(cls, table: str, columns: Sequence[str]) -> "RowSchema":
        seen = set()
        for name in columns:
            if name in seen:
                raise MalformedStatement(f"Table '{table}' declares column '{name}' twice")
            seen.add(name)
        return cls(table=table, fields=tuple(columns))

    @property
    def header(self) -> list[str]:
        return list(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def as_dict(self, values: Sequence[Any]) -> dict[str, Any]:
        if len(values) != len(self.fields):
            raise MalformedStatement(
                f"Table '{self.table}': row has {len(values)} field(s), "
                f"expected {len(self.fields)}"
            )
        return dict(zip(self.fields, values))


class ConversionResult(NamedTuple):
    """Tables found in the dump, in order of first appearance, and the run outcome."""
    tables: list[TableInfo]
    outcome: ConversionOutcome
    inconsistencies: tuple[SchemaInconsistency, ...] = ()

    @property
    def total_rows(self) -> int:
        return sum(table.row_count for table in self.tables)

    @property
    def exit_status(self) -> int:
        return self.outcome.exit_status


@dataclass
class ConversionSettings:
    """Merged settings for one conversion run."""
    dump_path: str
    output_path: Optional[str] = None
    output_format: OutputFormat = OutputFormat.CSV
    table: Optional[str] = None
    output_directory: str = "."
    compress: bool = False
    delimiter: str = ","
    max_rows_per_sheet: int = 1048575
    encoding: str = "utf-8"
    chunk_size: int = 65536

    @property
    def summary_mode(self) -> bool:
        return self.table is None

    @property
    def all_tables(self) -> bool:
        return self.table == ALL_TABLES

    @classmethod
    def from_configs(
        cls,
        args: dict[str, Any],
        input_settings: dict[str, Any],
        output_settings: dict[str, Any]
    ) -> "ConversionSettings":
        """
        Create ConversionSettings by merging with priority: command line > config file > defaults.

        Raises:
            ConfigurationError: If the combination of settings cannot be honoured.
        """
        if args.get('table') is not None and args.get('all_tables'):
            raise ConfigurationError("Cannot specify both --table and --all-tables.")

        output_path = args.get('output_path')
        table = ALL_TABLES if args.get('all_tables') else args.get('table')
        if output_path is not None and table is None:
            raise ConfigurationError(
                "An output file holds a single table. Please specify --table or --all-tables."
            )

        settings: dict[str, Any] = {}
        for key in ['encoding', 'chunk_size']:
            if key in input_settings:
                settings[key] = input_settings[key]
        for key in ['compress', 'delimiter', 'max_rows_per_sheet']:
            if key in output_settings:
                settings[key] = output_settings[key]
        if output_settings.get('directory'):
            settings['output_directory'] = output_settings['directory']

        output_format = cls._resolve_format(
            args.get('out_format'), output_path, output_settings.get('format')
        )
        if output_format is OutputFormat.XLSX and output_path is None and table != ALL_TABLES:
            raise ConfigurationError("Cannot write xlsx to standard output. Please specify an output file.")

        return cls(
            dump_path=args['dump_path'],
            output_path=output_path,
            output_format=output_format,
            table=table,
            **settings
        )

    @staticmethod
    def _resolve_format(
        requested: Optional[str],
        output_path: Optional[str],
        configured: Optional[str]
    ) -> OutputFormat:
        """Pick the output format: explicit request, destination extension, config, CSV."""
        for candidate in (requested, output_path and OutputFormat.from_path(output_path), configured):
            if not candidate:
                continue
            if isinstance(candidate, OutputFormat):
                return candidate
            try:
                return OutputFormat(str(candidate).lower())
            except ValueError:
                raise ConfigurationError(f"Unsupported output format: {candidate}")

        if output_path is not None:
            raise ConfigurationError(
                "Cannot determine an output format based on the file extension. "
                "Please specify --out-format."
            )
        return OutputFormat.CSV
