"""
Output emitters: per-table sinks that serialize rows to CSV, JSON lines or XLSX.
"""

import base64
import csv
import gzip
import json
import math
import re
from pathlib import Path
from typing import Any, Optional, Sequence, TextIO

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE

from .exceptions import ConfigurationError, MalformedStatement
from .models import OutputFormat, RowSchema


def _number_or_text(value: float) -> float | str:
    """Non-finite floats (overflowing literals such as 1e400) as text."""
    return value if math.isfinite(value) else repr(value)


class OutputEmitter:
    """Base class for emitters, with context manager support.

    Lifecycle: ``bind`` once, ``emit`` for every row in arrival order, then
    ``close``, which flushes buffered state and releases the destination.
    """

    format: OutputFormat

    def __init__(self, destination: Path | TextIO):
        self.destination = destination
        self.schema: Optional[RowSchema] = None
        self.rows_emitted = 0
        self.closed = False
        self._type_formatters: dict[type, Any] = {}

    def __enter__(self) -> "OutputEmitter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def bind(self, schema: RowSchema) -> None:
        """Attach the row shape and write whatever precedes the first row."""
        self._check_open()
        if self.schema is not None:
            raise ValueError(f"Emitter for '{self.schema.table}' is already bound")
        self.schema = schema
        self._start()

    def emit(self, values: Sequence[Any]) -> None:
        """Append one row."""
        self._check_open()
        if self.schema is None:
            raise ValueError("Emitter must be bound before emitting rows")
        if len(values) != len(self.schema):
            raise MalformedStatement(
                f"Table '{self.schema.table}': row has {len(values)} field(s), "
                f"expected {len(self.schema)}"
            )
        self._write(values)
        self.rows_emitted += 1

    def close(self) -> None:
        """Flush and release the destination. Further calls do nothing."""
        if self.closed:
            return
        self.closed = True
        self._finish()

    def _format_value(self, value: Any) -> Any:
        """Convert a field value using the type-based formatter table."""
        formatter = self._type_formatters.get(type(value))
        if formatter:
            return formatter(value)
        return value

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError(f"{type(self).__name__} is closed")

    def _start(self) -> None:
        raise NotImplementedError

    def _write(self, values: Sequence[Any]) -> None:
        raise NotImplementedError

    def _finish(self) -> None:
        raise NotImplementedError


class TextEmitter(OutputEmitter):
    """Emitter writing to a text file (optionally gzip-compressed) or an open stream."""

    def __init__(
        self,
        destination: Path | TextIO,
        compress: bool = False,
        encoding: str = 'utf-8'
    ):
        super().__init__(destination)
        self.compress = compress
        self.encoding = encoding
        self.file_path: Optional[Path] = None
        self._handle: Optional[TextIO] = None

    def _start(self) -> None:
        if isinstance(self.destination, (str, Path)):
            self.file_path, self._handle = self._open_output_file(Path(self.destination))
        else:
            self._handle = self.destination
        self._write_header()

    def _open_output_file(self, output_path: Path) -> tuple[Path, TextIO]:
        """Open output file with optional compression."""
        if self.compress:
            if output_path.suffix.lower() != '.gz':
                output_path = Path(str(output_path) + '.gz')
            file_handle = gzip.open(
                output_path, 'wt', encoding=self.encoding, errors='surrogateescape', newline=''
            )
        else:
            file_handle = open(
                output_path, 'w', encoding=self.encoding, errors='surrogateescape', newline=''
            )
        return output_path, file_handle

    def _write_header(self) -> None:
        pass

    def _finish(self) -> None:
        if self._handle is None:
            return
        if self.file_path is not None:
            self._handle.close()
        else:
            self._handle.flush()


class CsvEmitter(TextEmitter):
    """One header line of column names, then one delimited line per row."""

    format = OutputFormat.CSV

    def __init__(
        self,
        destination: Path | TextIO,
        compress: bool = False,
        encoding: str = 'utf-8',
        delimiter: str = ','
    ):
        super().__init__(destination, compress, encoding)
        self.delimiter = delimiter
        self._writer = None
        self._type_formatters = {
            type(None): lambda v: '',
            bytes: lambda v: v.hex(),
            float: repr,
        }

    def _write_header(self) -> None:
        self._writer = csv.writer(self._handle, delimiter=self.delimiter, quoting=csv.QUOTE_MINIMAL)
        self._writer.writerow(self.schema.header)

    def _write(self, values: Sequence[Any]) -> None:
        self._writer.writerow([self._format_value(v) for v in values])


class JsonEmitter(TextEmitter):
    """JSON lines: one object per row, keyed by column name."""

    format = OutputFormat.JSON

    def __init__(
        self,
        destination: Path | TextIO,
        compress: bool = False,
        encoding: str = 'utf-8'
    ):
        super().__init__(destination, compress, encoding)
        self._type_formatters = {
            bytes: lambda v: base64.b64encode(v).decode('ascii'),
            float: _number_or_text,
        }

    def _write(self, values: Sequence[Any]) -> None:
        record = self.schema.as_dict([self._format_value(v) for v in values])
        self._handle.write(json.dumps(record, ensure_ascii=False, allow_nan=False))
        self._handle.write('\n')


class XlsxEmitter(OutputEmitter):
    """Workbook with one sheet per table, continued on extra sheets when a sheet fills up.

    The workbook is only serialized on close.
    """

    format = OutputFormat.XLSX

    MAX_ROWS_PER_SHEET = 1048575  # Excel's row limit, minus the header row
    MAX_TITLE_LENGTH = 31
    INVALID_TITLE_RE = re.compile(r'[\[\]:*?/\\]')

    def __init__(
        self,
        destination: Path | TextIO,
        max_rows_per_sheet: int = MAX_ROWS_PER_SHEET,
        encoding: str = 'utf-8'
    ):
        if not isinstance(destination, (str, Path)):
            raise ConfigurationError("Cannot write xlsx to a stream. Please specify an output file.")
        super().__init__(Path(destination))
        self.file_path = Path(destination)
        self.max_rows_per_sheet = max_rows_per_sheet
        self.encoding = encoding
        self.sheet_count = 0
        self._workbook: Optional[Workbook] = None
        self._sheet = None
        self._sheet_rows = 0
        self._type_formatters = {
            bytes: lambda v: v.hex(),
            float: _number_or_text,
            str: self._clean_text,
        }

    def _start(self) -> None:
        self._workbook = Workbook(write_only=True)
        self._add_sheet()

    def _add_sheet(self) -> None:
        self.sheet_count += 1
        self._sheet = self._workbook.create_sheet(title=self.sheet_title(self.schema.table, self.sheet_count))
        self._sheet.append([self._clean_text(name) for name in self.schema.header])
        self._sheet_rows = 0

    def _write(self, values: Sequence[Any]) -> None:
        if self._sheet_rows >= self.max_rows_per_sheet:
            self._add_sheet()
        self._sheet.append([self._format_value(v) for v in values])
        self._sheet_rows += 1

    def _finish(self) -> None:
        if self._workbook is None:
            return
        self._workbook.save(self.file_path)
        self._workbook = None

    def _clean_text(self, value: str) -> str:
        """Drop characters an XLSX cell cannot hold."""
        if not value.isascii():
            value = value.encode(self.encoding, 'surrogateescape').decode(self.encoding, 'replace')
        return ILLEGAL_CHARACTERS_RE.sub('', value)

    @classmethod
    def sheet_title(cls, table: str, number: int = 1) -> str:
        base = cls.INVALID_TITLE_RE.sub('_', table) or 'Sheet'
        suffix = f"_{number}" if number > 1 else ''
        return base[:cls.MAX_TITLE_LENGTH - len(suffix)] + suffix


EMITTERS: dict[OutputFormat, type[OutputEmitter]] = {
    OutputFormat.CSV: CsvEmitter,
    OutputFormat.JSON: JsonEmitter,
    OutputFormat.XLSX: XlsxEmitter,
}


def create_emitter(output_format: OutputFormat, destination: Path | TextIO, **options: Any) -> OutputEmitter:
    """Instantiate the emitter class for ``output_format``."""
    try:
        emitter_class = EMITTERS[output_format]
    except KeyError:
        raise ConfigurationError(f"Unsupported output format: {output_format}")
    return emitter_class(destination, **options)
