"""
Creation of per-table emitters and the choice of where each one writes.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence, TextIO

from .emitters import OutputEmitter, create_emitter
from .models import ConversionSettings, OutputFormat, RowSchema
from .utils import sanitize_filename


class EmitterFactory:
    """Builds a bound emitter for a table according to the conversion settings.

    - all tables: one ``<table>.<ext>`` file per table in the output directory
    - single table: the output file, or stdout when none was given
    - summary: stdout
    """

    def __init__(self, settings: ConversionSettings, stdout: Optional[TextIO] = None):
        self.settings = settings
        self.stdout = stdout
        self._file_names: set[str] = set()

    def __call__(self, table: str, columns: Sequence[str]) -> OutputEmitter:
        schema = RowSchema.bind(table, columns)
        destination = self.resolve_destination(table)
        emitter = create_emitter(self.settings.output_format, destination, **self._options())
        try:
            emitter.bind(schema)
        except Exception:
            emitter.close()
            raise

        where = destination if isinstance(destination, Path) else 'stdout'
        logging.debug(f"Writing table '{table}' as {self.settings.output_format.value} to {where}")
        return emitter

    def resolve_destination(self, table: str) -> Path | TextIO:
        settings = self.settings
        if settings.all_tables:
            directory = Path(settings.output_path or settings.output_directory)
            directory.mkdir(parents=True, exist_ok=True)
            return directory / self._unique_file_name(table)
        if settings.output_path is not None and not settings.summary_mode:
            return Path(settings.output_path)
        return self.stdout or sys.stdout

    def _unique_file_name(self, table: str) -> str:
        """File name for a table, numbered when another table already maps to it.

        Names are compared case-insensitively, as on case-insensitive filesystems.
        """
        stem = sanitize_filename(table)
        extension = self.settings.output_format.extension
        name = f"{stem}.{extension}"
        number = 1
        while name.casefold() in self._file_names:
            number += 1
            name = f"{stem}_{number}.{extension}"
        self._file_names.add(name.casefold())
        if number > 1:
            logging.warning(f"Table '{table}' written to '{name}' to avoid overwriting another table")
        return name

    def _options(self) -> dict[str, Any]:
        settings = self.settings
        if settings.output_format is OutputFormat.XLSX:
            return {
                'max_rows_per_sheet': settings.max_rows_per_sheet,
                'encoding': settings.encoding,
            }
        options: dict[str, Any] = {
            'compress': settings.compress,
            'encoding': settings.encoding,
        }
        if settings.output_format is OutputFormat.CSV:
            options['delimiter'] = settings.delimiter
        return options
