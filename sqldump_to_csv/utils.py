"""
Utility functions for the SQL dump converter.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Any

from .models import ConversionResult

UNSAFE_FILENAME_RE = re.compile(r'[^\w.-]')


def setup_logging(log_settings: dict[str, Any]) -> None:
    """Setup logging configuration.

    Log records go to stderr; stdout is reserved for converted rows and summaries.
    """
    log_level = getattr(logging, log_settings.get('level', 'INFO').upper())
    log_file = log_settings.get('file')

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def sanitize_filename(name: str) -> str:
    """Make a table name usable as a file name."""
    name = UNSAFE_FILENAME_RE.sub('_', name).strip('.')
    return name or '_'


def log_conversion_result(result: ConversionResult) -> None:
    """Log the per-table row counts of a finished conversion."""
    logging.info("=" * 50)
    logging.info("CONVERSION COMPLETE")
    logging.info(f"Tables: {len(result.tables)}")
    logging.info(f"Total Rows: {result.total_rows}")
    for table in result.tables:
        logging.info(f"  ✓ {table.name}: {len(table.columns)} columns, {table.row_count} rows")

    if result.inconsistencies:
        logging.warning(f"Schema inconsistencies: {len(result.inconsistencies)}")
        for inconsistency in result.inconsistencies:
            logging.warning(f"  - {inconsistency}")
