"""
SQL Dump Converter
==================
Converts relational database dumps (CREATE TABLE + INSERT INTO statements,
optionally gzip-compressed) into one output per table:
- CSV
- JSON lines
- XLSX workbooks
- Per-table summary of row counts
"""

__version__ = "1.0.0"

from .config import ConfigLoader
from .converter import DumpConverter, run_conversion
from .emitters import CsvEmitter, JsonEmitter, OutputEmitter, XlsxEmitter, create_emitter
from .exceptions import (
    ConfigurationError,
    MalformedStatement,
    SchemaInconsistency,
    SqlDumpError,
    TruncatedInput,
)
from .factory import EmitterFactory
from .main import main
from .models import (
    ALL_TABLES,
    ConversionOutcome,
    ConversionResult,
    ConversionSettings,
    OutputFormat,
    RowSchema,
    TableInfo,
)
from .reader import DumpRow, SqlDumpReader
from .scanner import DumpScanner, Token, TokenKind
from .source import open_dump
from .tracker import InsertStatement, SchemaTracker
from .utils import log_conversion_result, sanitize_filename, setup_logging

__all__ = [
    # Main entry point
    "main",
    "run_conversion",
    # Core classes
    "ConfigLoader",
    "DumpConverter",
    "DumpScanner",
    "EmitterFactory",
    "SchemaTracker",
    "SqlDumpReader",
    # Emitters
    "CsvEmitter",
    "JsonEmitter",
    "OutputEmitter",
    "XlsxEmitter",
    "create_emitter",
    # Models
    "ALL_TABLES",
    "ConversionOutcome",
    "ConversionResult",
    "ConversionSettings",
    "DumpRow",
    "InsertStatement",
    "OutputFormat",
    "RowSchema",
    "TableInfo",
    "Token",
    "TokenKind",
    # Exceptions
    "ConfigurationError",
    "MalformedStatement",
    "SchemaInconsistency",
    "SqlDumpError",
    "TruncatedInput",
    # Utilities
    "log_conversion_result",
    "open_dump",
    "sanitize_filename",
    "setup_logging",
]
