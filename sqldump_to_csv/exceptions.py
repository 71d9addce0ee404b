"""
Exceptions raised while converting SQL dumps.
"""

from typing import Optional


class SqlDumpError(Exception):
    """Base class for all conversion errors."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.message = message
        self.line = line
        if line is not None:
            message = f"{message} (line {line})"
        super().__init__(message)


class TruncatedInput(SqlDumpError):
    """The dump ended in the middle of a literal, comment or statement."""


class MalformedStatement(SqlDumpError):
    """A statement does not have the shape of a table definition or insert."""


class SchemaInconsistency(SqlDumpError):
    """A table was redefined with columns that differ from its first binding.

    Recoverable: reported and collected, never raised out of the parser.
    """

    def __init__(
        self,
        table: str,
        bound: list[str],
        redefined: list[str],
        line: Optional[int] = None
    ):
        self.table = table
        self.bound = list(bound)
        self.redefined = list(redefined)
        super().__init__(
            f"Table '{table}' redefined with {len(redefined)} column(s), "
            f"keeping first binding of {len(bound)} column(s)",
            line
        )


class ConfigurationError(SqlDumpError):
    """Invalid combination of settings, detected before conversion starts."""
