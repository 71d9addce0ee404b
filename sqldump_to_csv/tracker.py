"""
Recognition of table definitions and insert statements in a token stream.
"""

import logging
from typing import Any, NamedTuple, Optional

from .exceptions import MalformedStatement, SchemaInconsistency, TruncatedInput
from .models import TableInfo
from .scanner import DumpScanner, Token, TokenKind


class InsertStatement(NamedTuple):
    """Header of an insert statement whose value tuples are being read."""
    table: str
    columns: Optional[list[str]]
    line: int


class SchemaTracker:
    """Tracks table schemas while walking the statements of a dump.

    Statements other than table definitions and inserts are skipped whole.
    ``tables`` keeps every table seen so far, in order of first appearance.
    """

    NAME_KINDS = (TokenKind.WORD, TokenKind.IDENTIFIER, TokenKind.QUOTED)
    VALUE_KINDS = (TokenKind.NUMBER, TokenKind.STRING, TokenKind.QUOTED, TokenKind.BLOB)

    # Leading keywords of index and constraint clauses inside CREATE TABLE
    NON_COLUMN_KEYWORDS = (
        'PRIMARY', 'KEY', 'INDEX', 'UNIQUE', 'CONSTRAINT',
        'FOREIGN', 'FULLTEXT', 'SPATIAL', 'CHECK',
    )
    INSERT_MODIFIERS = ('LOW_PRIORITY', 'DELAYED', 'HIGH_PRIORITY', 'IGNORE')

    def __init__(self, scanner: DumpScanner, encoding: str = 'utf-8'):
        self.scanner = scanner
        self.encoding = encoding
        self.tables: dict[str, TableInfo] = {}
        self.inconsistencies: list[SchemaInconsistency] = []
        self.statement: Optional[InsertStatement] = None
        self.values_line = 0

    def next_insert(self) -> Optional[InsertStatement]:
        """Advance to the next insert statement; None at end of input.

        Table definitions passed on the way are recorded.
        """
        while True:
            token = self.scanner.next_token()
            if token.kind is TokenKind.EOF:
                self.statement = None
                return None
            if token.kind is TokenKind.TERMINATOR:
                continue
            if token.is_word('DELIMITER'):
                self._change_delimiter(token)
            elif token.is_word('CREATE'):
                self._parse_create(token)
            elif token.is_word('INSERT', 'REPLACE'):
                self.statement = self._parse_insert_header(token)
                logging.debug(
                    f"Insert into '{self.statement.table}' at line {self.statement.line}"
                )
                return self.statement
            else:
                self.scanner.skip_statement(token.line)

    def next_values(self) -> Optional[list[Any]]:
        """Read the next value tuple of the current insert; None once it is exhausted."""
        if self.statement is None:
            return None

        token = self.scanner.next_token()
        self.values_line = token.line
        if not token.is_punct('('):
            self._unexpected(token, "'('")

        values = []
        if self.scanner.peek_token().is_punct(')'):
            self.scanner.next_token()
        else:
            while True:
                values.append(self._read_value())
                token = self.scanner.next_token()
                if token.is_punct(')'):
                    break
                if not token.is_punct(','):
                    self._unexpected(token, "',' or ')'")

        token = self.scanner.next_token()
        if token.is_punct(','):
            return values
        if token.kind is TokenKind.TERMINATOR:
            self.statement = None
        elif token.is_word('ON'):
            # ON DUPLICATE KEY UPDATE ...
            self.scanner.skip_statement(token.line)
            self.statement = None
        else:
            self._unexpected(token, "',' or end of statement")
        return values

    def bind(self, statement: InsertStatement, arity: int) -> tuple[TableInfo, Optional[list[int]]]:
        """Resolve the columns the value tuples of ``statement`` are laid out in.

        Returns the table and, when the statement lists its columns in a
        different order than the table binding, the positions that put the
        values back into binding order.
        """
        table = self.tables.get(statement.table)
        columns = statement.columns

        if columns is None:
            if table is None:
                table = TableInfo(
                    name=statement.table,
                    columns=[f"column{i}" for i in range(1, arity + 1)]
                )
                self.tables[table.name] = table
                logging.debug(
                    f"Table '{table.name}' has no definition, using {arity} positional column(s)"
                )
            return table, None

        if len(set(columns)) != len(columns):
            raise MalformedStatement(
                f"Insert into '{statement.table}' lists a column twice", statement.line
            )
        if table is None:
            table = TableInfo(name=statement.table, columns=list(columns), defined=True)
            self.tables[table.name] = table
            return table, None
        if columns == table.columns:
            return table, None
        if table.anonymous and len(columns) == len(table.columns):
            table.columns = list(columns)
            table.defined = True
            return table, None
        if set(columns) == set(table.columns):
            position = {name: i for i, name in enumerate(columns)}
            return table, [position[name] for name in table.columns]

        raise MalformedStatement(
            f"Insert into '{statement.table}' lists columns {columns} "
            f"that do not match its binding {table.columns}",
            statement.line
        )

    # -- statements ---------------------------------------------------------

    def _change_delimiter(self, token: Token) -> None:
        delimiter = self.scanner.read_line()
        if not delimiter:
            raise MalformedStatement("DELIMITER without a value", token.line)
        logging.debug(f"Statement delimiter changed to '{delimiter}' at line {token.line}")
        self.scanner.delimiter = delimiter

    def _parse_create(self, create: Token) -> None:
        token = self.scanner.next_token()
        while token.is_word('TEMPORARY', 'OR', 'REPLACE'):
            token = self.scanner.next_token()
        if not token.is_word('TABLE'):
            if token.kind is not TokenKind.TERMINATOR:
                self.scanner.skip_statement(create.line)
            return

        if self.scanner.peek_token().is_word('IF'):
            for keyword in ('IF', 'NOT', 'EXISTS'):
                token = self.scanner.next_token()
                if not token.is_word(keyword):
                    self._unexpected(token, keyword)

        table = self._read_table_name()
        if not self.scanner.peek_token().is_punct('('):
            # CREATE TABLE ... LIKE / AS SELECT carries no column list
            self.scanner.skip_statement(create.line)
            return
        self.scanner.next_token()
        columns = self._read_column_definitions(table, create.line)
        self.scanner.skip_statement(create.line)
        self._define(table, columns, create.line)

    def _read_column_definitions(self, table: str, line: int) -> list[str]:
        columns = []
        expect_name = True
        depth = 0
        while True:
            token = self.scanner.next_token()
            if token.kind is TokenKind.EOF:
                raise TruncatedInput(f"Definition of table '{table}' not terminated", line)
            if token.kind is TokenKind.TERMINATOR:
                raise MalformedStatement(f"Unbalanced parentheses in definition of table '{table}'", line)

            if expect_name:
                expect_name = False
                if token.kind in self.NAME_KINDS and not token.is_word(*self.NON_COLUMN_KEYWORDS):
                    columns.append(token.value)
                    continue

            if token.is_punct('('):
                depth += 1
            elif token.is_punct(')'):
                if depth == 0:
                    return columns
                depth -= 1
            elif token.is_punct(',') and depth == 0:
                expect_name = True

    def _define(self, name: str, columns: list[str], line: int) -> None:
        table = self.tables.get(name)
        if table is None:
            self.tables[name] = TableInfo(name=name, columns=columns, defined=True)
            logging.debug(f"Table '{name}' defined with {len(columns)} column(s) at line {line}")
        elif table.columns == columns:
            table.defined = True
        elif table.anonymous and len(table.columns) == len(columns):
            logging.info(f"Table '{name}': naming {len(columns)} positional column(s) from its definition")
            table.columns = columns
            table.defined = True
        else:
            inconsistency = SchemaInconsistency(name, table.columns, columns, line)
            logging.warning(str(inconsistency))
            self.inconsistencies.append(inconsistency)

    def _parse_insert_header(self, insert: Token) -> InsertStatement:
        token = self.scanner.next_token()
        while token.is_word(*self.INSERT_MODIFIERS):
            token = self.scanner.next_token()
        if token.is_word('INTO'):
            token = self.scanner.next_token()
        table = self._read_table_name(token)

        columns = None
        if self.scanner.peek_token().is_punct('('):
            self.scanner.next_token()
            columns = self._read_name_list()

        token = self.scanner.next_token()
        if not token.is_word('VALUES', 'VALUE'):
            self._unexpected(token, "VALUES")
        if not self.scanner.peek_token().is_punct('('):
            self._unexpected(self.scanner.next_token(), "'('")
        return InsertStatement(table=table, columns=columns, line=insert.line)

    # -- pieces -------------------------------------------------------------

    def _read_name(self, token: Optional[Token] = None) -> str:
        if token is None:
            token = self.scanner.next_token()
        if token.kind not in self.NAME_KINDS:
            self._unexpected(token, "a name")
        return token.value

    def _read_table_name(self, token: Optional[Token] = None) -> str:
        """Read a possibly qualified table name, keeping the table part."""
        name = self._read_name(token)
        while self.scanner.peek_token().is_punct('.'):
            self.scanner.next_token()
            name = self._read_name()
        return name

    def _read_name_list(self) -> list[str]:
        names = []
        while True:
            names.append(self._read_name())
            token = self.scanner.next_token()
            if token.is_punct(')'):
                return names
            if not token.is_punct(','):
                self._unexpected(token, "',' or ')'")

    def _read_value(self) -> Any:
        token = self.scanner.next_token()
        if token.kind in self.VALUE_KINDS:
            return token.value

        if token.kind is TokenKind.PUNCT and token.value in '-+':
            operand = self._read_value()
            if isinstance(operand, (int, float)):
                return -operand if token.value == '-' else operand
            raise MalformedStatement(f"Sign applied to a non-numeric value {operand!r}", token.line)

        if token.kind is TokenKind.WORD:
            keyword = token.value.upper()
            if keyword == 'NULL':
                return None
            if keyword in ('TRUE', 'FALSE'):
                return int(keyword == 'TRUE')
            if keyword.startswith('_') and self.scanner.peek_token().kind in self.VALUE_KINDS:
                # Character set introducer, e.g. _binary '...' or _utf8mb4'...'
                value = self.scanner.next_token().value
                if keyword == '_BINARY' and isinstance(value, str):
                    return value.encode(self.encoding, 'surrogateescape')
                return value

        self._unexpected(token, "a literal value")

    @staticmethod
    def _unexpected(token: Token, expected: str) -> None:
        if token.kind is TokenKind.EOF:
            raise TruncatedInput(f"Input ended where {expected} was expected", token.line)
        raise MalformedStatement(f"Expected {expected}, found {token.value!r}", token.line)
