"""
Unit tests for tracker.py
"""

import io
import logging

import pytest

from sqldump_to_csv.exceptions import MalformedStatement, TruncatedInput
from sqldump_to_csv.scanner import DumpScanner
from sqldump_to_csv.tracker import InsertStatement, SchemaTracker


def make_tracker(text):
    return SchemaTracker(DumpScanner(io.StringIO(text)))


def read_statements(tracker):
    """Return (table, columns, rows) for every insert statement."""
    statements = []
    while True:
        statement = tracker.next_insert()
        if statement is None:
            return statements
        rows = []
        while True:
            values = tracker.next_values()
            if values is None:
                break
            rows.append(values)
        statements.append((statement.table, statement.columns, rows))


class TestCreateTable:
    """Tests for table definitions."""

    def test_columns_without_keys(self):
        """Index and constraint clauses are not columns."""
        tracker = make_tracker(
            "CREATE TABLE `users` (\n"
            "  `id` int(11) NOT NULL AUTO_INCREMENT,\n"
            "  `name` varchar(255) DEFAULT 'a,b',\n"
            "  `price` decimal(10,2) DEFAULT NULL,\n"
            "  PRIMARY KEY (`id`),\n"
            "  UNIQUE KEY `name_idx` (`name`),\n"
            "  KEY `price_idx` (`price`),\n"
            "  CONSTRAINT `fk` FOREIGN KEY (`id`) REFERENCES `other` (`id`)\n"
            ") ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;\n"
        )
        assert tracker.next_insert() is None
        table = tracker.tables["users"]
        assert table.columns == ["id", "name", "price"]
        assert table.defined
        assert table.row_count == 0

    def test_unquoted_names(self):
        tracker = make_tracker("create table t (a int, b text);")
        tracker.next_insert()
        assert tracker.tables["t"].columns == ["a", "b"]

    def test_if_not_exists_and_qualified_name(self):
        tracker = make_tracker("CREATE TABLE IF NOT EXISTS `shop`.`orders` (`id` int);")
        tracker.next_insert()
        assert list(tracker.tables) == ["orders"]

    def test_temporary_table(self):
        tracker = make_tracker("CREATE TEMPORARY TABLE t (a int);")
        tracker.next_insert()
        assert tracker.tables["t"].columns == ["a"]

    def test_create_like_is_skipped(self):
        tracker = make_tracker("CREATE TABLE t LIKE u; INSERT INTO v VALUES (1);")
        statement = tracker.next_insert()
        assert statement.table == "v"
        assert "t" not in tracker.tables

    def test_other_create_statements_are_skipped(self):
        tracker = make_tracker(
            "CREATE DATABASE shop; CREATE INDEX i ON t (a); CREATE VIEW v AS SELECT 1;"
        )
        assert tracker.next_insert() is None
        assert tracker.tables == {}

    def test_bare_create_keeps_next_statement(self):
        tracker = make_tracker("CREATE;\nINSERT INTO t VALUES (1);\nINSERT INTO t VALUES (2);")
        assert read_statements(tracker) == [("t", None, [[1]]), ("t", None, [[2]])]

    def test_unterminated_definition(self):
        tracker = make_tracker("CREATE TABLE t (a int, b varchar(10)")
        with pytest.raises(TruncatedInput):
            tracker.next_insert()


class TestRedefinition:
    """Tests for tables defined more than once."""

    def test_identical_redefinition_is_silent(self):
        tracker = make_tracker("CREATE TABLE t (a int); CREATE TABLE t (a int);")
        tracker.next_insert()
        assert tracker.inconsistencies == []

    def test_different_redefinition_keeps_first(self, caplog):
        """A conflicting definition is reported and the first binding kept."""
        tracker = make_tracker("CREATE TABLE t (a int, b int);\nCREATE TABLE t (a int, b int, c int);")
        with caplog.at_level(logging.WARNING):
            tracker.next_insert()

        assert tracker.tables["t"].columns == ["a", "b"]
        assert len(tracker.inconsistencies) == 1
        inconsistency = tracker.inconsistencies[0]
        assert inconsistency.table == "t"
        assert inconsistency.bound == ["a", "b"]
        assert inconsistency.redefined == ["a", "b", "c"]
        assert inconsistency.line == 2
        assert "redefined with 3 column(s)" in caplog.text

    def test_definition_names_positional_columns(self):
        """A definition after positional inserts names the columns when arity matches."""
        tracker = make_tracker("INSERT INTO t VALUES (1,2); CREATE TABLE t (x int, y int);")
        statement = tracker.next_insert()
        values = tracker.next_values()
        tracker.bind(statement, len(values))
        assert tracker.tables["t"].columns == ["column1", "column2"]

        assert tracker.next_insert() is None
        assert tracker.tables["t"].columns == ["x", "y"]
        assert tracker.inconsistencies == []

    def test_definition_with_other_arity_is_inconsistent(self):
        tracker = make_tracker("INSERT INTO t VALUES (1,2); CREATE TABLE t (x int);")
        statement = tracker.next_insert()
        tracker.bind(statement, len(tracker.next_values()))
        tracker.next_insert()

        assert tracker.tables["t"].columns == ["column1", "column2"]
        assert len(tracker.inconsistencies) == 1


class TestInsertStatements:
    """Tests for insert statement headers and value tuples."""

    def test_multi_row_insert(self):
        tracker = make_tracker("INSERT INTO `t` VALUES (1,'a'),(2,'b');")
        assert read_statements(tracker) == [("t", None, [[1, "a"], [2, "b"]])]

    def test_insert_with_column_list(self):
        tracker = make_tracker("INSERT INTO t (`a`, b) VALUES (1, 2);")
        assert read_statements(tracker) == [("t", ["a", "b"], [[1, 2]])]

    def test_statement_line(self):
        tracker = make_tracker("\n\nINSERT INTO t VALUES (1);")
        assert tracker.next_insert() == InsertStatement("t", None, 3)

    def test_modifiers_and_replace(self):
        tracker = make_tracker(
            "INSERT IGNORE INTO a VALUES (1); REPLACE INTO b VALUES (2); INSERT c VALUE (3);"
        )
        assert [table for table, _, _ in read_statements(tracker)] == ["a", "b", "c"]

    def test_value_kinds(self):
        tracker = make_tracker(
            "INSERT INTO t VALUES (NULL, TRUE, false, - 4, +2.5, _binary 'ab', _utf8mb4'x', 0x01);"
        )
        rows = read_statements(tracker)[0][2]
        assert rows == [[None, 1, 0, -4, 2.5, b"ab", "x", b"\x01"]]

    def test_binary_introducer_keeps_raw_bytes(self):
        """Undecodable bytes read as surrogate escapes come back as the original bytes."""
        raw = b"\xff\x00".decode("utf-8", "surrogateescape")
        tracker = make_tracker(f"INSERT INTO t VALUES (_binary '{raw}');")
        assert read_statements(tracker)[0][2] == [[b"\xff\x00"]]

    def test_empty_tuple(self):
        tracker = make_tracker("INSERT INTO t VALUES ();")
        assert read_statements(tracker)[0][2] == [[]]

    def test_on_duplicate_key_update(self):
        tracker = make_tracker(
            "INSERT INTO t VALUES (1) ON DUPLICATE KEY UPDATE a = VALUES(a);\n"
            "INSERT INTO t VALUES (2);"
        )
        rows = [rows for _, _, rows in read_statements(tracker)]
        assert rows == [[[1]], [[2]]]

    def test_other_statements_are_skipped(self):
        tracker = make_tracker(
            "SET NAMES utf8mb4;\n"
            "DROP TABLE IF EXISTS `t`;\n"
            "LOCK TABLES `t` WRITE;\n"
            "/*!40000 ALTER TABLE `t` DISABLE KEYS */;\n"
            "INSERT INTO t VALUES ('x;y');\n"
            "UNLOCK TABLES;\n"
        )
        assert read_statements(tracker) == [("t", None, [["x;y"]])]

    def test_delimiter_change(self):
        tracker = make_tracker(
            "DELIMITER ;;\n"
            "CREATE TRIGGER trg BEFORE INSERT ON t FOR EACH ROW BEGIN SET @a = 1; END ;;\n"
            "DELIMITER ;\n"
            "INSERT INTO t VALUES (1);\n"
        )
        assert read_statements(tracker) == [("t", None, [[1]])]
        assert tracker.scanner.delimiter == ";"

    def test_missing_values_keyword(self):
        tracker = make_tracker("INSERT INTO t SET a = 1;")
        with pytest.raises(MalformedStatement):
            tracker.next_insert()

    def test_insert_select_is_malformed(self):
        tracker = make_tracker("INSERT INTO t SELECT * FROM u;")
        with pytest.raises(MalformedStatement):
            tracker.next_insert()

    def test_expression_value_is_malformed(self):
        tracker = make_tracker("INSERT INTO t VALUES (NOW());")
        tracker.next_insert()
        with pytest.raises(MalformedStatement) as exc_info:
            tracker.next_values()
        assert exc_info.value.line == 1

    def test_truncated_tuple(self):
        tracker = make_tracker("INSERT INTO t VALUES (1, 'a'")
        tracker.next_insert()
        with pytest.raises(TruncatedInput):
            tracker.next_values()

    def test_missing_terminator(self):
        tracker = make_tracker("INSERT INTO t VALUES (1)")
        tracker.next_insert()
        with pytest.raises(TruncatedInput):
            tracker.next_values()

    def test_truncated_in_skipped_statement(self):
        tracker = make_tracker("SET x = 1")
        with pytest.raises(TruncatedInput):
            tracker.next_insert()


class TestBind:
    """Tests for binding insert statements to table columns."""

    def test_positional_columns_for_unknown_table(self):
        tracker = make_tracker("")
        table, order = tracker.bind(InsertStatement("t", None, 1), 3)
        assert table.columns == ["column1", "column2", "column3"]
        assert table.anonymous
        assert order is None

    def test_first_binding_wins(self):
        tracker = make_tracker("")
        first, _ = tracker.bind(InsertStatement("t", None, 1), 2)
        second, _ = tracker.bind(InsertStatement("t", None, 5), 3)
        assert second is first
        assert second.columns == ["column1", "column2"]

    def test_column_list_defines_unknown_table(self):
        tracker = make_tracker("")
        table, order = tracker.bind(InsertStatement("t", ["a", "b"], 1), 2)
        assert table.columns == ["a", "b"]
        assert table.defined
        assert order is None

    def test_column_list_in_other_order(self):
        tracker = make_tracker("CREATE TABLE t (a int, b int, c int);")
        tracker.next_insert()
        table, order = tracker.bind(InsertStatement("t", ["c", "a", "b"], 2), 3)
        values = ["vc", "va", "vb"]
        assert [values[i] for i in order] == ["va", "vb", "vc"]
        assert table.columns == ["a", "b", "c"]

    def test_column_list_names_positional_columns(self):
        tracker = make_tracker("")
        tracker.bind(InsertStatement("t", None, 1), 2)
        table, order = tracker.bind(InsertStatement("t", ["x", "y"], 2), 2)
        assert table.columns == ["x", "y"]
        assert order is None

    def test_column_list_mismatch(self):
        tracker = make_tracker("CREATE TABLE t (a int, b int);")
        tracker.next_insert()
        with pytest.raises(MalformedStatement) as exc_info:
            tracker.bind(InsertStatement("t", ["a", "z"], 4), 2)
        assert exc_info.value.line == 4

    def test_column_listed_twice(self):
        tracker = make_tracker("")
        with pytest.raises(MalformedStatement):
            tracker.bind(InsertStatement("t", ["a", "a"], 1), 2)
