"""
Unit tests for source.py
"""

import gzip

from sqldump_to_csv.source import open_dump


class TestOpenDump:
    """Tests for open_dump function."""

    def test_plain_file(self, tmp_path):
        path = tmp_path / "dump.sql"
        path.write_text("SELECT 1;\n")
        with open_dump(path) as f:
            assert f.read() == "SELECT 1;\n"

    def test_gzip_file(self, tmp_path):
        path = tmp_path / "dump.SQL.GZ"
        with gzip.open(path, "wb") as f:
            f.write(b"SELECT 1;\n")
        with open_dump(str(path)) as f:
            assert f.read() == "SELECT 1;\n"

    def test_invalid_bytes_become_surrogates(self, tmp_path):
        path = tmp_path / "dump.sql"
        path.write_bytes(b"'\xff'")
        with open_dump(path) as f:
            text = f.read()
        assert text == "'\udcff'"
        assert text.encode("utf-8", "surrogateescape") == b"'\xff'"

    def test_line_endings_preserved(self, tmp_path):
        path = tmp_path / "dump.sql"
        path.write_bytes(b"'a\r\nb'")
        with open_dump(path) as f:
            assert f.read() == "'a\r\nb'"

    def test_encoding(self, tmp_path):
        path = tmp_path / "dump.sql"
        path.write_bytes("'café'".encode("latin-1"))
        with open_dump(path, encoding="latin-1") as f:
            assert f.read() == "'café'"
