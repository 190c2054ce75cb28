"""
Tests for the output writers.
"""

import csv
import json
import sqlite3

import pytest

from plugins.helpers.writer import DataType, DataWriter, ExcelWriter, OutputParams, SqliteWriter, WriteList

COLUMNS = [("Index", DataType.INTEGER), ("Name", DataType.TEXT), ("Data", DataType.BLOB)]


def read_table(db_path, table):
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute(f'SELECT * FROM "{table}"').fetchall()
    finally:
        conn.close()


class TestWriteList:
    """WriteList() fans rows out to the selected output types."""

    def test_blobs_raw_in_sqlite_hex_in_csv(self, output_params, tmp_path):
        rows = [[0, "first", b"\xde\xad"], [1, "second", b""]]

        WriteList("test data", "TestTable", rows, COLUMNS, output_params)

        assert read_table(output_params.output_db_path, "TestTable") == [(0, "first", b"\xde\xad"), (1, "second", b"")]
        with open(tmp_path / "output" / "TestTable.csv", newline="", encoding="utf-8") as f:
            lines = list(csv.reader(f))
        assert lines == [["Index", "Name", "Data"], ["0", "first", "DEAD"], ["1", "second", ""]]

    def test_rows_passed_in_are_not_modified(self, output_params):
        rows = [[0, "first", b"\x01"]]
        WriteList("test data", "TestTable", rows, COLUMNS, output_params)
        assert rows == [[0, "first", b"\x01"]]

    def test_dictionary_rows(self, output_params):
        rows = [{"Index": 3, "Name": "dict", "Data": b"\x02"}]
        WriteList("test data", "DictTable", rows, COLUMNS, output_params)
        assert read_table(output_params.output_db_path, "DictTable") == [(3, "dict", b"\x02")]

    def test_empty_list_writes_nothing(self, output_params, tmp_path, caplog):
        caplog.set_level("INFO", logger="MAIN.HELPERS.WRITER")
        WriteList("test data", "Empty", [], COLUMNS, output_params)
        assert not (tmp_path / "output" / "Empty.csv").exists()
        assert "No test data was retrieved!" in caplog.text

    def test_existing_table_gets_new_name(self, output_params):
        WriteList("test data", "Dup", [[0, "a", b""]], COLUMNS, output_params)
        WriteList("test data", "Dup", [[1, "b", b""]], COLUMNS, output_params)
        assert read_table(output_params.output_db_path, "Dup_01") == [(1, "b", b"")]

    def test_tsv_and_jsonl(self, tmp_path):
        params = OutputParams()
        params.output_path = str(tmp_path)
        params.write_tsv = True
        params.write_jsonl = True

        WriteList("test data", "Other", [[0, "tab\there", b"\x0f"]], COLUMNS, params)

        tsv_lines = (tmp_path / "Other.tsv").read_text(encoding="utf-16").splitlines()
        assert tsv_lines == ["Index\tName\tData", "0\ttab here\t0F"]
        jsonl_lines = (tmp_path / "Other.jsonl").read_text().splitlines()
        assert json.loads(jsonl_lines[0]) == {"Index": 0, "Name": "tab\there", "Data": "0F"}


class TestDataWriter:
    """Direct DataWriter behaviour."""

    def test_wrong_column_count_raises(self, output_params):
        writer = DataWriter(output_params, "Bad", COLUMNS)
        try:
            with pytest.raises(ValueError):
                writer.WriteRow([1, "too short"])
        finally:
            writer.FinishWrites()

    def test_blob_to_hex(self):
        assert DataWriter.BlobToHex(b"\x00\xab") == "00AB"
        assert DataWriter.BlobToHex(b"") == ""


class TestExcelWriter:
    """Excel output through the shared ExcelWriter."""

    def test_creates_xlsx(self, tmp_path):
        params = OutputParams()
        params.output_path = str(tmp_path)
        params.xlsx_writer = ExcelWriter()
        params.xlsx_writer.CreateXlsxFile(str(tmp_path / "bm_apt.xlsx"))
        params.write_xlsx = True

        WriteList("test data", "Sheet_Name", [[0, "x", b"\x01"]], COLUMNS, params)
        params.xlsx_writer.CommitAndCloseFile()

        assert (tmp_path / "bm_apt.xlsx").stat().st_size > 0


class TestSqliteWriter:

    def test_create_db_picks_next_free_name(self, tmp_path):
        first = SqliteWriter.CreateSqliteDb(str(tmp_path / "bm_apt.db"))
        second = SqliteWriter.CreateSqliteDb(str(tmp_path / "bm_apt.db"))
        assert first.endswith("bm_apt.db")
        assert second.endswith("bm_apt01.db")
