"""
Tests for the LOGINITEMS plugin.
"""

import hashlib
import logging
import sqlite3

import pytest

from plist_helpers import make_bookmark, write_plist
from plugins import loginitems
from plugins.helpers.common import CommonFunctions


def read_table(db_path, table):
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute(f'SELECT * FROM "{table}"').fetchall()
    finally:
        conn.close()


class TestPluginMetadata:

    def test_required_variables(self):
        assert getattr(loginitems, "__Plugin_Name") == "LOGINITEMS"
        assert "ARTIFACTONLY" in getattr(loginitems, "__Plugin_Modes")
        assert getattr(loginitems, "__Plugin_ArtifactOnly_Usage")


class TestPluginStartStandalone:
    """Plugin_Start_Standalone() processes a list of input files."""

    def test_btm_bookmark_written(self, btm_path, bookmark_data, output_params):
        loginitems.Plugin_Start_Standalone([str(btm_path)], output_params)

        rows = read_table(output_params.output_db_path, "LoginItemsBookmarks")
        assert len(rows) == 1
        index, size, sha256, data, _version, source = rows[0]
        assert index == 0
        assert size == len(bookmark_data)
        assert sha256 == hashlib.sha256(bookmark_data).hexdigest()
        assert data == bookmark_data
        assert source == str(btm_path)

    def test_app_loginitems_entries_written(self, app_loginitems_path, output_params):
        loginitems.Plugin_Start_Standalone([str(app_loginitems_path)], output_params)

        rows = read_table(output_params.output_db_path, "LoginItemsEntries")
        assert sorted(row[0] for row in rows) == ["Alias", "com.example.agent", "com.example.helper"]
        alias = [row for row in rows if row[0] == "Alias"][0]
        assert alias[2] == b"\x00\x01\x02\x03"
        helper = [row for row in rows if row[0] == "com.example.helper"][0]
        assert helper[1] == "True"

    def test_bad_file_does_not_stop_batch(self, tmp_path, btm_path, output_params, caplog):
        garbage = tmp_path / "garbage.btm"
        garbage.write_bytes(b"not a plist at all")
        caplog.set_level(logging.INFO, logger="MAIN.LOGINITEMS")

        loginitems.Plugin_Start_Standalone([str(garbage), str(btm_path)], output_params)

        assert len(read_table(output_params.output_db_path, "LoginItemsBookmarks")) == 1
        errors = [r for r in caplog.records if r.levelno == logging.ERROR and r.name == "MAIN.LOGINITEMS"]
        assert len(errors) == 1
        assert "garbage.btm" in errors[0].getMessage()

    def test_incompatible_layout_logged(self, tmp_path, output_params, caplog):
        path = write_plist(tmp_path / "other.btm", {"$objects": "not an array"})
        caplog.set_level(logging.INFO, logger="MAIN.LOGINITEMS")

        loginitems.Plugin_Start_Standalone([str(path)], output_params)

        assert "Unsupported plist layout" in caplog.text
        assert "Expected array" in caplog.text

    def test_nothing_found(self, tmp_path, output_params, caplog):
        path = write_plist(tmp_path / "empty.btm", {"$objects": ["$null"]})
        caplog.set_level(logging.INFO, logger="MAIN.LOGINITEMS")

        loginitems.Plugin_Start_Standalone([str(path)], output_params)

        assert "No login items artifacts found" in caplog.text
        assert not (tmp_path / "output" / "LoginItemsBookmarks.csv").exists()

    def test_bookmarks_from_several_files_in_one_table(self, tmp_path, btm_path, output_params):
        second = write_plist(tmp_path / "BackgroundItems-v4.btm", {"$objects": [b"\x01", {"d": make_bookmark(80)}]})

        loginitems.Plugin_Start_Standalone([str(btm_path), str(second)], output_params)

        rows = read_table(output_params.output_db_path, "LoginItemsBookmarks")
        assert [(row[0], row[1], row[5]) for row in rows] == [
            (0, 200, str(btm_path)),
            (0, 1, str(second)),
            (1, 80, str(second)),
        ]


class TestGetBtmVersion:
    """get_btm_version() reads version from the deserialized archive."""

    def test_dictionary_root(self, monkeypatch):
        monkeypatch.setattr(CommonFunctions, "ReadPlist",
                            staticmethod(lambda path, deserialize=False: (True, {"version": 2}, "")))
        assert loginitems.get_btm_version("x.btm") == 2

    def test_list_root(self, monkeypatch):
        plist = [{"version": 4}, {"store": {}}]
        monkeypatch.setattr(CommonFunctions, "ReadPlist",
                            staticmethod(lambda path, deserialize=False: (True, plist, "")))
        assert loginitems.get_btm_version("x.btm") == 4

    def test_failure_returns_empty(self, monkeypatch):
        monkeypatch.setattr(CommonFunctions, "ReadPlist",
                            staticmethod(lambda path, deserialize=False: (False, None, "bad")))
        assert loginitems.get_btm_version("x.btm") == ""


@pytest.mark.parametrize("name, expected", [
    ("loginitems.501.plist", True),
    ("LoginItems.0.PLIST", True),
    ("backgrounditems.btm", False),
    ("com.apple.loginitems.plist", False),
])
def test_is_app_login_items_plist(name, expected):
    assert loginitems.IsAppLoginItemsPlist("/some/folder/" + name) == expected
