import logging
import plistlib
from pathlib import Path

import pytest

from plist_helpers import make_bookmark, make_sierra_archive, write_plist
from plugins.helpers.writer import OutputParams, SqliteWriter


@pytest.fixture()
def bookmark_data() -> bytes:
    return make_bookmark()


@pytest.fixture()
def btm_path(tmp_path: Path, bookmark_data: bytes) -> Path:
    """Binary backgrounditems.btm holding exactly one qualifying bookmark."""
    return write_plist(tmp_path / "backgrounditems.btm", make_sierra_archive(bookmark_data))


@pytest.fixture()
def app_loginitems_path(tmp_path: Path) -> Path:
    """XML loginitems.<UID>.plist as found in App bundles."""
    path = tmp_path / "loginitems.501.plist"
    login_items = {
        "com.example.helper": True,
        "com.example.agent": False,
        "Alias": b"\x00\x01\x02\x03",
    }
    return write_plist(path, login_items, fmt=plistlib.FMT_XML)


@pytest.fixture()
def output_params(tmp_path: Path) -> OutputParams:
    """OutputParams writing sqlite and csv into a fresh output folder."""
    out_dir = tmp_path / "output"
    out_dir.mkdir()
    params = OutputParams()
    params.output_path = str(out_dir)
    params.output_db_path = SqliteWriter.CreateSqliteDb(str(out_dir / "bm_apt.db"))
    params.write_sql = True
    params.write_csv = True
    return params


@pytest.fixture()
def main_logger():
    """Removes handlers added to the MAIN logger during a test."""
    logger = logging.getLogger("MAIN")
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers = handlers
    logger.setLevel(level)
