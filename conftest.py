import pytest

from config import settings
from library_ledger.library import Library
from library_ledger.ui_helpers import OUTPUT_MODE_ENV


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    # Point every default file path at a per-test directory
    monkeypatch.setattr(settings, "data_dir", str(tmp_path))
    monkeypatch.setattr(settings, "replay_ledger_on_startup", False)
    monkeypatch.setenv(OUTPUT_MODE_ENV, "plain")
    return tmp_path


@pytest.fixture
def lib(data_dir):
    lib = Library()
    yield lib
