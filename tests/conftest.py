import os
import tempfile

import pytest

# main wires a store at import time; keep it out of the working tree
os.environ.setdefault("MICROBUS_DATA_DIR", tempfile.mkdtemp(prefix="microbus-test-"))
os.environ.setdefault("LOGO_SOURCE", "")
os.environ.setdefault("PAID_SEAL_SOURCE", "")
os.environ.setdefault("UNPAID_SEAL_SOURCE", "")

from models import DEFAULT_SETTINGS  # noqa: E402
from persistence import JSONStore, SQLiteStore  # noqa: E402


@pytest.fixture
def fares():
    return dict(DEFAULT_SETTINGS["fares"])


@pytest.fixture
def json_store(tmp_path):
    return JSONStore(str(tmp_path / "store.json"))


@pytest.fixture
def sqlite_store(tmp_path):
    store = SQLiteStore(str(tmp_path / "microbus.db"))
    yield store
    store.conn.close()


@pytest.fixture(params=["json", "db"])
def store(request, tmp_path):
    if request.param == "db":
        s = SQLiteStore(str(tmp_path / "microbus.db"))
        yield s
        s.conn.close()
    else:
        yield JSONStore(str(tmp_path / "store.json"))


@pytest.fixture
def app_client(tmp_path):
    import main

    store = JSONStore(str(tmp_path / "store.json"))
    main.wire_store(store, cache_path=str(tmp_path / "settings_cache.json"))
    main.app.config["TESTING"] = True
    with main.app.test_client() as client:
        client.store = store
        yield client


@pytest.fixture
def make_booking():
    """Factory for a 3-day In Garrison reservation."""
    def _make(**overrides):
        row = {
            "rankName": "Maj Rahman",
            "unit": "9 Sig Bn",
            "garrisonStatus": "In Garrison",
            "duration": "Full Day",
            "startDate": "2024-03-01",
            "endDate": "2024-03-03",
            "fare": 3600,
            "fareStatus": "Paid",
            "isExempt": False,
            "isSpecialNote": False,
            "isFuelEntry": False,
        }
        row.update(overrides)
        return row
    return _make
