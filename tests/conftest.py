import uuid
from pathlib import Path
import sys
import pytest

# Ensure project root is on sys.path for imports like 'finance_tracker.main'
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


class RecordingNotifier:
    """Stands in for the APScheduler notifier; keeps what it was asked to do."""

    def __init__(self):
        self.scheduled = {}
        self.cancelled = []
        self.fail = False

    def start(self):
        pass

    def stop(self):
        pass

    def schedule_one_shot(self, when, content):
        if self.fail:
            raise RuntimeError("notification capability unavailable")
        handle = f"job-{len(self.scheduled) + 1}"
        self.scheduled[handle] = (when, content)
        return handle

    def cancel(self, handle):
        self.cancelled.append(handle)

    def for_transaction(self, tx_id):
        return [
            (handle, when)
            for handle, (when, content) in self.scheduled.items()
            if content["data"].get("transactionId") == str(tx_id)
        ]


class DictHandleStore:
    def __init__(self):
        self.items = {}

    def get(self, key):
        return self.items.get(key)

    def set(self, key, handle):
        self.items[key] = handle

    def delete(self, key):
        self.items.pop(key, None)


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def handle_store():
    return DictHandleStore()


@pytest.fixture(scope="session")
def temp_db_path(tmp_path_factory) -> Path:
    return tmp_path_factory.mktemp("db") / "finance_test.sqlite3"


@pytest.fixture(scope="session")
def app_client(temp_db_path, tmp_path_factory):
    from finance_tracker import db as db_module
    from finance_tracker.core import config

    db_module.DB_PATH = temp_db_path
    config.LOG_DIR = tmp_path_factory.mktemp("logs")

    from fastapi.testclient import TestClient
    import finance_tracker.main as main_app

    main_app.app.state.notifier = RecordingNotifier()
    with TestClient(main_app.app) as client:
        yield client


@pytest.fixture()
def app_notifier(app_client):
    import finance_tracker.main as main_app

    fresh = RecordingNotifier()
    main_app.app.state.notifier = fresh
    return fresh


@pytest.fixture()
def db_conn(app_client, temp_db_path):
    import sqlite3
    conn = sqlite3.connect(str(temp_db_path))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture()
def make_headers():
    from finance_tracker.auth import create_access_token

    def _make(user_id=None):
        user_id = user_id or f"user-{uuid.uuid4().hex[:12]}"
        return {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _make


@pytest.fixture()
def headers(make_headers):
    # A fresh owner per test keeps the shared database from leaking between tests
    return make_headers()
