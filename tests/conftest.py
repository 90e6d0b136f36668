"""
tests/conftest.py — shared fixtures
"""
import pytest
from fastapi.testclient import TestClient

from linkportal.config import Settings
from linkportal.main import create_app
from linkportal.storage import Folder, Link, SnapshotStore, Store

ADMIN_PIN = "2468"
PUBLIC = "/divine/api/sites"
ADMIN = "/divine/admin/sites"


class FakeClock:
    """Manually advanced clock; call it to read the current time."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now += delta


@pytest.fixture
def data_file(tmp_path):
    return tmp_path / "data.json"


@pytest.fixture
def store(data_file) -> SnapshotStore:
    return SnapshotStore(data_file)


@pytest.fixture
def seeded() -> Store:
    return Store(
        folders=[
            Folder(
                id="folder-tools",
                title="Tools",
                links=[
                    Link(id="link-a", name="Site A", url="https://a.example/"),
                    Link(id="link-b", name="Site B", url="https://b.example/"),
                ],
            ),
            Folder(id="folder-empty", title="Empty", links=[]),
        ]
    )


@pytest.fixture
def ms_clock() -> FakeClock:
    return FakeClock(1_700_000_000_000)


@pytest.fixture
def settings(tmp_path, data_file) -> Settings:
    return Settings(
        admin_pin=ADMIN_PIN,
        admin_session_secret="test-session-secret",
        data_file=data_file,
        static_dir=tmp_path / "no-static",
        log_level="WARNING",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_client(client):
    resp = client.post(f"{ADMIN}/verify-pin", json={"pin": ADMIN_PIN})
    assert resp.status_code == 200
    return client
