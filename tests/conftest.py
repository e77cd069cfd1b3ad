import os

import pytest

os.environ["ALLOWED_HOSTS"] = "*"
os.environ["COOKIE_SECRET"] = "test-secret"
os.environ["INSERT_RATE_LIMIT"] = "1000/minute"

from fastapi.testclient import TestClient  # noqa: E402

import database  # noqa: E402
import main  # noqa: E402


@pytest.fixture()
def client(tmp_path, monkeypatch):
    """Test client backed by a fresh database file."""
    monkeypatch.setattr(database, "DATABASE_PATH", tmp_path / "pastes.db")
    with TestClient(main.app) as test_client:
        yield test_client
