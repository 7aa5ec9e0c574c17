"""Shared pytest fixtures for all tests."""

from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from helpers import event_payload
from partyupload.database import init_database
from partyupload.main import app
from partyupload.service_locator import set_login_throttle
from partyupload.services.login_throttle import LoginThrottle


@pytest.fixture
def storage(tmp_path, monkeypatch):
    """
    Point the database and data root at a temporary directory.

    Returns:
        Path of the temporary data root
    """
    data_root = tmp_path / "events"
    monkeypatch.setattr("partyupload.config.DATABASE_PATH", str(tmp_path / "test.db"))
    monkeypatch.setattr("partyupload.config.DATA_ROOT_PATH", str(data_root))
    monkeypatch.setattr("partyupload.config.PASSWORD_HASH_ROUNDS", 4)
    monkeypatch.setattr("partyupload.config.ALLOW_EVENT_CREATION", True)
    monkeypatch.setattr("partyupload.config.UPLOAD_MAX_FILE_SIZE_BYTES", 0)
    monkeypatch.setattr("partyupload.config.UPLOAD_MAX_TOTAL_SIZE_BYTES", 0)
    monkeypatch.setattr("partyupload.config.TRUST_FORWARDED_FOR", False)
    init_database()
    yield data_root


@pytest.fixture
def throttle():
    """Fresh process-wide login throttle for each test."""
    instance = LoginThrottle(max_attempts=12, window_seconds=600, block_seconds=300)
    set_login_throttle(instance)
    yield instance
    set_login_throttle(None)


@pytest.fixture
def client(storage, throttle):
    """Create FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def create_event(client):
    """
    Factory creating events through the API.

    Returns:
        Callable taking the event id and payload overrides
    """
    def _create(event_id: str = "summer-party", expected_status: Optional[int] = 200, **overrides: Any):
        response = client.post("/api/events", json=event_payload(event_id, **overrides))
        if expected_status is not None:
            assert response.status_code == expected_status, response.text
        return response

    return _create


@pytest.fixture
def upload(client):
    """
    Factory uploading files through the API.

    Returns:
        Callable taking the event id, (name, content[, type]) tuples and options
    """
    def _upload(event_id: str, files, folder: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        parts = []
        for item in files:
            if len(item) == 2:
                parts.append(("files", (item[0], item[1])))
            else:
                parts.append(("files", (item[0], item[1], item[2])))
        data = {"from": folder} if folder is not None else {}
        return client.post(f"/api/events/{event_id}/files", files=parts, data=data, headers=headers or {})

    return _upload
