"""
Shared fixtures for the upload client and reference server tests.
"""

from datetime import datetime

import pytest

from app.config import settings as server_settings
from app.routes import records as records_routes
from corpus_uploader.models import MediaRecord, RecordMetadata


@pytest.fixture(autouse=True)
def isolated_storage(tmp_path, monkeypatch):
    """Point the reference server at temporary directories and empty stores."""
    monkeypatch.setattr(server_settings, "upload_base_dir", str(tmp_path / "uploads"))
    monkeypatch.setattr(server_settings, "media_base_dir", str(tmp_path / "media"))
    monkeypatch.setattr(server_settings, "media_base_url", "http://test/media")
    records_routes.UPLOAD_SESSIONS.clear()
    records_routes.RECORDS.clear()
    yield tmp_path
    records_routes.UPLOAD_SESSIONS.clear()
    records_routes.RECORDS.clear()


@pytest.fixture
def metadata():
    return RecordMetadata(
        title="Hello",
        description="Greeting sign",
        category_id="cat-1",
        user_id="user-1",
        latitude=52.37,
        longitude=4.89,
        release_rights="creator",
        language="ASL",
    )


def make_record_payload(**overrides):
    now = datetime(2026, 1, 1, 12, 0, 0).isoformat()
    payload = {
        "title": "Hello",
        "description": "Greeting sign",
        "media_type": "video",
        "file_url": "http://test/media/rec-1/hello.mp4",
        "file_name": "hello.mp4",
        "file_size": 10,
        "status": "pending",
        "location": {"latitude": 52.37, "longitude": 4.89},
        "reviewed": False,
        "reviewed_by": None,
        "reviewed_at": None,
        "release_rights": "creator",
        "language": "ASL",
        "uid": "rec-1",
        "user_id": "user-1",
        "category_id": "cat-1",
        "created_at": now,
        "updated_at": now,
        "duration_seconds": None,
    }
    payload.update(overrides)
    return payload


def make_record(**overrides) -> MediaRecord:
    return MediaRecord.model_validate(make_record_payload(**overrides))


@pytest.fixture
def record_payload():
    """Factory for finalize-endpoint response bodies."""
    return make_record_payload


@pytest.fixture
def record_factory():
    return make_record
