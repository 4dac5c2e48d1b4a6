from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator, List

import pytest

from roadmate.platform_users import PlatformUserDirectory
from roadmate.profile_service import ProfileService
from roadmate.profile_store import FileProfileStore
from roadmate.telemetry import TelemetryEvent, clear_listeners, register_listener


PLATFORM_USERS = [
    {
        "id": 42,
        "email": "rani@example.com",
        "name": "Rani",
        "course_name": "Android Fundamentals",
        "active_tutorials": "3",
        "completed_tutorials": 12,
        "is_graduated": 0,
        "exam_score": "88",
        "submission_rating": "4",
    },
    {
        "id": "u-7",
        "email": "budi@example.com",
        "name": "Budi",
        "course_name": "",
    },
]


@pytest.fixture()
def users_file(tmp_path: Path) -> Path:
    path = tmp_path / "users_hashed.json"
    path.write_text(json.dumps(PLATFORM_USERS), encoding="utf-8")
    return path


@pytest.fixture()
def file_store(tmp_path: Path) -> FileProfileStore:
    return FileProfileStore(tmp_path / "user_profile")


@pytest.fixture()
def service(file_store: FileProfileStore, users_file: Path) -> ProfileService:
    return ProfileService(file_store, PlatformUserDirectory(users_file))


@pytest.fixture()
def telemetry_events() -> Iterator[List[TelemetryEvent]]:
    events: List[TelemetryEvent] = []
    clear_listeners()
    register_listener(events.append)
    yield events
    clear_listeners()
