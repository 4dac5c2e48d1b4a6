"""Tests for the profile REST endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from roadmate.main import app
from roadmate.platform_users import PlatformUserDirectory
from roadmate.profile_service import ProfileService, get_profile_service
from roadmate.profile_store import FileProfileStore


class _RefusingStore(FileProfileStore):
    def save(self, user_id, profile) -> bool:  # type: ignore[override]
        return False


@pytest.fixture()
def client(service: ProfileService) -> Iterator[TestClient]:
    app.dependency_overrides[get_profile_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.pop(get_profile_service, None)


def test_read_profile_creates_on_first_access(client: TestClient, file_store: FileProfileStore) -> None:
    response = client.get("/api/profile/42")

    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["profile"]["user_id"] == "42"
    assert payload["profile"]["platform_data"]["name"] == "Rani"
    assert file_store.path_for("42").exists()


def test_blank_user_id_is_rejected(client: TestClient) -> None:
    response = client.get("/api/profile/%20%20")

    assert response.status_code == 400
    assert response.json()["detail"] == "User id cannot be empty."


def test_update_profile_returns_merged_document(client: TestClient) -> None:
    response = client.post(
        "/api/profile/42/update",
        json={"learning_profile": {"skills": {"Kotlin": "advanced"}, "goals": ["publish"]}},
    )

    assert response.status_code == 200
    profile = response.json()["profile"]
    assert profile["learning_profile"]["skills"] == {"Kotlin": "Advanced"}
    assert profile["learning_profile"]["goals"] == ["publish"]
    assert profile["platform_data"]["name"] == "Rani"


def test_update_with_unknown_key_returns_422(client: TestClient, file_store: FileProfileStore) -> None:
    client.get("/api/profile/42")
    before = file_store.path_for("42").read_text(encoding="utf-8")

    response = client.post("/api/profile/42/update", json={"user_id": "someone-else"})

    assert response.status_code == 422
    assert response.json() == {"ok": False, "errors": ["Top-level key not allowed: user_id"]}
    assert file_store.path_for("42").read_text(encoding="utf-8") == before


def test_update_with_non_object_body_returns_422(client: TestClient) -> None:
    response = client.post("/api/profile/42/update", json=["not", "an", "object"])

    assert response.status_code == 422
    assert response.json()["errors"] == ["Patch must be an object"]


def test_update_without_body_is_a_no_op(client: TestClient) -> None:
    response = client.post("/api/profile/u-7/update")

    assert response.status_code == 200
    assert response.json()["profile"]["platform_data"]["name"] == "Budi"


def test_summary_endpoint(client: TestClient) -> None:
    client.post(
        "/api/profile/42/update",
        json={"learning_profile": {"goals": ["publish"]}, "roadmap_progress": {"job_role": "Android Developer"}},
    )

    response = client.get("/api/profile/42/summary")

    assert response.status_code == 200
    summary = response.json()["summary"]
    assert "Name: Rani" in summary
    assert "Goals: publish" in summary
    assert "Target role: Android Developer" in summary


def test_write_failure_returns_500(tmp_path: Path, users_file: Path) -> None:
    failing = ProfileService(_RefusingStore(tmp_path / "profiles"), PlatformUserDirectory(users_file))
    app.dependency_overrides[get_profile_service] = lambda: failing
    try:
        response = TestClient(app).get("/api/profile/42")
    finally:
        app.dependency_overrides.pop(get_profile_service, None)

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to persist profile for '42'."


def test_unreadable_stored_profile_returns_500(client: TestClient, file_store: FileProfileStore) -> None:
    path = file_store.path_for("42")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{broken", encoding="utf-8")

    response = client.get("/api/profile/42")

    assert response.status_code == 500
    assert "could not be read" in response.json()["detail"]
    assert path.read_text(encoding="utf-8") == "{broken"
