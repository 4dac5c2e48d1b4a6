"""Durable per-user profile documents."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional, Protocol
from urllib.parse import quote

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings
from .db.models import ProfileDocumentModel
from .db.session import session_scope
from .profile_schema import Profile

logger = logging.getLogger(__name__)


class ProfileStore(Protocol):
    """Read/write access to one profile document per user; no business logic."""

    def load(self, user_id: str) -> Optional[Profile]:  # pragma: no cover - protocol definition
        ...

    def save(self, user_id: str, profile: Profile) -> bool:  # pragma: no cover - protocol definition
        ...

    def exists(self, user_id: str) -> bool:  # pragma: no cover - protocol definition
        """True when a document is stored for the user, readable or not."""
        ...


def normalize_user_id(user_id: Any) -> str:
    normalized = str(user_id).strip() if user_id is not None else ""
    if not normalized:
        raise ValueError("User id cannot be empty.")
    return normalized


def _parse_document(user_id: str, payload: Any, source: str) -> Optional[Profile]:
    if not isinstance(payload, dict):
        logger.warning("Profile document for %s in %s is not an object; ignoring", user_id, source)
        return None
    if not payload.get("user_id"):
        payload["user_id"] = user_id
    try:
        return Profile.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Profile document for %s in %s failed validation: %s", user_id, source, exc)
        return None


class FileProfileStore:
    """JSON file per user under ``directory``, written atomically."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)
        self._lock = threading.RLock()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, user_id: str) -> Path:
        # Percent-encoding keeps ids such as e-mail addresses readable but never lets them leave the directory.
        filename = quote(normalize_user_id(user_id), safe="@.-_+")
        return self._directory / f"{filename}.json"

    def load(self, user_id: str) -> Optional[Profile]:
        path = self.path_for(user_id)
        with self._lock:
            if not path.exists():
                return None
            try:
                raw = path.read_text(encoding="utf-8")
            except OSError as exc:
                logger.warning("Failed to read profile document %s: %s", path, exc)
                return None
        if not raw.strip():
            return None
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            logger.warning("Malformed profile document %s: %s", path, exc)
            return None
        return _parse_document(normalize_user_id(user_id), payload, str(path))

    def exists(self, user_id: str) -> bool:
        path = self.path_for(user_id)
        with self._lock:
            try:
                return path.is_file() and bool(path.read_text(encoding="utf-8").strip())
            except OSError:
                # Present but unreadable still counts as stored.
                return path.exists()

    def save(self, user_id: str, profile: Profile) -> bool:
        path = self.path_for(user_id)
        text = json.dumps(profile.to_document(), ensure_ascii=False, indent=2)
        tmp_path: Optional[Path] = None
        with self._lock:
            try:
                self._directory.mkdir(parents=True, exist_ok=True)
                with tempfile.NamedTemporaryFile(
                    "w", delete=False, dir=self._directory, suffix=".tmp", encoding="utf-8"
                ) as handle:
                    tmp_path = Path(handle.name)
                    handle.write(text)
                os.replace(tmp_path, path)
            except OSError as exc:
                logger.error("Failed to save profile %s to %s: %s", user_id, path, exc)
                if tmp_path is not None:
                    tmp_path.unlink(missing_ok=True)
                return False
        return True


class DatabaseProfileStore:
    """Profile documents stored as JSON rows keyed by user id."""

    def load(self, user_id: str) -> Optional[Profile]:
        key = normalize_user_id(user_id)
        try:
            with session_scope(commit=False) as session:
                model = session.get(ProfileDocumentModel, key)
                document = dict(model.document) if model is not None else None
        except SQLAlchemyError as exc:
            logger.warning("Failed to load profile %s from database: %s", key, exc)
            return None
        if document is None:
            return None
        return _parse_document(key, document, "profile_documents")

    def exists(self, user_id: str) -> bool:
        key = normalize_user_id(user_id)
        try:
            with session_scope(commit=False) as session:
                return session.get(ProfileDocumentModel, key) is not None
        except SQLAlchemyError as exc:
            # An unreachable database must not look like a missing profile.
            logger.warning("Failed to check profile %s in database: %s", key, exc)
            return True

    def save(self, user_id: str, profile: Profile) -> bool:
        key = normalize_user_id(user_id)
        document = profile.to_document()
        try:
            with session_scope() as session:
                model = session.get(ProfileDocumentModel, key)
                if model is None:
                    session.add(ProfileDocumentModel(user_id=key, document=document))
                else:
                    model.document = document
        except SQLAlchemyError as exc:
            logger.error("Failed to save profile %s to database: %s", key, exc)
            return False
        return True


def build_profile_store(settings: Settings) -> ProfileStore:
    if settings.persistence_mode == "database":
        return DatabaseProfileStore()
    return FileProfileStore(settings.resolved_profile_dir)


__all__ = [
    "DatabaseProfileStore",
    "FileProfileStore",
    "ProfileStore",
    "build_profile_store",
    "normalize_user_id",
]
