"""Read-only view over the learning platform's user export."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .coercion import as_int, as_text

logger = logging.getLogger(__name__)


class PlatformUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    email: Optional[str] = None
    name: str = ""
    course_name: str = ""
    active_tutorials: int = 0
    completed_tutorials: int = 0
    is_graduated: int = 0
    exam_score: str = ""
    submission_rating: str = ""

    @field_validator("id", "email", mode="before")
    @classmethod
    def _identifier(cls, value: Any) -> Optional[str]:
        if value is None or value == "":
            return None
        return as_text(value)

    @field_validator("name", "course_name", "exam_score", "submission_rating", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else as_text(value)

    @field_validator("active_tutorials", "completed_tutorials", "is_graduated", mode="before")
    @classmethod
    def _counter(cls, value: Any) -> int:
        return as_int(value)


class PlatformUserDirectory:
    """Platform user records, loaded lazily at most once.

    The records are read-only after the first load; ``reload()`` is the only
    way to pick up a changed export.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._records: Optional[Tuple[PlatformUser, ...]] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def loaded(self) -> bool:
        return self._records is not None

    def all(self) -> Tuple[PlatformUser, ...]:
        records = self._records
        if records is None:
            with self._lock:
                if self._records is None:
                    self._records = self._load()
                records = self._records
        return records

    def reload(self) -> Tuple[PlatformUser, ...]:
        with self._lock:
            self._records = self._load()
            return self._records

    def find(self, identifier: str) -> Optional[PlatformUser]:
        """Return the record whose id or email equals ``identifier``."""
        needle = str(identifier)
        for record in self.all():
            if record.id == needle or record.email == needle:
                return record
        return None

    def _load(self) -> Tuple[PlatformUser, ...]:
        if not self._path.exists():
            logger.info("No platform user export at %s", self._path)
            return ()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "null")
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read platform users from %s: %s", self._path, exc)
            return ()

        if isinstance(raw, dict):
            entries = list(raw.values())
        elif isinstance(raw, list):
            entries = raw
        else:
            logger.warning("Platform user export %s is not a list or mapping", self._path)
            return ()

        records = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            try:
                records.append(PlatformUser.model_validate(entry))
            except ValidationError as exc:
                logger.warning("Skipping invalid platform user record: %s", exc)
        logger.info("Loaded %d platform users from %s", len(records), self._path)
        return tuple(records)


__all__ = ["PlatformUser", "PlatformUserDirectory"]
