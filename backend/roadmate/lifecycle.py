"""Lazy creation of learning profiles on first access."""

from __future__ import annotations

import logging
from typing import Optional

from .errors import ProfileReadError, ProfileWriteError
from .locks import KeyedLocks
from .platform_users import PlatformUser, PlatformUserDirectory
from .profile_schema import CurrentFocus, LearningProfile, PlatformData, Profile, default_profile
from .profile_store import ProfileStore, normalize_user_id
from .telemetry import PROFILE_CREATED, emit_event

logger = logging.getLogger(__name__)


def profile_from_platform_user(user_id: str, record: PlatformUser) -> Profile:
    """Seed a new profile from the platform's record for the user."""
    courses = [record.course_name] if record.course_name else []
    return Profile(
        user_id=user_id,
        platform_data=PlatformData(
            name=record.name,
            email=record.email or "",
            active_courses=courses,
            active_tutorials=record.active_tutorials,
            completed_tutorials=record.completed_tutorials,
            is_graduated=record.is_graduated,
            exam_score=record.exam_score,
            submission_rating=record.submission_rating,
        ),
        learning_profile=LearningProfile(
            current_focus=CurrentFocus(course=courses[0] if courses else None),
        ),
    )


class ProfileLifecycle:
    """Creates profiles lazily; never overwrites one that already exists."""

    def __init__(
        self,
        store: ProfileStore,
        platform_users: Optional[PlatformUserDirectory] = None,
        *,
        locks: Optional[KeyedLocks] = None,
    ) -> None:
        self._store = store
        self._platform_users = platform_users
        self._locks = locks or KeyedLocks()

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self._store.load(normalize_user_id(user_id))

    def ensure_exists(self, user_id: str) -> Profile:
        key = normalize_user_id(user_id)
        with self._locks.hold(key):
            existing = self._store.load(key)
            if existing is not None:
                return existing
            if self._store.exists(key):
                logger.error("Profile document for %s exists but is unreadable; not recreating it", key)
                raise ProfileReadError(key)

            record = self._platform_users.find(key) if self._platform_users is not None else None
            profile = profile_from_platform_user(key, record) if record is not None else default_profile(key)
            if not self._store.save(key, profile):
                raise ProfileWriteError(key)

        logger.info("Created profile for %s (seeded from platform: %s)", key, record is not None)
        emit_event(PROFILE_CREATED, user_id=key, seeded_from_platform=record is not None)
        return profile


__all__ = ["ProfileLifecycle", "profile_from_platform_user"]
