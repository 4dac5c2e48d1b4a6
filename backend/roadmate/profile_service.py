"""Profile engine facade used by request handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, List, Optional

from .config import Settings, get_settings
from .db.session import init_database
from .errors import ProfileWriteError
from .lifecycle import ProfileLifecycle
from .locks import KeyedLocks
from .merge_engine import merge_profile, roadmap_requires_reset
from .patch_validator import validate_profile_patch
from .platform_users import PlatformUserDirectory
from .profile_schema import Profile
from .profile_store import ProfileStore, build_profile_store, normalize_user_id
from .telemetry import PROFILE_PATCH_REJECTED, PROFILE_UPDATED, ROADMAP_PROGRESS_RESET, emit_event

logger = logging.getLogger(__name__)


@dataclass
class ProfileUpdateResult:
    ok: bool
    profile: Profile
    errors: List[str] = field(default_factory=list)
    roadmap_reset: bool = False


class ProfileService:
    """Ensure, read and patch learning profiles.

    Every update is a read-modify-write against the store. Updates for the
    same user id are serialised in-process; different users never contend.
    """

    def __init__(
        self,
        store: ProfileStore,
        platform_users: Optional[PlatformUserDirectory] = None,
    ) -> None:
        self._store = store
        self._platform_users = platform_users
        self._locks = KeyedLocks()
        self._lifecycle = ProfileLifecycle(store, platform_users, locks=self._locks)

    @property
    def store(self) -> ProfileStore:
        return self._store

    @property
    def platform_users(self) -> Optional[PlatformUserDirectory]:
        return self._platform_users

    def ensure_profile_exists(self, user_id: str) -> Profile:
        return self._lifecycle.ensure_exists(user_id)

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self._lifecycle.get_profile(user_id)

    def update_profile(self, user_id: str, patch: Any) -> ProfileUpdateResult:
        """Validate ``patch`` and merge it into the user's profile.

        Rejected patches leave the stored profile untouched and come back as
        ``ok=False`` with the collected errors. Raises ``ProfileWriteError``
        when the merged profile could not be persisted and ``ProfileReadError``
        when a stored document exists but cannot be read.
        """
        key = normalize_user_id(user_id)
        with self._locks.hold(key):
            existing = self._lifecycle.ensure_exists(key)
            validation = validate_profile_patch(patch, existing)
            if not validation.ok or validation.sanitized is None:
                logger.warning("Rejected profile patch for %s: %s", key, validation.errors)
                emit_event(PROFILE_PATCH_REJECTED, user_id=key, errors=validation.errors)
                return ProfileUpdateResult(ok=False, profile=existing, errors=validation.errors)

            sanitized = validation.sanitized
            reset = roadmap_requires_reset(existing, sanitized)
            updated = merge_profile(existing, sanitized)
            if not self._store.save(key, updated):
                raise ProfileWriteError(key)

        if reset:
            emit_event(
                ROADMAP_PROGRESS_RESET,
                user_id=key,
                previous_job_role=existing.roadmap_progress.job_role,
                job_role=updated.roadmap_progress.job_role,
            )
        emit_event(PROFILE_UPDATED, user_id=key, sections=sorted(sanitized.to_update()))
        return ProfileUpdateResult(ok=True, profile=updated, roadmap_reset=reset)


def build_profile_service(settings: Settings) -> ProfileService:
    if settings.persistence_mode == "database":
        init_database()
    store = build_profile_store(settings)
    platform_users = PlatformUserDirectory(settings.resolved_platform_users_file)
    return ProfileService(store, platform_users)


@lru_cache
def get_profile_service() -> ProfileService:
    return build_profile_service(get_settings())


__all__ = [
    "ProfileService",
    "ProfileUpdateResult",
    "build_profile_service",
    "get_profile_service",
]
