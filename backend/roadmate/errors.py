"""Exceptions raised by the profile engine."""

from __future__ import annotations


class ProfileEngineError(RuntimeError):
    """Base class for profile engine failures."""


class ProfileWriteError(ProfileEngineError):
    """A profile document could not be durably persisted."""

    def __init__(self, user_id: str, message: str | None = None) -> None:
        self.user_id = user_id
        super().__init__(message or f"Failed to persist profile for '{user_id}'.")


class ProfileReadError(ProfileEngineError):
    """A stored profile document exists but could not be read or validated."""

    def __init__(self, user_id: str, message: str | None = None) -> None:
        self.user_id = user_id
        super().__init__(message or f"Stored profile for '{user_id}' could not be read; refusing to replace it.")


class ModelServiceError(ProfileEngineError):
    """The external model service could not be reached or answered badly."""


__all__ = ["ModelServiceError", "ProfileEngineError", "ProfileReadError", "ProfileWriteError"]
