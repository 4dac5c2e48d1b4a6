"""Learning profile document models."""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)

from .coercion import as_int, as_number, as_text, clamp_percent

logger = logging.getLogger(__name__)

SkillLevel = Literal["Beginner", "Intermediate", "Advanced"]
SKILL_LEVELS = ("Beginner", "Intermediate", "Advanced")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    return int(time.time() * 1000)


def now_iso() -> str:
    return _now().isoformat()


def normalize_skill_level(value: Any) -> Optional[str]:
    """Return the Title Case skill level for ``value`` or ``None`` when it is not one."""
    if not isinstance(value, str):
        return None
    candidate = value.capitalize()
    return candidate if candidate in SKILL_LEVELS else None


def _repair_containers(
    owner: str,
    data: Any,
    *,
    mappings: Iterable[str] = (),
    sequences: Iterable[str] = (),
) -> Any:
    # Stored documents may have drifted; a container of the wrong type falls back to empty.
    # Model instances count as mappings so constructors can nest them.
    if not isinstance(data, dict):
        return data
    repaired = dict(data)
    for key in mappings:
        if key in repaired and not isinstance(repaired[key], (dict, BaseModel)):
            if repaired[key] is not None:
                logger.warning("Resetting %s.%s: expected mapping, found %s", owner, key, type(repaired[key]).__name__)
            repaired[key] = {}
    for key in sequences:
        if key in repaired and not isinstance(repaired[key], list):
            if repaired[key] is not None:
                logger.warning("Resetting %s.%s: expected list, found %s", owner, key, type(repaired[key]).__name__)
            repaired[key] = []
    return repaired


def _text_or_empty(value: Any) -> str:
    return "" if value is None else as_text(value)


def _optional_text(value: Any) -> Optional[str]:
    return None if value is None else as_text(value)


def _text_items(value: Any) -> Any:
    if not isinstance(value, list):
        return value
    return [as_text(item) for item in value if item is not None]


def _epoch_ms_or_now(value: Any) -> int:
    number = as_number(value)
    if not number or not math.isfinite(number):
        return now_ms()
    return int(number)


class PlatformData(BaseModel):
    """Facts mirrored from the learning platform."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    email: str = ""
    active_courses: List[str] = Field(default_factory=list)
    active_tutorials: int = 0
    completed_tutorials: int = 0
    is_graduated: int = 0
    exam_score: str = ""
    submission_rating: str = ""
    course_progress: Dict[str, int] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _repair(cls, data: Any) -> Any:
        return _repair_containers(
            "platform_data",
            data,
            mappings=("course_progress",),
            sequences=("active_courses",),
        )

    @field_validator("name", "email", "exam_score", "submission_rating", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _text_or_empty(value)

    @field_validator("active_tutorials", "completed_tutorials", mode="before")
    @classmethod
    def _counter(cls, value: Any) -> int:
        return as_int(value)

    @field_validator("is_graduated", mode="before")
    @classmethod
    def _graduated_flag(cls, value: Any) -> int:
        return 1 if as_number(value) else 0

    @field_validator("active_courses", mode="before")
    @classmethod
    def _courses(cls, value: Any) -> Any:
        return _text_items(value)

    @field_validator("course_progress", mode="before")
    @classmethod
    def _progress(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {as_text(course): clamp_percent(percent) for course, percent in value.items()}


class CurrentFocus(BaseModel):
    course: Optional[str] = None
    module: int = Field(default=0, ge=0)

    @field_validator("course", mode="before")
    @classmethod
    def _course(cls, value: Any) -> Optional[str]:
        return _optional_text(value)

    @field_validator("module", mode="before")
    @classmethod
    def _non_negative_module(cls, value: Any) -> int:
        number = as_number(value)
        if number is None or not math.isfinite(number) or number < 0:
            return 0
        return int(math.floor(number))


class HistoryEntry(BaseModel):
    """One assistant exchange recorded on the learning profile."""

    query: str = ""
    response: str = ""
    timestamp: str = Field(default_factory=now_iso)
    intent: Any = None

    @field_validator("query", "response", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return _text_or_empty(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value: Any) -> str:
        return now_iso() if value is None else as_text(value)


class LearningProfile(BaseModel):
    model_config = ConfigDict(extra="allow")

    goals: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    skills: Dict[str, SkillLevel] = Field(default_factory=dict)
    current_focus: CurrentFocus = Field(default_factory=CurrentFocus)
    learning_style: Optional[str] = None
    progress_score: Dict[str, float] = Field(default_factory=dict)
    history: List[HistoryEntry] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _repair(cls, data: Any) -> Any:
        return _repair_containers(
            "learning_profile",
            data,
            mappings=("skills", "current_focus", "progress_score"),
            sequences=("goals", "weaknesses", "strengths", "history"),
        )

    @field_validator("goals", "weaknesses", "strengths", mode="before")
    @classmethod
    def _text_lists(cls, value: Any) -> Any:
        return _text_items(value)

    @field_validator("learning_style", mode="before")
    @classmethod
    def _style(cls, value: Any) -> Optional[str]:
        return _optional_text(value)

    @field_validator("skills", mode="before")
    @classmethod
    def _normalize_skills(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        skills: Dict[str, str] = {}
        for name, level in value.items():
            normalized = normalize_skill_level(level)
            if normalized is None:
                logger.warning("Dropping stored skill %r with unknown level %r", name, level)
                continue
            skills[as_text(name)] = normalized
        return skills

    @field_validator("progress_score", mode="before")
    @classmethod
    def _numeric_scores(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        scores: Dict[str, float] = {}
        for key, raw in value.items():
            score = as_number(raw)
            if score is None or not math.isfinite(score):
                logger.warning("Dropping stored progress score %r with value %r", key, raw)
                continue
            scores[as_text(key)] = score
        return scores

    @field_validator("history", mode="before")
    @classmethod
    def _drop_malformed_history(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [entry for entry in value if isinstance(entry, (dict, HistoryEntry))]


class RoadmapProgress(BaseModel):
    """Progress towards a target job role."""

    model_config = ConfigDict(extra="allow")

    job_role: Optional[str] = None
    created_at: int = Field(default_factory=now_ms)
    last_updated: int = Field(default_factory=now_ms)
    skills_status: Dict[str, Any] = Field(default_factory=dict)
    subskills: List[Any] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _repair(cls, data: Any) -> Any:
        return _repair_containers(
            "roadmap_progress",
            data,
            mappings=("skills_status",),
            sequences=("subskills",),
        )

    @field_validator("job_role", mode="before")
    @classmethod
    def _job_role(cls, value: Any) -> Optional[str]:
        return _optional_text(value)

    @field_validator("created_at", "last_updated", mode="before")
    @classmethod
    def _epoch_ms(cls, value: Any) -> int:
        return _epoch_ms_or_now(value)


class Profile(BaseModel):
    """Persisted learning-state document for one user."""

    model_config = ConfigDict(extra="allow")

    user_id: str = Field(..., min_length=1)
    platform_data: PlatformData = Field(default_factory=PlatformData)
    learning_profile: LearningProfile = Field(default_factory=LearningProfile)
    roadmap_progress: RoadmapProgress = Field(default_factory=RoadmapProgress)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @model_validator(mode="before")
    @classmethod
    def _repair(cls, data: Any) -> Any:
        return _repair_containers(
            "profile",
            data,
            mappings=("platform_data", "learning_profile", "roadmap_progress"),
        )

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id(cls, value: Any) -> Any:
        return as_text(value).strip() if isinstance(value, (int, float, str)) else value

    @field_validator("created_at", "updated_at", mode="wrap")
    @classmethod
    def _timestamp(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> datetime:
        if value is None:
            return _now()
        try:
            return handler(value)
        except ValidationError:
            logger.warning("Replacing unreadable profile timestamp %r", value)
            return _now()

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


def default_roadmap_progress() -> RoadmapProgress:
    return RoadmapProgress()


def default_profile(user_id: str, *, name: str = "", email: str = "") -> Profile:
    """Minimal profile used when nothing is known about the user."""
    return Profile(
        user_id=user_id,
        platform_data=PlatformData(name=name, email=email),
    )


__all__ = [
    "CurrentFocus",
    "HistoryEntry",
    "LearningProfile",
    "PlatformData",
    "Profile",
    "RoadmapProgress",
    "SKILL_LEVELS",
    "SkillLevel",
    "default_profile",
    "default_roadmap_progress",
    "normalize_skill_level",
    "now_iso",
    "now_ms",
]
