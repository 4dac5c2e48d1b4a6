"""Validation and sanitisation of untrusted profile patches.

A patch is an arbitrary mapping proposed against a stored profile, usually
produced by the model service. ``validate_profile_patch`` projects it onto a
typed, partial :class:`ProfilePatch`, collecting one message per problem.

Top-level keys outside the whitelist are all reported before a verdict is
reached. A misshaped container (``platform_data`` that is not an object, for
example) contributes a single error and its branch is skipped, while a bad
entry inside a well-formed map (one invalid skill level) only drops that entry
and leaves its siblings intact.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from .coercion import as_int, as_number, as_text, clamp_percent
from .profile_schema import HistoryEntry, Profile, SkillLevel, normalize_skill_level, now_iso, now_ms

ALLOWED_TOP_LEVEL_KEYS = frozenset(
    {"platform_data", "learning_profile", "roadmap_progress", "updated_at", "meta"}
)


class PlatformDataPatch(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    active_courses: Optional[List[str]] = None
    active_tutorials: Optional[int] = None
    completed_tutorials: Optional[int] = None
    is_graduated: Optional[int] = None
    exam_score: Optional[str] = None
    submission_rating: Optional[str] = None
    course_progress: Optional[Dict[str, int]] = None


class CurrentFocusPatch(BaseModel):
    course: Optional[str] = None
    module: Optional[int] = Field(default=None, ge=0)


class LearningProfilePatch(BaseModel):
    goals: Optional[List[str]] = None
    weaknesses: Optional[List[str]] = None
    strengths: Optional[List[str]] = None
    skills: Optional[Dict[str, SkillLevel]] = None
    current_focus: Optional[CurrentFocusPatch] = None
    learning_style: Optional[str] = None
    progress_score: Optional[Dict[str, float]] = None
    history: Optional[List[HistoryEntry]] = None


class RoadmapProgressPatch(BaseModel):
    job_role: Optional[str] = None
    created_at: Optional[int] = None
    last_updated: Optional[int] = None
    skills_status: Optional[Dict[str, Any]] = None
    subskills: Optional[List[Any]] = None


class ProfilePatch(BaseModel):
    """Sanitised projection of a patch; only fields that were present are set."""

    platform_data: Optional[PlatformDataPatch] = None
    learning_profile: Optional[LearningProfilePatch] = None
    roadmap_progress: Optional[RoadmapProgressPatch] = None

    def to_update(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)

    @property
    def declared_job_role(self) -> Optional[str]:
        roadmap = self.roadmap_progress
        if roadmap is None or "job_role" not in roadmap.model_fields_set:
            return None
        return roadmap.job_role


@dataclass
class PatchValidation:
    ok: bool
    sanitized: Optional[ProfilePatch]
    errors: List[str] = field(default_factory=list)
    # Best-effort projection, kept even when the patch is rejected.
    partial: Optional[ProfilePatch] = None


def _string_list(value: Any, path: str, errors: List[str]) -> Optional[List[str]]:
    if not isinstance(value, list):
        errors.append(f"{path} must be an array")
        return None
    return [as_text(item) for item in value]


def _sanitize_platform_data(raw: Mapping[str, Any], errors: List[str]) -> PlatformDataPatch:
    fields: Dict[str, Any] = {}

    for key in ("name", "email", "exam_score", "submission_rating"):
        if raw.get(key) is not None:
            fields[key] = as_text(raw[key])

    if raw.get("active_courses") is not None:
        courses = _string_list(raw["active_courses"], "platform_data.active_courses", errors)
        if courses is not None:
            fields["active_courses"] = courses

    for key in ("active_tutorials", "completed_tutorials"):
        if raw.get(key) is not None:
            fields[key] = as_int(raw[key])
    if raw.get("is_graduated") is not None:
        fields["is_graduated"] = 1 if as_number(raw["is_graduated"]) else 0

    progress = raw.get("course_progress")
    if progress is not None:
        if not isinstance(progress, Mapping):
            errors.append("platform_data.course_progress must be an object mapping")
        else:
            fields["course_progress"] = {
                as_text(course): clamp_percent(value) for course, value in progress.items()
            }

    return PlatformDataPatch(**fields)


def _sanitize_skills(raw: Any, errors: List[str]) -> Optional[Dict[str, str]]:
    if not isinstance(raw, Mapping):
        errors.append("learning_profile.skills must be an object mapping")
        return None
    skills: Dict[str, str] = {}
    for name, level in raw.items():
        normalized = normalize_skill_level(level)
        if normalized is None:
            errors.append(f"Invalid skill level for '{name}': {level}")
            continue
        skills[as_text(name)] = normalized
    return skills


def _sanitize_current_focus(raw: Any, errors: List[str]) -> Optional[CurrentFocusPatch]:
    if not isinstance(raw, Mapping):
        errors.append("learning_profile.current_focus must be an object")
        return None
    fields: Dict[str, Any] = {}
    if raw.get("course") is not None:
        fields["course"] = as_text(raw["course"])
    if raw.get("module") is not None:
        module = as_number(raw["module"])
        if module is None or not math.isfinite(module) or module < 0:
            errors.append("learning_profile.current_focus.module must be a number >= 0")
        else:
            fields["module"] = int(math.floor(module))
    return CurrentFocusPatch(**fields)


def _sanitize_progress_score(raw: Any, errors: List[str]) -> Optional[Dict[str, float]]:
    if not isinstance(raw, Mapping):
        errors.append("learning_profile.progress_score must be an object mapping")
        return None
    scores: Dict[str, float] = {}
    for key, value in raw.items():
        score = as_number(value)
        if score is None or not math.isfinite(score):
            errors.append(f"learning_profile.progress_score.{key} must be a number")
            continue
        scores[as_text(key)] = score
    return scores


def _history_entry(raw: Mapping[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        query=as_text(raw["query"]) if raw.get("query") is not None else "",
        response=as_text(raw["response"]) if raw.get("response") is not None else "",
        timestamp=as_text(raw["timestamp"]) if raw.get("timestamp") is not None else now_iso(),
        intent=raw.get("intent"),
    )


def _sanitize_history(raw: Any, existing: Optional[Profile], errors: List[str]) -> Optional[List[HistoryEntry]]:
    if not isinstance(raw, list):
        errors.append("learning_profile.history must be an array")
        return None
    stored = list(existing.learning_profile.history) if existing is not None else []
    appended = [_history_entry(entry) for entry in raw if isinstance(entry, Mapping)]
    return [entry.model_copy() for entry in stored] + appended


def _sanitize_learning_profile(
    raw: Mapping[str, Any],
    existing: Optional[Profile],
    errors: List[str],
) -> LearningProfilePatch:
    fields: Dict[str, Any] = {}

    for key in ("goals", "weaknesses", "strengths"):
        if raw.get(key) is not None:
            values = _string_list(raw[key], f"learning_profile.{key}", errors)
            if values is not None:
                fields[key] = values

    if raw.get("skills") is not None:
        skills = _sanitize_skills(raw["skills"], errors)
        if skills is not None:
            fields["skills"] = skills

    if raw.get("current_focus") is not None:
        focus = _sanitize_current_focus(raw["current_focus"], errors)
        if focus is not None:
            fields["current_focus"] = focus

    if raw.get("learning_style") is not None:
        fields["learning_style"] = as_text(raw["learning_style"])

    if raw.get("progress_score") is not None:
        scores = _sanitize_progress_score(raw["progress_score"], errors)
        if scores is not None:
            fields["progress_score"] = scores

    if raw.get("history") is not None:
        history = _sanitize_history(raw["history"], existing, errors)
        if history is not None:
            fields["history"] = history

    return LearningProfilePatch(**fields)


def _epoch_ms(value: Any) -> int:
    number = as_number(value)
    if not number or not math.isfinite(number):
        return now_ms()
    return int(number)


def _sanitize_roadmap_progress(raw: Mapping[str, Any], errors: List[str]) -> RoadmapProgressPatch:
    fields: Dict[str, Any] = {}
    if raw.get("job_role") is not None:
        fields["job_role"] = as_text(raw["job_role"])
    for key in ("created_at", "last_updated"):
        if raw.get(key) is not None:
            fields[key] = _epoch_ms(raw[key])

    subskills = raw.get("subskills")
    if subskills is not None:
        if not isinstance(subskills, list):
            errors.append("roadmap_progress.subskills must be an array")
        else:
            fields["subskills"] = list(subskills)

    status = raw.get("skills_status")
    if status is not None:
        if not isinstance(status, Mapping):
            errors.append("roadmap_progress.skills_status must be an object mapping")
        else:
            fields["skills_status"] = dict(status)

    return RoadmapProgressPatch(**fields)


def validate_profile_patch(patch: Any, existing: Optional[Profile]) -> PatchValidation:
    """Sanitise ``patch`` against ``existing``; never raises for malformed input.

    ``existing`` is needed because the sanitised history is the stored history
    with the patch's entries appended.
    """
    errors: List[str] = []
    if not isinstance(patch, Mapping):
        return PatchValidation(ok=False, sanitized=None, errors=["Patch must be an object"])

    for key in patch:
        if key not in ALLOWED_TOP_LEVEL_KEYS:
            errors.append(f"Top-level key not allowed: {key}")

    fields: Dict[str, Any] = {}

    platform_data = patch.get("platform_data")
    if isinstance(platform_data, Mapping):
        fields["platform_data"] = _sanitize_platform_data(platform_data, errors)
    elif platform_data is not None:
        errors.append("platform_data must be an object")

    learning_profile = patch.get("learning_profile")
    if isinstance(learning_profile, Mapping):
        fields["learning_profile"] = _sanitize_learning_profile(learning_profile, existing, errors)
    elif learning_profile is not None:
        errors.append("learning_profile must be an object")

    roadmap = patch.get("roadmap_progress")
    if isinstance(roadmap, Mapping):
        fields["roadmap_progress"] = _sanitize_roadmap_progress(roadmap, errors)
    elif roadmap is not None:
        errors.append("roadmap_progress must be an object")

    projection = ProfilePatch(**fields)
    if errors:
        return PatchValidation(ok=False, sanitized=None, errors=errors, partial=projection)
    return PatchValidation(ok=True, sanitized=projection, errors=[], partial=projection)


__all__ = [
    "ALLOWED_TOP_LEVEL_KEYS",
    "CurrentFocusPatch",
    "LearningProfilePatch",
    "PatchValidation",
    "PlatformDataPatch",
    "ProfilePatch",
    "RoadmapProgressPatch",
    "validate_profile_patch",
]
