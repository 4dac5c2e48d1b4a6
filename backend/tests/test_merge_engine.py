"""Tests for the rule-driven profile merge."""

from __future__ import annotations

from datetime import datetime, timezone

from roadmate.merge_engine import (
    MergePolicy,
    MergeRule,
    deep_merge,
    merge_profile,
    roadmap_requires_reset,
)
from roadmate.patch_validator import validate_profile_patch
from roadmate.profile_schema import Profile, default_profile


STAMP = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
STAMP_MS = int(STAMP.timestamp() * 1000)


def _sanitized(patch, existing):
    result = validate_profile_patch(patch, existing)
    assert result.ok, result.errors
    assert result.sanitized is not None
    return result.sanitized


def _profile_with_roadmap(job_role):
    return Profile.model_validate(
        {
            "user_id": "learner-1",
            "platform_data": {"name": "Rani", "course_progress": {"Android": 40}},
            "learning_profile": {
                "goals": ["ship an app"],
                "skills": {"Kotlin": "Beginner", "Android": "Intermediate"},
                "current_focus": {"course": "Android", "module": 2},
            },
            "roadmap_progress": {
                "job_role": job_role,
                "created_at": 1000,
                "last_updated": 2000,
                "subskills": [{"id": "ui"}],
                "skills_status": {"ui": "done"},
            },
            "created_at": "2024-01-01T00:00:00+00:00",
        }
    )


def test_deep_merge_merges_mappings_and_replaces_lists() -> None:
    target = {"a": {"x": 1, "y": 2}, "tags": ["one", "two"], "keep": True}
    source = {"a": {"y": 3, "z": 4}, "tags": ["three"]}

    merged = deep_merge(target, source)

    assert merged == {"a": {"x": 1, "y": 3, "z": 4}, "tags": ["three"], "keep": True}
    assert target == {"a": {"x": 1, "y": 2}, "tags": ["one", "two"], "keep": True}


def test_deep_merge_replaces_non_mapping_target() -> None:
    merged = deep_merge({"a": "scalar"}, {"a": {"b": 1}})

    assert merged == {"a": {"b": 1}}


def test_map_replace_rule_discards_stored_keys() -> None:
    policy = MergePolicy({("section",): MergeRule.MAP_REPLACE}, {("section",): lambda: {"fresh": True}})

    merged = policy.merge({"section": {"old": 1}, "other": 1}, {"section": {"new": 2}})

    assert merged == {"section": {"fresh": True, "new": 2}, "other": 1}


def test_with_overrides_leaves_original_policy_unchanged() -> None:
    policy = MergePolicy({("section",): MergeRule.MAP_MERGE})
    replacing = policy.with_overrides({("section",): MergeRule.MAP_REPLACE})

    assert policy.rule_for(("section",), {}) is MergeRule.MAP_MERGE
    assert replacing.rule_for(("section",), {}) is MergeRule.MAP_REPLACE


def test_skills_merge_keeps_unmentioned_skills() -> None:
    existing = _profile_with_roadmap("Android Developer")
    patch = _sanitized({"learning_profile": {"skills": {"Kotlin": "advanced", "Compose": "Beginner"}}}, existing)

    merged = merge_profile(existing, patch, now=STAMP)

    assert merged.learning_profile.skills == {
        "Kotlin": "Advanced",
        "Android": "Intermediate",
        "Compose": "Beginner",
    }
    assert merged.learning_profile.goals == ["ship an app"]
    assert existing.learning_profile.skills["Kotlin"] == "Beginner"


def test_lists_are_replaced_not_concatenated() -> None:
    existing = _profile_with_roadmap("Android Developer")
    patch = _sanitized({"learning_profile": {"goals": ["get certified"]}}, existing)

    merged = merge_profile(existing, patch, now=STAMP)

    assert merged.learning_profile.goals == ["get certified"]


def test_nested_focus_and_progress_merge() -> None:
    existing = _profile_with_roadmap("Android Developer")
    patch = _sanitized(
        {
            "platform_data": {"course_progress": {"Kotlin": 20}},
            "learning_profile": {"current_focus": {"module": 5}},
        },
        existing,
    )

    merged = merge_profile(existing, patch, now=STAMP)

    assert merged.platform_data.course_progress == {"Android": 40, "Kotlin": 20}
    assert merged.platform_data.name == "Rani"
    assert merged.learning_profile.current_focus.course == "Android"
    assert merged.learning_profile.current_focus.module == 5


def test_identity_fields_are_preserved_and_updated_at_stamped() -> None:
    existing = _profile_with_roadmap("Android Developer")
    patch = _sanitized({"platform_data": {"name": "Rani S."}}, existing)

    merged = merge_profile(existing, patch, now=STAMP)

    assert merged.user_id == "learner-1"
    assert merged.created_at == existing.created_at
    assert merged.updated_at == STAMP


def test_same_job_role_merges_roadmap_progress() -> None:
    existing = _profile_with_roadmap("Android Developer")
    patch = _sanitized(
        {"roadmap_progress": {"job_role": "Android Developer", "skills_status": {"state": "started"}}},
        existing,
    )

    assert roadmap_requires_reset(existing, patch) is False
    merged = merge_profile(existing, patch, now=STAMP)

    assert merged.roadmap_progress.skills_status == {"ui": "done", "state": "started"}
    assert merged.roadmap_progress.subskills == [{"id": "ui"}]
    assert merged.roadmap_progress.created_at == 1000


def test_job_role_switch_replaces_roadmap_progress() -> None:
    existing = _profile_with_roadmap("Android Developer")
    patch = _sanitized({"roadmap_progress": {"job_role": "Backend Developer"}}, existing)

    assert roadmap_requires_reset(existing, patch) is True
    merged = merge_profile(existing, patch, now=STAMP)

    roadmap = merged.roadmap_progress
    assert roadmap.job_role == "Backend Developer"
    assert roadmap.subskills == []
    assert roadmap.skills_status == {}
    assert roadmap.created_at == STAMP_MS
    assert roadmap.last_updated == STAMP_MS


def test_job_role_switch_keeps_patch_supplied_roadmap_fields() -> None:
    existing = _profile_with_roadmap("Android Developer")
    patch = _sanitized(
        {"roadmap_progress": {"job_role": "Backend Developer", "subskills": [{"id": "http"}]}},
        existing,
    )

    merged = merge_profile(existing, patch, now=STAMP)

    assert merged.roadmap_progress.subskills == [{"id": "http"}]
    assert merged.roadmap_progress.skills_status == {}


def test_first_job_role_declaration_does_not_reset() -> None:
    existing = _profile_with_roadmap(None)
    patch = _sanitized({"roadmap_progress": {"job_role": "Backend Developer"}}, existing)

    assert roadmap_requires_reset(existing, patch) is False
    merged = merge_profile(existing, patch, now=STAMP)

    assert merged.roadmap_progress.job_role == "Backend Developer"
    assert merged.roadmap_progress.subskills == [{"id": "ui"}]


def test_patch_without_job_role_never_resets() -> None:
    existing = _profile_with_roadmap("Android Developer")
    patch = _sanitized({"roadmap_progress": {"subskills": []}}, existing)

    assert roadmap_requires_reset(existing, patch) is False


def test_empty_patch_only_touches_updated_at() -> None:
    existing = default_profile("learner-2")
    patch = _sanitized({}, existing)

    merged = merge_profile(existing, patch, now=STAMP)

    before = existing.to_document()
    after = merged.to_document()
    before.pop("updated_at")
    after.pop("updated_at")
    assert before == after


def test_empty_job_role_merges_without_reset() -> None:
    existing = _profile_with_roadmap("Android Developer")
    patch = _sanitized({"roadmap_progress": {"job_role": ""}}, existing)

    assert roadmap_requires_reset(existing, patch) is False
    merged = merge_profile(existing, patch, now=STAMP)

    assert merged.roadmap_progress.job_role == ""
    assert merged.roadmap_progress.subskills == [{"id": "ui"}]
    assert merged.roadmap_progress.skills_status == {"ui": "done"}
    assert merged.roadmap_progress.created_at == 1000


def test_reapplying_a_sanitised_patch_is_idempotent() -> None:
    existing = _profile_with_roadmap("Android Developer")
    patch = _sanitized(
        {
            "learning_profile": {
                "skills": {"Kotlin": "advanced"},
                "history": [{"query": "what next?", "response": "coroutines"}],
            },
            "platform_data": {"course_progress": {"Android": 55}},
            "roadmap_progress": {"job_role": "Backend Developer", "subskills": [{"id": "http"}]},
        },
        existing,
    )
    later = datetime(2024, 6, 1, 8, 30, tzinfo=timezone.utc)

    once = merge_profile(existing, patch, now=STAMP)
    twice = merge_profile(once, patch, now=later)

    once_document = once.to_document()
    twice_document = twice.to_document()
    once_document.pop("updated_at")
    twice_document.pop("updated_at")
    assert twice_document == once_document
    assert [entry.query for entry in twice.learning_profile.history] == ["what next?"]
    assert twice.roadmap_progress.created_at == STAMP_MS
