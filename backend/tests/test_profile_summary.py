from __future__ import annotations

from roadmate.profile_schema import Profile
from roadmate.profile_summary import format_profile_for_llm


def test_summary_without_profile() -> None:
    assert format_profile_for_llm(None) == "No profile available."


def test_summary_lists_known_sections_in_order() -> None:
    profile = Profile.model_validate(
        {
            "user_id": "42",
            "platform_data": {"name": "Rani", "active_courses": ["Android", "Kotlin"]},
            "learning_profile": {
                "goals": ["publish an app"],
                "skills": {"Kotlin": "Advanced", "SQL": "Beginner"},
                "current_focus": {"course": "Android", "module": 3},
            },
            "roadmap_progress": {"job_role": "Android Developer"},
        }
    )

    assert format_profile_for_llm(profile).splitlines() == [
        "Name: Rani",
        "Active courses: Android, Kotlin",
        "Current focus: Android (module 3)",
        "Goals: publish an app",
        "Skills: Kotlin (Advanced), SQL (Beginner)",
        "Target role: Android Developer",
    ]


def test_summary_skips_empty_sections() -> None:
    profile = Profile(user_id="blank")

    assert format_profile_for_llm(profile) == ""
