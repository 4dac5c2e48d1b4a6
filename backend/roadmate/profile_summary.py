"""Plain-text profile summaries handed to the model service."""

from __future__ import annotations

from typing import Optional

from .profile_schema import Profile


def format_profile_for_llm(profile: Optional[Profile]) -> str:
    """Render a short read-only summary of ``profile``."""
    if profile is None:
        return "No profile available."

    platform = profile.platform_data
    learning = profile.learning_profile
    lines: list[str] = []

    if platform.name:
        lines.append(f"Name: {platform.name}")
    if platform.active_courses:
        lines.append(f"Active courses: {', '.join(platform.active_courses)}")

    focus = learning.current_focus
    if focus.course:
        lines.append(f"Current focus: {focus.course} (module {focus.module or 0})")

    if learning.goals:
        lines.append(f"Goals: {', '.join(learning.goals)}")
    if learning.skills:
        skills = ", ".join(f"{name} ({level})" for name, level in learning.skills.items())
        lines.append(f"Skills: {skills}")

    job_role = profile.roadmap_progress.job_role
    if job_role:
        lines.append(f"Target role: {job_role}")

    return "\n".join(lines)


__all__ = ["format_profile_for_llm"]
