"""Schema-driven deep merge of sanitised patches into stored profiles."""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .patch_validator import ProfilePatch
from .profile_schema import Profile, RoadmapProgress

logger = logging.getLogger(__name__)

FieldPath = Tuple[str, ...]

ROADMAP_PATH: FieldPath = ("roadmap_progress",)


class MergeRule(str, Enum):
    SCALAR = "scalar"
    LIST_REPLACE = "list_replace"
    MAP_MERGE = "map_merge"
    MAP_REPLACE = "map_replace"


PROFILE_MERGE_RULES: Dict[FieldPath, MergeRule] = {
    ("platform_data",): MergeRule.MAP_MERGE,
    ("platform_data", "active_courses"): MergeRule.LIST_REPLACE,
    ("platform_data", "course_progress"): MergeRule.MAP_MERGE,
    ("learning_profile",): MergeRule.MAP_MERGE,
    ("learning_profile", "goals"): MergeRule.LIST_REPLACE,
    ("learning_profile", "weaknesses"): MergeRule.LIST_REPLACE,
    ("learning_profile", "strengths"): MergeRule.LIST_REPLACE,
    ("learning_profile", "skills"): MergeRule.MAP_MERGE,
    ("learning_profile", "current_focus"): MergeRule.MAP_MERGE,
    ("learning_profile", "progress_score"): MergeRule.MAP_MERGE,
    # The validator has already prepended the stored entries.
    ("learning_profile", "history"): MergeRule.LIST_REPLACE,
    ROADMAP_PATH: MergeRule.MAP_MERGE,
    ("roadmap_progress", "skills_status"): MergeRule.MAP_MERGE,
    ("roadmap_progress", "subskills"): MergeRule.LIST_REPLACE,
}


def _infer_rule(value: Any) -> MergeRule:
    if isinstance(value, dict):
        return MergeRule.MAP_MERGE
    if isinstance(value, list):
        return MergeRule.LIST_REPLACE
    return MergeRule.SCALAR


class MergePolicy:
    """Deep merge driven by a table of per-path rules.

    Paths missing from the table follow the generic rule inferred from the
    incoming value: mappings merge, lists and scalars replace.
    """

    def __init__(
        self,
        rules: Mapping[FieldPath, MergeRule],
        replacement_defaults: Optional[Mapping[FieldPath, Callable[[], Dict[str, Any]]]] = None,
    ) -> None:
        self._rules = dict(rules)
        self._replacement_defaults = dict(replacement_defaults or {})

    def with_overrides(self, overrides: Mapping[FieldPath, MergeRule]) -> "MergePolicy":
        return MergePolicy({**self._rules, **overrides}, self._replacement_defaults)

    def rule_for(self, path: FieldPath, value: Any) -> MergeRule:
        rule = self._rules.get(path) or _infer_rule(value)
        if rule in (MergeRule.MAP_MERGE, MergeRule.MAP_REPLACE) and not isinstance(value, dict):
            return _infer_rule(value)
        return rule

    def merge(self, target: Any, source: Mapping[str, Any]) -> Dict[str, Any]:
        """Return ``target`` merged with ``source``; neither input is mutated."""
        return self._merge_mapping((), target, source)

    def _merge_value(self, path: FieldPath, target: Any, source: Any) -> Any:
        rule = self.rule_for(path, source)
        if rule is MergeRule.MAP_MERGE:
            return self._merge_mapping(path, target, source)
        if rule is MergeRule.MAP_REPLACE:
            factory = self._replacement_defaults.get(path)
            base = factory() if factory else {}
            base.update(copy.deepcopy(source))
            return base
        return copy.deepcopy(source)

    def _merge_mapping(self, path: FieldPath, target: Any, source: Mapping[str, Any]) -> Dict[str, Any]:
        if isinstance(target, dict):
            merged = copy.deepcopy(target)
        else:
            if target is not None:
                logger.warning(
                    "Resetting %s to an empty mapping before merge (found %s)",
                    ".".join(path) or "<root>",
                    type(target).__name__,
                )
            merged = {}
        for key, value in source.items():
            merged[key] = self._merge_value(path + (key,), merged.get(key), value)
        return merged


GENERIC_POLICY = MergePolicy({})


def deep_merge(target: Any, source: Mapping[str, Any]) -> Dict[str, Any]:
    return GENERIC_POLICY.merge(target, source)


def roadmap_requires_reset(existing: Profile, patch: ProfilePatch) -> bool:
    """True when the patch switches an already declared job role.

    An empty ``job_role`` in the patch is merged like any other value and
    never counts as a switch.
    """
    declared = patch.declared_job_role
    stored = existing.roadmap_progress.job_role
    return bool(declared) and stored is not None and declared != stored


def _profile_policy(stamp: datetime) -> MergePolicy:
    stamp_ms = int(stamp.timestamp() * 1000)

    def empty_roadmap() -> Dict[str, Any]:
        return RoadmapProgress(created_at=stamp_ms, last_updated=stamp_ms).model_dump(mode="json")

    return MergePolicy(PROFILE_MERGE_RULES, {ROADMAP_PATH: empty_roadmap})


def merge_profile(existing: Profile, patch: ProfilePatch, *, now: Optional[datetime] = None) -> Profile:
    """Apply a sanitised patch to ``existing`` and return the new profile.

    ``roadmap_progress`` is replaced rather than merged when the patch switches
    job role. ``updated_at`` is always stamped; ``user_id`` and ``created_at``
    are carried over from ``existing``.
    """
    stamp = now or datetime.now(timezone.utc)
    policy = _profile_policy(stamp)
    if roadmap_requires_reset(existing, patch):
        logger.info(
            "Replacing roadmap progress for %s: job role %r -> %r",
            existing.user_id,
            existing.roadmap_progress.job_role,
            patch.declared_job_role,
        )
        policy = policy.with_overrides({ROADMAP_PATH: MergeRule.MAP_REPLACE})

    document = existing.to_document()
    merged = policy.merge(document, patch.to_update())
    merged["user_id"] = existing.user_id
    merged["created_at"] = document["created_at"]
    merged["updated_at"] = stamp.isoformat()
    return Profile.model_validate(merged)


__all__ = [
    "GENERIC_POLICY",
    "MergePolicy",
    "MergeRule",
    "PROFILE_MERGE_RULES",
    "ROADMAP_PATH",
    "deep_merge",
    "merge_profile",
    "roadmap_requires_reset",
]
