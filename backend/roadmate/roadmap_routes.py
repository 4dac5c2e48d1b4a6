"""Roadmap endpoints relayed to the model service."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from .errors import ModelServiceError
from .model_client import ModelServiceClient, get_model_client
from .profile_routes import resolve_user_id

router = APIRouter(prefix="/api/roadmap", tags=["roadmap"])
logger = logging.getLogger(__name__)


class SkillLevelRequest(BaseModel):
    subskill_id: str = Field(..., min_length=1)
    level: str = Field(..., min_length=1)
    notes: Optional[str] = None


class RecommendationsResponse(BaseModel):
    ok: bool = True
    recommendations: Any = None
    meta: Any = None


class RoadmapProgressResponse(BaseModel):
    ok: bool = True
    roadmap_progress: Any = None
    meta: Any = None


def _require_model(client: ModelServiceClient) -> None:
    if not client.configured:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Model service is not configured.")


def _upstream_failure(user_id: str, exc: ModelServiceError) -> HTTPException:
    logger.warning("Roadmap relay failed for %s: %s", user_id, exc)
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Model backend error: {exc}")


@router.get("/{user_id}/recommendations", response_model=RecommendationsResponse)
def roadmap_recommendations(
    user_id: str,
    client: ModelServiceClient = Depends(get_model_client),
) -> RecommendationsResponse:
    key = resolve_user_id(user_id)
    _require_model(client)
    try:
        data = client.roadmap_recommendations(key)
    except ModelServiceError as exc:
        raise _upstream_failure(key, exc) from exc
    return RecommendationsResponse(recommendations=data.get("recommendations"), meta=data.get("meta"))


@router.post("/{user_id}/skills", response_model=RoadmapProgressResponse)
def update_skill_level(
    user_id: str,
    request: SkillLevelRequest,
    client: ModelServiceClient = Depends(get_model_client),
) -> RoadmapProgressResponse:
    key = resolve_user_id(user_id)
    _require_model(client)
    try:
        data = client.update_skill_level(key, request.subskill_id, request.level, request.notes or "")
    except ModelServiceError as exc:
        raise _upstream_failure(key, exc) from exc
    return RoadmapProgressResponse(roadmap_progress=data.get("roadmap_progress"), meta=data.get("meta"))


@router.post("/{user_id}/auto-update", response_model=RoadmapProgressResponse)
def auto_update_roadmap(
    user_id: str,
    client: ModelServiceClient = Depends(get_model_client),
) -> RoadmapProgressResponse:
    key = resolve_user_id(user_id)
    _require_model(client)
    try:
        data = client.auto_update_roadmap(key)
    except ModelServiceError as exc:
        raise _upstream_failure(key, exc) from exc
    return RoadmapProgressResponse(roadmap_progress=data.get("roadmap_progress"), meta=data.get("meta"))
