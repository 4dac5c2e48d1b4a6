"""Profile REST endpoints."""

from __future__ import annotations

import logging
from typing import Any, List

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import ProfileReadError, ProfileWriteError
from .profile_schema import Profile
from .profile_service import ProfileService, get_profile_service
from .profile_store import normalize_user_id
from .profile_summary import format_profile_for_llm

router = APIRouter(prefix="/api/profile", tags=["profile"])
logger = logging.getLogger(__name__)


class ProfileResponse(BaseModel):
    ok: bool = True
    profile: Profile


class ProfileRejectedResponse(BaseModel):
    ok: bool = False
    errors: List[str] = Field(default_factory=list)


class ProfileSummaryResponse(BaseModel):
    ok: bool = True
    summary: str


def resolve_user_id(user_id: str) -> str:
    try:
        return normalize_user_id(user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def ensure_profile(service: ProfileService, user_id: str) -> Profile:
    try:
        return service.ensure_profile_exists(user_id)
    except (ProfileReadError, ProfileWriteError) as exc:
        logger.error("Could not load or create profile for %s: %s", user_id, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


@router.get("/{user_id}", response_model=ProfileResponse, status_code=status.HTTP_200_OK)
def read_profile(
    user_id: str,
    service: ProfileService = Depends(get_profile_service),
) -> ProfileResponse:
    key = resolve_user_id(user_id)
    return ProfileResponse(profile=ensure_profile(service, key))


@router.post(
    "/{user_id}/update",
    response_model=ProfileResponse,
    responses={status.HTTP_422_UNPROCESSABLE_ENTITY: {"model": ProfileRejectedResponse}},
)
def update_profile(
    user_id: str,
    patch: Any = Body(default=None),
    service: ProfileService = Depends(get_profile_service),
) -> Any:
    key = resolve_user_id(user_id)
    try:
        result = service.update_profile(key, {} if patch is None else patch)
    except (ProfileReadError, ProfileWriteError) as exc:
        logger.error("Profile update for %s was not persisted: %s", key, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    if not result.ok:
        rejected = ProfileRejectedResponse(errors=result.errors)
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=rejected.model_dump())
    return ProfileResponse(profile=result.profile)


@router.get("/{user_id}/summary", response_model=ProfileSummaryResponse)
def read_profile_summary(
    user_id: str,
    service: ProfileService = Depends(get_profile_service),
) -> ProfileSummaryResponse:
    key = resolve_user_id(user_id)
    return ProfileSummaryResponse(summary=format_profile_for_llm(ensure_profile(service, key)))
