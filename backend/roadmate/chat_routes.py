"""Chat relay: forwards messages to the model service and applies its profile patches."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from .errors import ProfileReadError, ProfileWriteError
from .model_client import ModelServiceClient, get_model_client
from .profile_routes import ensure_profile, resolve_user_id
from .profile_schema import Profile
from .profile_service import ProfileService, get_profile_service

router = APIRouter(prefix="/api/chat", tags=["chat"])
logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    message: str = ""
    mode: Optional[str] = None


class ChatResponse(BaseModel):
    ok: bool = True
    reply: str
    meta: Any = Field(default_factory=dict)
    sources: List[Any] = Field(default_factory=list)
    intent: Any = None
    profile_updated: bool = False
    profile: Profile


def _handle_chat(
    request: ChatRequest,
    service: ProfileService,
    client: ModelServiceClient,
    mode: Optional[str],
) -> ChatResponse:
    if not request.message.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message cannot be empty.")
    user_id = resolve_user_id(request.user_id)
    profile = ensure_profile(service, user_id)

    answer = client.send_chat(user_id, request.message, mode=mode, profile=profile)

    merged = profile
    if answer.profile_updates is not None:
        try:
            result = service.update_profile(user_id, answer.profile_updates)
        except (ProfileReadError, ProfileWriteError) as exc:
            logger.error("Failed to persist model profile update for %s: %s", user_id, exc)
        else:
            if result.ok:
                merged = result.profile
            else:
                logger.warning("Rejected profile update from model for %s: %s", user_id, result.errors)

    return ChatResponse(
        reply=answer.reply,
        meta=answer.meta,
        sources=answer.sources,
        intent=answer.intent,
        profile_updated=answer.profile_updates is not None,
        profile=merged,
    )


@router.post("", response_model=ChatResponse)
def chat(
    request: ChatRequest,
    service: ProfileService = Depends(get_profile_service),
    client: ModelServiceClient = Depends(get_model_client),
) -> ChatResponse:
    return _handle_chat(request, service, client, request.mode)


@router.post("/job-role", response_model=ChatResponse)
def chat_job_role(
    request: ChatRequest,
    service: ProfileService = Depends(get_profile_service),
    client: ModelServiceClient = Depends(get_model_client),
) -> ChatResponse:
    return _handle_chat(request, service, client, "job_role")
