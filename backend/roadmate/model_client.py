"""HTTP client for the external model service."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import httpx

from .coercion import as_text
from .config import Settings, get_settings
from .errors import ModelServiceError
from .profile_schema import Profile

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Sorry, the model is not available right now."
EMPTY_REPLY = "The assistant did not respond."
PROFILE_UPDATE_KEYS = ("profile_updates", "profileUpdate", "profile_update")

_PROFILE_UPDATE_BLOCK = re.compile(r"<profile_update>[\s\S]*?</profile_update>")


def strip_profile_update_tags(text: Optional[str]) -> str:
    """Remove inline ``<profile_update>`` blocks the model may echo into its reply."""
    if not text:
        return ""
    return _PROFILE_UPDATE_BLOCK.sub("", text).strip()


def extract_profile_updates(response: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    for key in PROFILE_UPDATE_KEYS:
        value = response.get(key)
        if value:
            return dict(value) if isinstance(value, Mapping) else None
    return None


@dataclass
class ModelChatReply:
    reply: str
    meta: Dict[str, Any] = field(default_factory=dict)
    sources: List[Any] = field(default_factory=list)
    intent: Any = field(default_factory=dict)
    profile_updates: Optional[Dict[str, Any]] = None
    available: bool = True


class ModelServiceClient:
    """Thin wrapper over the model service's chat and roadmap endpoints."""

    def __init__(
        self,
        base_url: Optional[str],
        *,
        timeout_seconds: float = 15.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout_seconds
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelServiceClient":
        timeout_seconds = max(settings.model_request_timeout_ms, 1000) / 1000
        return cls(settings.model_api_url, timeout_seconds=timeout_seconds)

    @property
    def configured(self) -> bool:
        return bool(self._base_url)

    def _url(self, path: str) -> str:
        base = (self._base_url or "").rstrip("/")
        # BOT_API_URL is sometimes configured with the chat endpoint itself.
        if base.endswith("/chat"):
            base = base[: -len("/chat")]
        return f"{base}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        if not self.configured:
            raise ModelServiceError("BOT_API_URL is not configured.")
        local_client = self._client or httpx.Client(timeout=self._timeout)
        close_client = self._client is None
        try:
            response = local_client.request(method, self._url(path), **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ModelServiceError(f"Model service call to {path} failed: {exc}") from exc
        finally:
            if close_client:
                local_client.close()

        try:
            data = response.json()
        except ValueError as exc:
            raise ModelServiceError(f"Model service returned invalid JSON for {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ModelServiceError(f"Model service returned a non-object payload for {path}")
        return data

    def send_chat(
        self,
        user_id: str,
        message: str,
        *,
        mode: Optional[str] = None,
        profile: Optional[Profile] = None,
    ) -> ModelChatReply:
        """Forward a chat message; an unreachable model yields a fallback reply."""
        payload: Dict[str, Any] = {"user_id": str(user_id), "text": str(message)}
        if mode:
            payload["mode"] = mode
        if profile is not None:
            payload["profile"] = profile.to_document()

        try:
            data = self._request("POST", "/chat", json=payload)
        except ModelServiceError as exc:
            logger.error("Error contacting model service: %s", exc)
            return ModelChatReply(reply=FALLBACK_REPLY, available=False)

        raw_reply = data.get("response") or data.get("reply") or EMPTY_REPLY
        return ModelChatReply(
            reply=strip_profile_update_tags(as_text(raw_reply)),
            meta=data.get("meta") or {},
            sources=data.get("sources") or [],
            intent=data.get("intent") or {},
            profile_updates=extract_profile_updates(data),
        )

    def roadmap_recommendations(self, user_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/roadmap/recommendations/{quote(str(user_id), safe='')}")

    def update_skill_level(self, user_id: str, subskill_id: str, level: str, notes: str = "") -> Dict[str, Any]:
        payload = {
            "user_id": str(user_id),
            "subskill_id": subskill_id,
            "level": level,
            "notes": notes or "",
        }
        return self._request("POST", "/roadmap/update-skill", json=payload)

    def auto_update_roadmap(self, user_id: str) -> Dict[str, Any]:
        return self._request("POST", "/roadmap/auto-update", json={"user_id": str(user_id), "text": "auto-update"})


@lru_cache
def get_model_client() -> ModelServiceClient:
    return ModelServiceClient.from_settings(get_settings())


__all__ = [
    "EMPTY_REPLY",
    "FALLBACK_REPLY",
    "ModelChatReply",
    "ModelServiceClient",
    "extract_profile_updates",
    "get_model_client",
    "strip_profile_update_tags",
]
