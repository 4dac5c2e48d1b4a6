"""ORM models backing the database profile store."""

from __future__ import annotations

from typing import Any

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin


class ProfileDocumentModel(TimestampMixin, Base):
    """One learning profile document per user."""

    __tablename__ = "profile_documents"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    document: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)


__all__ = ["ProfileDocumentModel"]
