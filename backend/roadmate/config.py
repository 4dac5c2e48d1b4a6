import os
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Field(Path("./data"), alias="ROADMATE_DATA_DIR")
    profile_dir: Optional[Path] = Field(None, alias="ROADMATE_PROFILE_DIR")
    platform_users_file: Optional[Path] = Field(None, alias="ROADMATE_PLATFORM_USERS_FILE")
    persistence_mode: Literal["file", "database"] = Field("file", alias="ROADMATE_PERSISTENCE_MODE")
    database_url: Optional[str] = Field(None, alias="ROADMATE_DATABASE_URL")
    database_pool_size: int = Field(10, alias="ROADMATE_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="ROADMATE_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="ROADMATE_DATABASE_ECHO")
    model_api_url: Optional[str] = Field(None, alias="BOT_API_URL")
    model_request_timeout_ms: int = Field(15000, alias="MODEL_REQUEST_TIMEOUT_MS")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], alias="ROADMATE_CORS_ORIGINS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def resolved_profile_dir(self) -> Path:
        return self.profile_dir or self.data_dir / "user_profile"

    @property
    def resolved_platform_users_file(self) -> Path:
        return self.platform_users_file or self.data_dir / "users_hashed.json"


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
