import logging
import os
from logging.config import dictConfig
from typing import Dict, Tuple

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Flag -> (logger names, level applied when the flag is "1").
DEBUG_FLAGS: Dict[str, Tuple[Tuple[str, ...], str]] = {
    "ROADMATE_DEBUG_HTTP": (("httpx", "httpcore", "uvicorn.access"), "DEBUG"),
    "ROADMATE_DEBUG_SQL": (("sqlalchemy.engine",), "INFO"),
}


def _flag_enabled(name: str) -> bool:
    return os.getenv(name, "0").strip().lower() in {"1", "true", "yes"}


def configure_logging() -> None:
    """Configure process logging from ROADMATE_LOG_LEVEL and the debug flags."""
    level = os.getenv("ROADMATE_LOG_LEVEL", "INFO").upper()
    if not isinstance(logging.getLevelName(level), int):
        level = "INFO"

    loggers: Dict[str, Dict[str, str]] = {
        # Telemetry lines stay visible whatever the root level is.
        "roadmate.telemetry": {"level": "INFO" if logging.getLevelName(level) > logging.INFO else level},
        "httpx": {"level": "WARNING"},
    }
    for flag, (names, flag_level) in DEBUG_FLAGS.items():
        if _flag_enabled(flag):
            loggers.update({name: {"level": flag_level} for name in names})

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": DEFAULT_LOG_FORMAT}},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "loggers": loggers,
            "root": {"handlers": ["default"], "level": level},
        }
    )
