import logging
from typing import Dict

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from .chat_routes import router as chat_router
from .config import Settings, get_settings
from .db.session import ping_database
from .logging_config import configure_logging
from .profile_routes import router as profile_router
from .roadmap_routes import router as roadmap_router


configure_logging()
logger = logging.getLogger(__name__)

settings_snapshot = get_settings()
app = FastAPI(title="Roadmate Profile Backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings_snapshot.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(profile_router)
app.include_router(chat_router)
app.include_router(roadmap_router)

logger.info("Backend starting with persistence mode: %s", settings_snapshot.persistence_mode)
logger.info("Model service configured: %s", bool(settings_snapshot.model_api_url))


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    return {"status": "ok", "persistence_mode": settings.persistence_mode}


@app.get("/healthz/database")
def database_health(settings: Settings = Depends(get_settings)) -> Dict[str, str]:
    if settings.persistence_mode != "database":
        return {"status": "skipped", "persistence_mode": settings.persistence_mode}
    try:
        ping_database()
    except (RuntimeError, SQLAlchemyError) as exc:
        logger.warning("Database health check failed: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"status": "ok", "persistence_mode": settings.persistence_mode}
