# apps/backend/main.py

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# -----------------------------------------------------------------------------
# Paths + Python path
# -----------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent  # .../apps/backend
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

# -----------------------------------------------------------------------------
# Load .env (MUST be before importing anything that needs env)
# -----------------------------------------------------------------------------
ENV_PATH = BASE_DIR / ".env"
load_dotenv(ENV_PATH)

from app.core.config import Settings, settings as default_settings  # noqa: E402
from app.core.errors import register_error_handlers  # noqa: E402
from app.core.logging import setup_logging  # noqa: E402
from app.db import Base, engine  # noqa: E402
from app.realtime.hub import Hub  # noqa: E402
from app.routes.admin import router as admin_router  # noqa: E402
from app.routes.analytics import router as analytics_router  # noqa: E402
from app.routes.events import router as events_router  # noqa: E402
from app.routes.realtime import router as realtime_router  # noqa: E402
from app.services.ingest import EventIngestor  # noqa: E402

# registers the tables on Base.metadata
from app.models.event import Event  # noqa: E402,F401
from app.models.project import Project  # noqa: E402,F401
from app.models.visitor import TrackedSession, TrackedUser  # noqa: E402,F401

logger = logging.getLogger("app.main")

API_PREFIX = "/api/v1"


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.log_level)

    app = FastAPI(title=settings.app_name, version="1.0.0")

    # -------------------------------------------------------------------------
    # Shared state: one hub per process, handed to ingestion and viewers
    # -------------------------------------------------------------------------
    hub = Hub(buffer_size=settings.hub_buffer_size)
    app.state.settings = settings
    app.state.hub = hub
    app.state.ingestor = EventIngestor(hub, workers=settings.counter_workers)

    # -------------------------------------------------------------------------
    # CORS
    # -------------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s %s %d %.1fms",
            request.client.host if request.client else "-",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    register_error_handlers(app)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    @app.on_event("startup")
    async def _startup():
        # Minimal & safe: create tables if they don't exist
        Base.metadata.create_all(bind=engine)
        hub.start()
        logger.info("%s started (%s)", settings.app_name, settings.environment)

    @app.on_event("shutdown")
    async def _shutdown():
        await hub.stop()
        app.state.ingestor.shutdown(wait=True)

    # -------------------------------------------------------------------------
    # Routers
    # -------------------------------------------------------------------------
    app.include_router(events_router, prefix=API_PREFIX, tags=["events"])
    app.include_router(analytics_router, prefix=API_PREFIX, tags=["analytics"])
    app.include_router(admin_router, prefix=API_PREFIX, tags=["admin"])
    app.include_router(realtime_router, prefix=API_PREFIX, tags=["realtime"])

    # -------------------------------------------------------------------------
    # Basic health check
    # -------------------------------------------------------------------------
    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=default_settings.port)
