import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from taskboard import __version__
from taskboard.auth.routes import router as auth_router
from taskboard.config import Settings, load_settings
from taskboard.database import Database
from taskboard.errors import TaskboardError, taskboard_error_handler
from taskboard.notifications import build_notifier
from taskboard.tasks.routes import router as tasks_router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the API application.

    Settings and the database are loaded from the environment unless given,
    which lets tests run against an isolated in-memory store.
    """
    if settings is None:
        settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if database is None:
        database = Database(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Schema creation is skipped when migrations own the schema
        if settings.create_tables:
            database.create_all()
        logger.info(f"Task App API started (environment: {settings.environment})")
        yield
        database.dispose()

    app = FastAPI(
        title="Task App API",
        description="Task tracking with multi-user assignment and creator/assignee permissions",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.notifier = build_notifier(settings)

    # CORS middleware for frontend
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
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)")
        return response

    app.add_exception_handler(TaskboardError, taskboard_error_handler)

    app.include_router(auth_router)
    app.include_router(tasks_router)

    # Health check
    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("taskboard.main:app", host="0.0.0.0", port=8080)
