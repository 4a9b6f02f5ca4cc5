import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.departments.department_router import router as departments_router
from app.api.v1.exam_alerts.router import router as exam_alerts_router
from app.api.v1.exam_schedules.router import router as exam_schedules_router
from app.api.v1.subjects.router import router as subjects_router
from app.core.config import settings
from app.core.notifications import dispatcher
from app.db.session import engine
from app.middleware.logging import RequestLoggingMiddleware

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s", settings.app_name)
    notifier_task = asyncio.create_task(dispatcher.run())
    yield
    notifier_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await notifier_task
    await engine.dispose()
    logger.info("Shutting down application")


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    app.add_middleware(RequestLoggingMiddleware)

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    async def health_check():
        return {"status": "healthy", "app": settings.app_name}

    # Routers
    app.include_router(departments_router)
    app.include_router(subjects_router)
    app.include_router(exam_alerts_router)
    app.include_router(exam_schedules_router)

    return app


app = create_app()
