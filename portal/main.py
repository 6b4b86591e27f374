from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from .backend import create_backend
from .config import Settings, settings as default_settings
from .errors import add_error_handlers
from .logging_config import RequestLoggingMiddleware, configure_logging
from .routers.attendance.routes import router as attendance_router
from .routers.auth.routes import router as auth_router
from .routers.grades.routes import router as grades_router
from .routers.main.routes import router as main_router
from .routers.reports.routes import router as reports_router
from .routers.student.routes import router as student_router
from .routers.students.routes import router as students_router
from .routers.subjects.routes import router as subjects_router

log = logging.getLogger(__name__)

STATIC_DIR = os.path.join(os.path.dirname(__file__), "static")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the web app and the backend client it owns."""
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)
    backend = create_backend(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.backend.close()

    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.backend = backend

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SECRET_KEY,
        same_site=settings.SESSION_COOKIE_SAMESITE,
        https_only=settings.SESSION_COOKIE_SECURE,
    )

    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")
    app.mount(settings.STORAGE_URL_PREFIX, StaticFiles(directory=backend.storage.root), name="storage")

    add_error_handlers(app)

    app.include_router(main_router)
    app.include_router(auth_router)
    app.include_router(subjects_router)
    app.include_router(students_router)
    app.include_router(attendance_router)
    app.include_router(grades_router)
    app.include_router(reports_router)
    app.include_router(student_router)

    log.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    return app
