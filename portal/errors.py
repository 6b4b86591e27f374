import logging

from fastapi import FastAPI, Request

from .backend import BackendError, RowNotFound
from .templating import render_template

log = logging.getLogger(__name__)


def add_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RowNotFound)
    async def not_found_handler(request: Request, exc: RowNotFound):
        log.warning("Not found on %s: %s", request.url.path, exc)
        return render_template(
            "error.html",
            {"request": request, "title": "Not found", "message": str(exc)},
            status_code=404,
        )

    @app.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError):
        log.exception("Backend failure on %s", request.url.path, exc_info=exc)
        return render_template(
            "error.html",
            {"request": request, "title": "Something went wrong", "message": str(exc)},
            status_code=502,
        )
