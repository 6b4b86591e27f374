import logging
import logging.config
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

request_logger = logging.getLogger("portal.request")


class RequestContextFilter(logging.Filter):
    """Fill request fields so the access format works for any record."""

    FIELDS = ("method", "path", "status", "duration_ms", "user")

    def filter(self, record):
        for name in self.FIELDS:
            if not hasattr(record, name):
                setattr(record, name, "-")
        return True


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "request_context": {"()": RequestContextFilter},
            },
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["request_context"],
                },
            },
            "loggers": {
                "portal": {"handlers": ["console"], "level": level, "propagate": False},
                "sqlalchemy.engine": {"level": "WARNING"},
            },
        }
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One access line per request: HTTP METHOD PATH -> STATUS (ms) user=EMAIL."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            duration_ms = int((time.perf_counter() - start) * 1000)
            user = getattr(request.state, "user", "-")
            request_logger.info(
                "HTTP %s %s -> %s (%sms) user=%s",
                request.method,
                request.url.path,
                status,
                duration_ms,
                user,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": status,
                    "duration_ms": duration_ms,
                    "user": user,
                },
            )
