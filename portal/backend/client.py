from __future__ import annotations

import logging
from datetime import timedelta

from portal.config import Settings
from portal.extensions import Database
from portal.models import Attendance, Grade, Student, Subject

from .auth import AuthService
from .errors import BackendError
from .storage import StorageService
from .tables import TableQuery

log = logging.getLogger(__name__)

TABLES = {
    "subjects": Subject.__table__,
    "students": Student.__table__,
    "grades": Grade.__table__,
    "attendance": Attendance.__table__,
}


class BackendClient:
    """Handle on the data, auth and storage services.

    One instance is built when the application starts and closed when it
    shuts down; routes receive it through ``portal.dependencies.get_backend``.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.database = Database(settings.DATABASE_URL, echo=settings.SQL_ECHO)
        self.database.create_all()
        self.auth = AuthService(
            self.database,
            secret_key=settings.SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            token_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )
        self.storage = StorageService(settings.STORAGE_DIR, settings.STORAGE_URL_PREFIX)
        self._closed = False

    def table(self, name: str) -> TableQuery:
        if self._closed:
            raise BackendError("Backend client is closed")
        try:
            return TableQuery(self.database, TABLES[name])
        except KeyError:
            raise BackendError(f"Unknown table: {name!r}") from None

    def close(self) -> None:
        if not self._closed:
            self.database.dispose()
            self._closed = True
            log.info("Backend client closed")


def create_backend(settings: Settings) -> BackendClient:
    client = BackendClient(settings)
    log.info("Backend client ready (database=%s, storage=%s)", client.database.engine.url, client.storage.root)
    return client
