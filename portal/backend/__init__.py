from .auth import AuthService, AuthSession, Principal
from .client import BackendClient, create_backend
from .errors import AuthError, BackendError, RowNotFound, StorageError
from .storage import Bucket, StorageService
from .tables import TableQuery

__all__ = [
    "BackendClient", "create_backend",
    "TableQuery",
    "AuthService", "AuthSession", "Principal",
    "StorageService", "Bucket",
    "BackendError", "RowNotFound", "AuthError", "StorageError",
]
