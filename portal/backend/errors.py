class BackendError(Exception):
    """Base class for failures reported by the backend client."""


class RowNotFound(BackendError):
    """Raised when a single-row read matches nothing."""


class AuthError(BackendError):
    """Raised when sign-up, sign-in or an admin user operation is rejected."""


class StorageError(BackendError):
    """Raised when a bucket or object operation fails."""


def db_error_message(exc: Exception) -> str:
    """Driver message of a database error, without the SQL statement or parameters."""
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else type(exc).__name__
