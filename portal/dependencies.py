from typing import Any

from fastapi import Depends, HTTPException, Request

from .backend import BackendClient, Principal, RowNotFound
from .utils import flash


class AnonymousUser:
    """Represents a non-authenticated user."""
    is_authenticated = False
    role = "anonymous"
    email = None
    id = None


def get_backend(request: Request) -> BackendClient:
    """Dependency to provide the application's backend client."""
    return request.app.state.backend


def get_current_user(
    request: Request,
    backend: BackendClient = Depends(get_backend),
) -> Principal | AnonymousUser:
    """Resolves the signed-in principal from the auth cookie."""
    token = request.cookies.get(backend.settings.AUTH_COOKIE_NAME)
    user = backend.auth.get_user(token) if token else None
    if user:
        request.state.user = user.email
    return user or AnonymousUser()


def require_user(current_user: Principal | AnonymousUser = Depends(get_current_user)) -> Principal:
    """Dependency that ensures a user is authenticated, redirecting to login if not."""
    if not getattr(current_user, "is_authenticated", False):
        raise HTTPException(status_code=303, headers={"Location": "/auth/login"})
    return current_user


def require_role(*roles: str):
    """Dependency factory that sends users without one of ``roles`` back to their own home page."""
    def role_checker(request: Request, user: Principal = Depends(require_user)) -> Principal:
        if user.role not in roles:
            flash(request, "You do not have access to that page.", "warning")
            raise HTTPException(status_code=303, headers={"Location": "/"})
        return user
    return role_checker


require_teacher = require_role("teacher")
require_student = require_role("student")


def get_current_student(
    user: Principal = Depends(require_student),
    backend: BackendClient = Depends(get_backend),
) -> dict[str, Any]:
    """The ``students`` row linked to the signed-in student account."""
    row = backend.table("students").eq("user_id", user.id).maybe_single()
    if row is None:
        row = backend.table("students").eq("email", user.email).maybe_single()
    if row is None:
        raise RowNotFound("Student record not found")
    return row
