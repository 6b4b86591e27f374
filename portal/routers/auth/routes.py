import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from portal.backend import AuthError, BackendClient, BackendError, Principal
from portal.dependencies import AnonymousUser, get_backend, get_current_user
from portal.templating import render_template
from portal.utils import flash

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def home_path(user: Principal) -> str:
    """Landing page for a signed-in user's role."""
    return "/teacher/dashboard" if user.role == "teacher" else "/student/dashboard"


@router.get("/login", response_class=HTMLResponse, name="auth.login")
def login_form(request: Request, current_user: Principal | AnonymousUser = Depends(get_current_user)):
    """Renders the login form."""
    if current_user.is_authenticated:
        return RedirectResponse(home_path(current_user), status_code=303)
    return render_template("auth/login.html", {"request": request, "current_user": current_user, "tab": "login"})


@router.post("/login", name="auth.login_post")
def login_action(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    backend: BackendClient = Depends(get_backend),
):
    """Signs in with the backend and stores the access token in a cookie."""
    try:
        auth_session = backend.auth.sign_in_with_password(email, password)
    except AuthError as e:
        flash(request, str(e), "danger")
        return RedirectResponse("/auth/login", status_code=303)

    settings = backend.settings
    response = RedirectResponse(home_path(auth_session.user), status_code=303)
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=auth_session.access_token,
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        samesite=settings.SESSION_COOKIE_SAMESITE,
        secure=settings.SESSION_COOKIE_SECURE,
    )
    return response


@router.get("/register", response_class=HTMLResponse, name="auth.register")
def register_form(request: Request, current_user: Principal | AnonymousUser = Depends(get_current_user)):
    """Renders the teacher registration form."""
    if current_user.is_authenticated:
        return RedirectResponse(home_path(current_user), status_code=303)
    return render_template("auth/login.html", {"request": request, "current_user": current_user, "tab": "register"})


@router.post("/register", name="auth.register_post")
def register_action(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    confirm_password: str = Form(...),
    backend: BackendClient = Depends(get_backend),
):
    """Registers a teacher account. Students are registered by teachers."""
    if password != confirm_password:
        flash(request, "Passwords do not match", "warning")
        return RedirectResponse("/auth/register", status_code=303)

    try:
        backend.auth.sign_up(email, password, {"role": "teacher"})
    except BackendError as e:
        flash(request, str(e) or "Registration failed. Please try again.", "danger")
        return RedirectResponse("/auth/register", status_code=303)

    flash(request, "Registration successful! You can now login.", "success")
    return RedirectResponse("/auth/login", status_code=303)


@router.get("/logout", name="auth.logout")
def logout(request: Request, backend: BackendClient = Depends(get_backend)):
    """Logs out the user by clearing the token cookie."""
    response = RedirectResponse("/auth/login", status_code=303)
    response.delete_cookie(backend.settings.AUTH_COOKIE_NAME)
    request.session.clear()
    return response
