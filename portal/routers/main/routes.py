from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from portal.backend import BackendClient, Principal
from portal.dependencies import AnonymousUser, get_backend, get_current_user, require_teacher
from portal.routers.auth.routes import home_path
from portal.templating import render_template

router = APIRouter(tags=["main"])


@router.get("/", name="main.index")
def index(current_user: Principal | AnonymousUser = Depends(get_current_user)):
    """Sends visitors to the login page and users to their dashboard."""
    if not current_user.is_authenticated:
        return RedirectResponse("/auth/login", status_code=303)
    return RedirectResponse(home_path(current_user), status_code=303)


@router.get("/healthz", name="main.healthz")
def healthz(request: Request):
    return {"status": "ok", "version": request.app.state.settings.APP_VERSION}


@router.get("/teacher/dashboard", response_class=HTMLResponse, name="main.teacher_dashboard")
def teacher_dashboard(
    request: Request,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """
    Renders record counts for every table a teacher manages.
    """
    stats = {
        "subjects": backend.table("subjects").count(),
        "students": backend.table("students").count(),
        "attendance_records": backend.table("attendance").count(),
        "grade_records": backend.table("grades").count(),
    }
    return render_template(
        "teacher/dashboard.html",
        {"request": request, "current_user": current_user, "stats": stats},
    )
