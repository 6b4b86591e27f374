import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from portal.backend import BackendClient, BackendError, Principal
from portal.dependencies import get_backend, require_teacher
from portal.services.enrollment import drop_subject
from portal.templating import render_template
from portal.utils import flash

log = logging.getLogger(__name__)

router = APIRouter(prefix="/teacher/subjects", tags=["subjects"])

SEMESTERS = ["1st", "2nd", "summer"]


def _subject_form(code: str, name: str, semester: str, school_year: str) -> dict:
    return {
        "code": (code or "").strip(),
        "name": (name or "").strip(),
        "semester": semester if semester in SEMESTERS else SEMESTERS[0],
        "school_year": (school_year or "").strip(),
    }


@router.get("/", response_class=HTMLResponse, name="subjects.list_subjects")
def list_subjects(
    request: Request,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    subjects = backend.table("subjects").order("created_at", desc=True).order("id", desc=True).execute()
    return render_template(
        "teacher/subjects.html",
        {"request": request, "current_user": current_user, "subjects": subjects, "semesters": SEMESTERS},
    )


@router.post("/", name="subjects.create_subject")
def create_subject(
    request: Request,
    code: str = Form(""),
    name: str = Form(""),
    semester: str = Form("1st"),
    school_year: str = Form(""),
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    data = _subject_form(code, name, semester, school_year)
    if not data["code"] or not data["name"]:
        flash(request, "Please fill in all required fields", "warning")
        return RedirectResponse("/teacher/subjects/", status_code=303)
    try:
        backend.table("subjects").insert(data)
    except BackendError as e:
        log.exception("Subject create failed")
        flash(request, f"Error adding subject: {e}", "danger")
        return RedirectResponse("/teacher/subjects/", status_code=303)
    flash(request, f"Subject {data['code']} added.", "success")
    return RedirectResponse("/teacher/subjects/", status_code=303)


@router.get("/{subject_id}/edit", response_class=HTMLResponse, name="subjects.edit_subject")
def edit_subject_form(
    request: Request,
    subject_id: int,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    subject = backend.table("subjects").eq("id", subject_id).single()
    return render_template(
        "teacher/subject_form.html",
        {"request": request, "current_user": current_user, "subject": subject, "semesters": SEMESTERS},
    )


@router.post("/{subject_id}/edit", name="subjects.edit_subject_post")
def edit_subject(
    request: Request,
    subject_id: int,
    code: str = Form(""),
    name: str = Form(""),
    semester: str = Form("1st"),
    school_year: str = Form(""),
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    data = _subject_form(code, name, semester, school_year)
    if not data["code"] or not data["name"]:
        flash(request, "Please fill in all required fields", "warning")
        return RedirectResponse(f"/teacher/subjects/{subject_id}/edit", status_code=303)
    try:
        updated = backend.table("subjects").eq("id", subject_id).update(data)
    except BackendError as e:
        log.exception("Subject update failed")
        flash(request, f"Error updating subject: {e}", "danger")
        return RedirectResponse(f"/teacher/subjects/{subject_id}/edit", status_code=303)
    if not updated:
        flash(request, "Subject not found.", "warning")
    else:
        flash(request, "Subject updated.", "success")
    return RedirectResponse("/teacher/subjects/", status_code=303)


@router.post("/{subject_id}/delete", name="subjects.delete_subject")
def delete_subject(
    request: Request,
    subject_id: int,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """Deletes a subject; its grades and attendance go with it."""
    try:
        deleted = backend.table("subjects").eq("id", subject_id).delete()
        if deleted:
            drop_subject(backend, subject_id)
    except BackendError as e:
        log.exception("Subject delete failed")
        flash(request, f"Error deleting subject: {e}", "danger")
        return RedirectResponse("/teacher/subjects/", status_code=303)
    flash(request, "Subject deleted." if deleted else "Subject not found.", "success" if deleted else "warning")
    return RedirectResponse("/teacher/subjects/", status_code=303)
