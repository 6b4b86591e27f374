from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from portal.backend import BackendClient, BackendError, Principal
from portal.dependencies import get_backend, require_teacher
from portal.services.enrollment import enrolled_students
from portal.services.grading import TERM_LABELS, TERMS, TermGrades, grades_by_student, parse_grade, summarize
from portal.templating import render_template
from portal.utils import flash, parse_int

log = logging.getLogger(__name__)

router = APIRouter(prefix="/teacher/grades", tags=["grades"])

TABS = ("raw", "cumulative")


def _sheet_url(subject_id: int | None, tab: str = "raw") -> str:
    if subject_id is None:
        return "/teacher/grades/"
    return f"/teacher/grades/?subject_id={subject_id}&tab={tab}"


@router.get("/", response_class=HTMLResponse, name="grades.sheet")
def grades_page(
    request: Request,
    subject_id: str | None = None,
    tab: str = "raw",
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """
    Grade sheet for one subject: raw term grades for editing, or the cumulative view.
    """
    selected_id = parse_int(subject_id)
    subjects = backend.table("subjects").order("code").execute()
    subject = next((s for s in subjects if s["id"] == selected_id), None)

    rows = []
    if subject:
        students = enrolled_students(backend.table("students").order("full_name").execute(), subject["id"])
        by_student = grades_by_student(backend.table("grades").eq("subject_id", subject["id"]).execute(), subject["id"])
        rows = [
            {"student": student, "summary": summarize(by_student.get(student["id"], TermGrades()))}
            for student in students
        ]

    return render_template(
        "teacher/grades.html",
        {
            "request": request,
            "current_user": current_user,
            "subjects": subjects,
            "subject": subject,
            "rows": rows,
            "tab": tab if tab in TABS else "raw",
            "terms": TERMS,
            "term_labels": TERM_LABELS,
        },
    )


@router.post("/", name="grades.save")
async def save_grades(
    request: Request,
    current_user: Principal = Depends(require_teacher),
    backend: BackendClient = Depends(get_backend),
):
    """
    Upserts all four terms for every enrolled student, keyed on (subject, student, term).
    Fields are named ``grade_<student id>_<term>``; blank fields save as 0.
    """
    form = await request.form()
    subject_id = parse_int(form.get("subject_id"))
    if subject_id is None:
        flash(request, "Select a subject first.", "warning")
        return RedirectResponse(_sheet_url(None), status_code=303)

    subject = backend.table("subjects").eq("id", subject_id).single()
    students = enrolled_students(backend.table("students").execute(), subject["id"])

    records = []
    for student in students:
        for term in TERMS:
            try:
                grade = parse_grade(form.get(f"grade_{student['id']}_{term}"))
            except ValueError as e:
                flash(request, f"{student['full_name']} ({TERM_LABELS[term]}): {e}", "warning")
                return RedirectResponse(_sheet_url(subject_id), status_code=303)
            records.append({"subject_id": subject_id, "student_id": student["id"], "term": term, "grade": grade})

    try:
        backend.table("grades").upsert(records, on_conflict=["subject_id", "student_id", "term"])
    except BackendError as e:
        log.exception("Grade save failed for subject %s", subject_id)
        flash(request, f"Error saving grades: {e}", "danger")
        return RedirectResponse(_sheet_url(subject_id), status_code=303)

    flash(request, f"Saved grades for {len(students)} student(s).", "success")
    return RedirectResponse(_sheet_url(subject_id), status_code=303)
