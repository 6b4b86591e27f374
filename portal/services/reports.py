from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Mapping

import pandas as pd

from .attendance_service import count_by_status, normalize_status
from .enrollment import enrolled_students
from .grading import GradeStatus, grades_by_student, summarize, TermGrades

MISSING_MARK = "N/A"

GRADE_COLUMNS = [
    "Student ID",
    "Student Name",
    "Prelim Raw",
    "Midterm Raw",
    "Semi-Final Raw",
    "Final Raw",
    "Prelim Cumulative",
    "Midterm Cumulative",
    "Semi-Final Cumulative",
    "Final Cumulative",
    "Status",
]

GRADING_SCALE_NOTE = "Grading Scale: 1.0-3.0 = Passed, 3.1-5.0 = Failed"


def _date_label(value: date | str) -> str:
    return value.isoformat() if isinstance(value, date) else str(value)


def _raw_cell(value: float) -> str:
    return f"{value:g}"


def attendance_frame(
    students: Iterable[Mapping[str, Any]],
    records: Iterable[Mapping[str, Any]],
    subject_id: int,
) -> pd.DataFrame:
    """One row per enrolled student, one column per recorded date (ascending)."""
    enrolled = enrolled_students(students, subject_id)
    marks = pd.DataFrame(
        [
            {
                "student_id": r["student_id"],
                "date": _date_label(r["date"]),
                "status": normalize_status(r.get("status")),
            }
            for r in records
            if r.get("subject_id") == subject_id
        ],
        columns=["student_id", "date", "status"],
    )
    frame = pd.DataFrame(
        {
            "Student ID": [s["student_id"] for s in enrolled],
            "Student Name": [s["full_name"] for s in enrolled],
        },
        columns=["Student ID", "Student Name"],
    )
    if marks.empty:
        return frame

    dates = sorted(marks["date"].unique())
    pivot = (
        marks.drop_duplicates(["student_id", "date"], keep="last")
        .pivot(index="student_id", columns="date", values="status")
        .reindex(index=[s["id"] for s in enrolled], columns=dates)
        .astype(object)
        .fillna(MISSING_MARK)
    )
    for d in dates:
        frame[d] = list(pivot[d])
    return frame


def grade_frame(
    students: Iterable[Mapping[str, Any]],
    records: Iterable[Mapping[str, Any]],
    subject_id: int,
) -> pd.DataFrame:
    enrolled = enrolled_students(students, subject_id)
    by_student = grades_by_student(records, subject_id)
    rows = []
    for student in enrolled:
        summary = summarize(by_student.get(student["id"], TermGrades()))
        rows.append(
            [
                student["student_id"],
                student["full_name"],
                *(_raw_cell(v) for v in summary.raw),
                *(f"{v:.2f}" for v in summary.cumulative),
                summary.status.label,
            ]
        )
    return pd.DataFrame(rows, columns=GRADE_COLUMNS)


def to_csv(frame: pd.DataFrame) -> str:
    return frame.to_csv(index=False, lineterminator="\n")


def status_totals(frame: pd.DataFrame) -> dict[str, int]:
    """Count grade statuses in a ``grade_frame``."""
    counts = {s.label: 0 for s in GradeStatus}
    for value in frame["Status"] if not frame.empty else []:
        counts[value] = counts.get(value, 0) + 1
    return counts


def attendance_totals(records: Iterable[Mapping[str, Any]], subject_id: int) -> dict[str, int]:
    return count_by_status(r for r in records if r.get("subject_id") == subject_id)


def report_filename(subject: Mapping[str, Any], kind: str) -> str:
    code = "".join(ch for ch in str(subject.get("code") or "subject") if ch.isalnum() or ch in "-_") or "subject"
    return f"{code}_{kind}.csv"
