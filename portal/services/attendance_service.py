from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Mapping, NamedTuple

from portal.models import AttendanceStatus


class StatusDisplay(NamedTuple):
    label: str
    color: str  # green | red | yellow | blue


STATUS_DISPLAY: dict[str, StatusDisplay] = {
    AttendanceStatus.PRESENT.value: StatusDisplay("Present", "green"),
    AttendanceStatus.ABSENT.value: StatusDisplay("Absent", "red"),
    AttendanceStatus.LATE.value: StatusDisplay("Late", "yellow"),
    AttendanceStatus.EXCUSED.value: StatusDisplay("Excused", "blue"),
}

DEFAULT_STATUS = AttendanceStatus.ABSENT.value


def normalize_status(status: Any) -> str:
    """Map any value onto one of the four known statuses (unknown -> absent)."""
    value = str(status or "").strip().lower()
    return value if value in STATUS_DISPLAY else DEFAULT_STATUS


def classify(status: Any) -> StatusDisplay:
    return STATUS_DISPLAY[normalize_status(status)]


def count_by_status(records: Iterable[Mapping[str, Any]]) -> dict[str, int]:
    counts = {s: 0 for s in STATUS_DISPLAY}
    for record in records:
        counts[normalize_status(record.get("status"))] += 1
    return counts


def attendance_sheet(
    student_ids: Iterable[int],
    records: Iterable[Mapping[str, Any]],
) -> dict[int, str]:
    """Status per enrolled student for one subject/date.

    Students without a row yet start out absent.
    """
    marked = {r["student_id"]: normalize_status(r.get("status")) for r in records}
    return {sid: marked.get(sid, DEFAULT_STATUS) for sid in student_ids}


def sheet_rows(subject_id: int, on: date, statuses: Mapping[int, Any]) -> list[dict[str, Any]]:
    """Rows ready for an upsert keyed on (student_id, subject_id, date)."""
    return [
        {
            "student_id": student_id,
            "subject_id": subject_id,
            "date": on,
            "status": normalize_status(status),
        }
        for student_id, status in statuses.items()
    ]
