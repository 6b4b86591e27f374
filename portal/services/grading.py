"""Term grade aggregation.

Grades use the inverted 1.0-5.0 scale where lower is better and anything up
to 3.0 passes. Cumulative grades are a cascading running average: each term
is averaged with the previous cumulative value, so a term that has not been
entered yet counts as 0 and pulls the cumulative value down. That behaviour
is kept as-is; a raw 0 cannot be told apart from "not graded".
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Mapping, NamedTuple

from portal.models import Term

TERMS: tuple[str, ...] = tuple(t.value for t in Term)

TERM_LABELS = {
    Term.PRELIM.value: "Prelim",
    Term.MIDTERM.value: "Midterm",
    Term.SEMIFINAL.value: "Semi-Final",
    Term.FINAL.value: "Final",
}

PASSING_GRADE = 3.0
MIN_GRADE = 1.0
MAX_GRADE = 5.0


class GradeStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    PENDING = "pending"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class TermGrades(NamedTuple):
    prelim: float = 0.0
    midterm: float = 0.0
    semifinal: float = 0.0
    final: float = 0.0

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any] | None) -> "TermGrades":
        """Build from a term -> grade mapping; missing or empty terms become 0."""
        values = values or {}
        return cls(*(float(values.get(term) or 0) for term in TERMS))


class GradeSummary(NamedTuple):
    raw: TermGrades
    cumulative: TermGrades
    status: GradeStatus


def compute_cumulative(raw: TermGrades | Mapping[str, Any]) -> TermGrades:
    if not isinstance(raw, TermGrades):
        raw = TermGrades.from_mapping(raw)
    prelim = raw.prelim
    midterm = (prelim + raw.midterm) / 2
    semifinal = (midterm + raw.semifinal) / 2
    final = (semifinal + raw.final) / 2
    return TermGrades(prelim, midterm, semifinal, final)


def is_passing(grade: float) -> bool:
    return 0 < grade <= PASSING_GRADE


def grade_status(final: float) -> GradeStatus:
    # 0 only comes from nothing reaching that stage, so it is pending rather than failed
    if final == 0:
        return GradeStatus.PENDING
    return GradeStatus.PASSED if is_passing(final) else GradeStatus.FAILED


def summarize(raw: TermGrades | Mapping[str, Any]) -> GradeSummary:
    if not isinstance(raw, TermGrades):
        raw = TermGrades.from_mapping(raw)
    cumulative = compute_cumulative(raw)
    return GradeSummary(raw=raw, cumulative=cumulative, status=grade_status(cumulative.final))


def raw_grades_from_records(
    records: Iterable[Mapping[str, Any]],
    student_id: int,
    subject_id: int,
) -> TermGrades:
    """Collapse grade rows for one student/subject pair into zero-filled terms."""
    values: dict[str, float] = {}
    for record in records:
        if record.get("student_id") != student_id or record.get("subject_id") != subject_id:
            continue
        term = record.get("term")
        if term in TERMS:
            values[term] = float(record.get("grade") or 0)
    return TermGrades.from_mapping(values)


def grades_by_student(records: Iterable[Mapping[str, Any]], subject_id: int) -> dict[int, TermGrades]:
    """Group one subject's grade rows into raw terms per student id."""
    grouped: dict[int, dict[str, float]] = {}
    for record in records:
        if record.get("subject_id") != subject_id or record.get("term") not in TERMS:
            continue
        grouped.setdefault(record["student_id"], {})[record["term"]] = float(record.get("grade") or 0)
    return {student_id: TermGrades.from_mapping(values) for student_id, values in grouped.items()}


def parse_grade(value: Any) -> float:
    """Parse a grade form field.

    Blank or unparsable input becomes 0 (not graded). Anything else must sit
    on the 1.0-5.0 scale.
    """
    if value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        grade = float(value)
    except (TypeError, ValueError):
        return 0.0
    if grade == 0:
        return 0.0
    if not MIN_GRADE <= grade <= MAX_GRADE:
        raise ValueError(f"Grade {grade:g} is outside the {MIN_GRADE:g}-{MAX_GRADE:g} scale")
    return grade
