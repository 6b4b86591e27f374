from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping

from portal.backend import BackendClient

log = logging.getLogger(__name__)


def subject_ids(student: Mapping[str, Any]) -> list[int]:
    """Enrolled subject ids of a student row.

    Older rows may carry the list as a JSON string; anything unreadable counts
    as no enrollment.
    """
    value = student.get("subjects")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, list):
        return []
    ids = []
    for item in value:
        try:
            ids.append(int(item))
        except (TypeError, ValueError):
            continue
    return ids


def is_enrolled(student: Mapping[str, Any], subject_id: int) -> bool:
    return subject_id in subject_ids(student)


def enrolled_students(students: Iterable[Mapping[str, Any]], subject_id: int) -> list[Mapping[str, Any]]:
    return [s for s in students if is_enrolled(s, subject_id)]


def subject_names(student: Mapping[str, Any], subjects_by_id: Mapping[int, Mapping[str, Any]]) -> list[str]:
    return [subjects_by_id[sid]["name"] for sid in subject_ids(student) if sid in subjects_by_id]


def drop_subject(backend: BackendClient, subject_id: int) -> int:
    """Remove ``subject_id`` from every student's enrollment list."""
    changed = 0
    for student in backend.table("students").execute():
        ids = subject_ids(student)
        if subject_id in ids:
            backend.table("students").eq("id", student["id"]).update(
                {"subjects": [sid for sid in ids if sid != subject_id]}
            )
            changed += 1
    if changed:
        log.info("Dropped subject %s from %d enrollment list(s)", subject_id, changed)
    return changed
