"""Reine Prüffunktionen für Zuweisungen.

Alle Funktionen arbeiten auf einer übergebenen Liste bestehender
Zuweisungen und verändern nichts. Der Generator, der Tausch-Validator und
die Konfliktanalyse benutzen dieselben Regeln.
"""

from typing import Iterable, Optional

from pydantic import BaseModel

from config.schema import SessionType, TimeGridConfig
from models.assignment import AssignmentDraft
from models.schedule_constraint import ScheduleConstraint
from models.subject import Subject
from models.teacher import Teacher


class QuotaStatus(BaseModel):
    """Ist/Soll eines Fachs für eine Klassenabteilung."""

    subject_id: int
    assigned: int
    required: int

    @property
    def remaining(self) -> int:
        return max(self.required - self.assigned, 0)

    @property
    def satisfied(self) -> bool:
        return self.assigned == self.required


def _row_id(row: AssignmentDraft) -> Optional[int]:
    return getattr(row, "id", None)


def is_teacher_free(
    teacher: Teacher,
    day_of_week: int,
    period_number: int,
    existing: Iterable[AssignmentDraft],
    exclude_assignment_id: Optional[int] = None,
    respect_declared: bool = True,
) -> bool:
    """True wenn die Lehrkraft zu (Tag, Stunde) frei ist.

    Frei heißt: keine andere Zuweisung (außer exclude_assignment_id) belegt
    sie dort, und der Slot liegt in ihrer gemeldeten Verfügbarkeit.
    existing sollte bereits auf Schuljahr und Abteilungstyp gefiltert sein.
    """
    if respect_declared and not teacher.is_declared_available(day_of_week, period_number):
        return False
    for row in existing:
        if row.teacher_id != teacher.id:
            continue
        if exclude_assignment_id is not None and _row_id(row) == exclude_assignment_id:
            continue
        if row.day_of_week == day_of_week and row.period_number == period_number:
            return False
    return True


def is_class_slot_free(
    class_id: int,
    section: str,
    session_type: SessionType,
    day_of_week: int,
    period_number: int,
    existing: Iterable[AssignmentDraft],
    exclude_assignment_id: Optional[int] = None,
) -> bool:
    """True wenn der Slot der Klassenabteilung nicht belegt ist."""
    for row in existing:
        if exclude_assignment_id is not None and _row_id(row) == exclude_assignment_id:
            continue
        if (row.class_id == class_id and row.section == section
                and row.session_type == session_type
                and row.day_of_week == day_of_week
                and row.period_number == period_number):
            return False
    return True


def quota_status(
    class_id: int,
    section: str,
    subject: Subject,
    existing: Iterable[AssignmentDraft],
) -> QuotaStatus:
    """Anzahl zugewiesener Stunden eines Fachs gegenüber seinem Soll."""
    assigned = sum(
        1 for row in existing
        if row.class_id == class_id and row.section == section and row.subject_id == subject.id
    )
    return QuotaStatus(subject_id=subject.id, assigned=assigned, required=subject.weekly_periods)


def teacher_serves_session(teacher: Teacher, session_type: SessionType) -> bool:
    return teacher.serves_session(session_type)


def is_teachable_slot(grid: TimeGridConfig, day_of_week: int, period_number: int) -> bool:
    """Im Raster und keine Pause."""
    return grid.contains(day_of_week, period_number) and not grid.is_break(day_of_week, period_number)


def teacher_problems(
    teacher: Teacher,
    subject_id: int,
    session_type: SessionType,
    day_of_week: int,
    period_number: int,
    slot_label: str,
) -> list[str]:
    """Gründe, warum die Lehrkraft diese Stunde nicht übernehmen darf (leer = zulässig).

    Belegungen durch andere Zuweisungen prüft der Zuweisungsspeicher.
    """
    problems = []
    if not teacher.can_teach(subject_id):
        problems.append(f"{teacher.name} ist für Fach {subject_id} nicht qualifiziert")
    if not teacher.serves_session(session_type):
        problems.append(f"{teacher.name} unterrichtet nicht in der Abteilung '{session_type.value}'")
    if not teacher.is_declared_available(day_of_week, period_number):
        problems.append(f"{teacher.name} ist {slot_label} gesperrt")
    return problems


def blocking_rule(
    rules: Iterable[ScheduleConstraint],
    subject_id: int,
    day_of_week: int,
    period_number: int,
    subject_before: Optional[int] = None,
    subject_after: Optional[int] = None,
) -> Optional[ScheduleConstraint]:
    """Erste Planungsregel, die das Fach an dieser Stelle verbietet.

    subject_before/subject_after: Fach der direkt vorherigen bzw. folgenden
    Stunde derselben Klassenabteilung (None = leer).
    """
    for rule in rules:
        if rule.forbids(subject_id, day_of_week, period_number):
            return rule
        if subject_before is not None and rule.forbids_sequence(subject_before, subject_id):
            return rule
        if subject_after is not None and rule.forbids_sequence(subject_id, subject_after):
            return rule
    return None
