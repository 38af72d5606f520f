"""Lehrkraft-Vorschläge für offene Slots (teacher_id=None).

Bewertet qualifizierte Lehrkräfte nach Verfügbarkeit, Kontinuität in der
Klasse und Auslastung.
"""

from typing import Optional

from pydantic import BaseModel

from config.schema import SessionType
from data.assignment_store import AssignmentStore
from models.directory import SchoolDirectory
from models.timeslot import week_slots
from solver.constraints import is_teacher_free


class TeacherCandidate(BaseModel):
    """Ein Kandidat für einen offenen Slot."""

    teacher_id: int
    name: str
    is_free_at_slot: bool           # weder gesperrt noch anderweitig eingeteilt
    teaches_class: bool             # unterrichtet das Fach schon in dieser Abteilung
    current_load: int               # Stunden in Schuljahr/Abteilungstyp
    load_ratio: float               # current_load / unterrichtbare Slots
    score: float                    # 0–100 (höher = besser)


class TeacherSuggester:
    """Schlägt Lehrkräfte für einen Slot vor."""

    def __init__(self, directory: SchoolDirectory, store: AssignmentStore) -> None:
        self.directory = directory
        self.store = store

    def suggest(
        self,
        subject_id: int,
        class_id: int,
        section: str,
        day_of_week: int,
        period_number: int,
        academic_year_id: int,
        session_type: SessionType,
        exclude_assignment_id: Optional[int] = None,
        only_free: bool = False,
    ) -> list[TeacherCandidate]:
        """Alle qualifizierten Lehrkräfte des Abteilungstyps, nach Score sortiert."""
        self.directory.get_subject(subject_id)
        rows = self.store.list_by(academic_year_id=academic_year_id, session_type=session_type)
        capacity = max(len(week_slots(self.store.grid)), 1)

        candidates = []
        for teacher in self.directory.qualified_teachers(subject_id, session_type):
            free = is_teacher_free(
                teacher, day_of_week, period_number, rows,
                exclude_assignment_id=exclude_assignment_id,
            )
            if only_free and not free:
                continue
            load = sum(1 for r in rows if r.teacher_id == teacher.id)
            teaches_class = any(
                r.teacher_id == teacher.id and r.subject_id == subject_id
                and r.class_id == class_id and r.section == section
                for r in rows
            )
            ratio = load / capacity
            candidates.append(TeacherCandidate(
                teacher_id=teacher.id,
                name=teacher.name,
                is_free_at_slot=free,
                teaches_class=teaches_class,
                current_load=load,
                load_ratio=round(ratio, 3),
                score=round(self._compute_score(free, teaches_class, ratio), 1),
            ))

        candidates.sort(key=lambda c: (-c.score, c.teacher_id))
        return candidates

    def suggest_for_assignment(self, assignment_id: int, only_free: bool = True) -> list[TeacherCandidate]:
        """Vorschläge für eine gespeicherte Zuweisung (z.B. ohne Lehrkraft)."""
        a = self.store.get(assignment_id)
        return self.suggest(
            subject_id=a.subject_id,
            class_id=a.class_id,
            section=a.section,
            day_of_week=a.day_of_week,
            period_number=a.period_number,
            academic_year_id=a.academic_year_id,
            session_type=a.session_type,
            exclude_assignment_id=a.id,
            only_free=only_free,
        )

    # ── Score-Berechnung ──────────────────────────────────────────────────────

    def _compute_score(self, is_free: bool, teaches_class: bool, load_ratio: float) -> float:
        """Eignung (0–100).

        - Verfügbarkeit im Slot: 50 Punkte
        - Fach bereits in der Abteilung: 20 Punkte
        - Auslastung: bis 30 Punkte ((1 - load_ratio) × 30)
        """
        availability_score = 50.0 if is_free else 0.0
        continuity_score = 20.0 if teaches_class else 0.0
        load_score = max(0.0, 1.0 - load_ratio) * 30.0
        return availability_score + continuity_score + load_score
