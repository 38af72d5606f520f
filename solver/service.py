"""SchedulingService: gemeinsame Fassade für CLI und einbettende Anwendungen.

Hält Stammdaten, Zuweisungsspeicher, Generator, Tausch-Prüfung und
Konfliktanalyse zusammen und füllt fehlende Parameter (Schuljahr,
Abteilungstyp, Generator-Flags) aus der SchedulerConfig.
"""

import logging
from pathlib import Path
from typing import Optional

from analysis.conflicts import ConflictDetector, ConflictReport
from analysis.slot_suggestions import TeacherCandidate, TeacherSuggester
from config.schema import SchedulerConfig, SessionType
from data.assignment_store import AssignmentStore
from models.assignment import Assignment, AssignmentDraft
from models.directory import PrerequisiteReport, SchoolDirectory
from models.errors import ConflictError, InvalidRequestError, NotFoundError
from models.results import DeleteResult, GenerationResult, SwapCheck, SwapResult
from models.timeslot import TimeSlot
from solver.constraints import teacher_problems
from solver.generator import GenerationFlags, GenerationRequest, ScheduleGenerator
from solver.swap import SwapExecutor, SwapValidator, SwapValidityCache

logger = logging.getLogger(__name__)


class SchedulingService:
    """Alle öffentlichen Stundenplan-Operationen."""

    def __init__(
        self,
        config: SchedulerConfig,
        directory: SchoolDirectory,
        store: Optional[AssignmentStore] = None,
    ) -> None:
        self.config = config
        self.directory = directory
        self.grid = config.time_grid
        if store is None:
            store = AssignmentStore(
                self.grid,
                path=Path(config.store.data_path),
                autosave=config.store.autosave,
            )
        self.store = store
        self.cache = SwapValidityCache()
        self.generator = ScheduleGenerator(directory, store, self.grid)
        self.validator = SwapValidator(directory, store, self.cache)
        self.executor = SwapExecutor(self.validator)
        self.detector = ConflictDetector(directory, store, self.grid)
        self.suggester = TeacherSuggester(directory, store)

    def _year(self, academic_year_id: Optional[int]) -> int:
        return academic_year_id if academic_year_id is not None else self.config.academic_year_id

    def _session(self, session_type: Optional[SessionType]) -> SessionType:
        return session_type if session_type is not None else self.config.default_session

    # ─── Generierung ───────────────────────────────────────────────────────

    def generate(
        self,
        academic_year_id: Optional[int] = None,
        session_type: Optional[SessionType] = None,
        class_id: Optional[int] = None,
        section: Optional[str] = None,
        preview_only: bool = True,
        **flag_overrides: Optional[bool],
    ) -> GenerationResult:
        """Erzeugt Pläne; nicht angegebene Flags kommen aus der Config."""
        base = GenerationFlags.from_config(self.config.generation).model_dump()
        unknown = set(flag_overrides) - set(base)
        if unknown:
            raise InvalidRequestError(f"Unbekannte Generator-Flags: {sorted(unknown)}")
        base.update({k: v for k, v in flag_overrides.items() if v is not None})

        request = GenerationRequest(
            academic_year_id=self._year(academic_year_id),
            session_type=self._session(session_type),
            class_id=class_id,
            section=section,
            flags=GenerationFlags(**base),
            preview_only=preview_only,
        )
        return self.generator.generate(request)

    def save_preview(self, working_set: list[AssignmentDraft]) -> GenerationResult:
        return self.generator.save_preview(working_set)

    def check_prerequisites(
        self,
        class_id: int,
        section: Optional[str] = None,
        session_type: Optional[SessionType] = None,
        academic_year_id: Optional[int] = None,
    ) -> PrerequisiteReport:
        """Voraussetzungs-Check; eigene Zeilen der Klasse zählen nicht als belegt."""
        year, session = self._year(academic_year_id), self._session(session_type)
        busy: dict[int, set[TimeSlot]] = {}
        for r in self.store.list_by(academic_year_id=year, session_type=session):
            if r.teacher_id is None:
                continue
            if r.class_id == class_id and (section is None or r.section == section):
                continue
            busy.setdefault(r.teacher_id, set()).add(r.slot)
        return self.directory.check_prerequisites(class_id, section, session, self.grid, busy)

    # ─── Tausch ────────────────────────────────────────────────────────────

    def validate_swap(self, assignment_id_1: int, assignment_id_2: int) -> SwapCheck:
        return self.validator.validate(assignment_id_1, assignment_id_2)

    def execute_swap(self, assignment_id_1: int, assignment_id_2: int) -> SwapResult:
        return self.executor.execute(assignment_id_1, assignment_id_2)

    # ─── Löschen / Bearbeiten ──────────────────────────────────────────────

    def delete_class_schedule(
        self,
        class_id: int,
        section: str,
        session_type: Optional[SessionType] = None,
        academic_year_id: Optional[int] = None,
    ) -> DeleteResult:
        school_class = self.directory.get_class(class_id)
        if section not in school_class.sections:
            raise NotFoundError("Abteilung", f"{class_id}/{section}")
        return self.store.delete_class_schedule(
            class_id, section,
            session_type if session_type is not None else school_class.session_type,
            self._year(academic_year_id),
        )

    def assign_teacher(self, assignment_id: int, teacher_id: Optional[int]) -> Assignment:
        """Setzt (oder entfernt) die Lehrkraft einer Zuweisung von Hand."""
        row = self.store.get(assignment_id)
        if teacher_id is not None:
            teacher = self.directory.get_teacher(teacher_id)
            problems = teacher_problems(
                teacher, row.subject_id, row.session_type, row.day_of_week, row.period_number,
                self.store.grid_label(row.day_of_week, row.period_number),
            )
            if problems:
                raise ConflictError("Lehrkraft kann nicht zugewiesen werden", problems)
        updated = self.store.update(assignment_id, {"teacher_id": teacher_id})
        logger.info(f"Zuweisung #{assignment_id}: Lehrkraft {teacher_id or '–'}")
        return updated

    # ─── Analyse ───────────────────────────────────────────────────────────

    def list_conflicts(
        self,
        academic_year_id: Optional[int] = None,
        session_type: Optional[SessionType] = None,
    ) -> ConflictReport:
        return self.detector.list_conflicts(self._year(academic_year_id), self._session(session_type))

    def suggest_teachers(self, assignment_id: int, only_free: bool = True) -> list[TeacherCandidate]:
        return self.suggester.suggest_for_assignment(assignment_id, only_free=only_free)

    def class_grid(
        self,
        class_id: int,
        section: str,
        academic_year_id: Optional[int] = None,
    ) -> dict[TimeSlot, Assignment]:
        """Wochenansicht: Slot → Zuweisung einer Klassenabteilung."""
        school_class = self.directory.get_class(class_id)
        if section not in school_class.sections:
            raise NotFoundError("Abteilung", f"{class_id}/{section}")
        rows = self.store.list_by(
            academic_year_id=self._year(academic_year_id),
            session_type=school_class.session_type,
            class_id=class_id,
            section=section,
        )
        return {r.slot: r for r in rows}
