"""Tausch zweier belegter Zellen: Prüfung, Cache und Ausführung.

Ein Tausch vertauscht (subject_id, teacher_id) zweier Zuweisungen; Klasse,
Abteilung, Tag und Stunde jeder Zuweisung bleiben gleich. Jede Lehrkraft
wird also am Ziel-Slot der jeweils anderen Zuweisung geprüft.
"""

import logging
import threading
from collections import OrderedDict
from typing import Optional

from data.assignment_store import AssignmentStore
from models.assignment import Assignment
from models.directory import SchoolDirectory
from models.errors import ConflictError
from models.results import ResultStatus, SwapCheck, SwapResult
from solver.constraints import is_teacher_free

logger = logging.getLogger(__name__)


class SwapValidityCache:
    """Merkt sich Prüfergebnisse je (id1, id2) für eine Speicher-Revision.

    Ändert sich die Revision des Speichers, wird der Cache beim nächsten
    Zugriff verworfen.
    """

    def __init__(self, max_entries: int = 1024) -> None:
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: OrderedDict[tuple[int, int], SwapCheck] = OrderedDict()
        self._revision: Optional[int] = None
        self.hits = 0
        self.misses = 0

    def get(self, id1: int, id2: int, revision: int) -> Optional[SwapCheck]:
        with self._lock:
            if revision != self._revision:
                self._entries.clear()
                self._revision = revision
            check = self._entries.get((id1, id2))
            if check is None:
                self.misses += 1
                return None
            self._entries.move_to_end((id1, id2))
            self.hits += 1
            return check.model_copy(deep=True)

    def put(self, id1: int, id2: int, revision: int, check: SwapCheck) -> None:
        with self._lock:
            if revision != self._revision:
                self._entries.clear()
                self._revision = revision
            self._entries[(id1, id2)] = check.model_copy(deep=True)
            self._entries.move_to_end((id1, id2))
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate(self) -> None:
        with self._lock:
            self._entries.clear()
            self._revision = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SwapValidator:
    """Prüft einen Tausch, ohne etwas zu verändern."""

    def __init__(
        self,
        directory: SchoolDirectory,
        store: AssignmentStore,
        cache: Optional[SwapValidityCache] = None,
    ) -> None:
        self.directory = directory
        self.store = store
        self.cache = cache

    def validate(self, id1: int, id2: int, use_cache: bool = True) -> SwapCheck:
        with self.store.transaction():
            revision = self.store.revision
            if use_cache and self.cache is not None:
                cached = self.cache.get(id1, id2, revision)
                if cached is not None:
                    return cached
            check = self._check(id1, id2)
        if self.cache is not None:
            self.cache.put(id1, id2, revision, check)
        return check

    def _check(self, id1: int, id2: int) -> SwapCheck:
        if id1 == id2:
            return _rejected("Eine Zuweisung kann nicht mit sich selbst getauscht werden.")

        a1, a2 = self.store.find(id1), self.store.find(id2)
        missing = [f"Zuweisung {i} nicht gefunden" for i, a in ((id1, a1), (id2, a2)) if a is None]
        if missing:
            return _rejected("Zuweisung nicht gefunden.", missing)

        if a1.academic_year_id != a2.academic_year_id:
            return _rejected(
                f"Unterschiedliche Schuljahre ({a1.academic_year_id} / {a2.academic_year_id}).")
        if a1.session_type != a2.session_type:
            return _rejected(
                f"Unterschiedliche Abteilungen ({a1.session_type.value} / {a2.session_type.value}).")
        if a1.class_slot_key == a2.class_slot_key:
            return _rejected("Beide Zuweisungen belegen dieselbe Zelle.")

        others = [
            r for r in self.store.list_by(
                academic_year_id=a1.academic_year_id, session_type=a1.session_type)
            if r.id not in (id1, id2)
        ]
        conflicts: list[str] = []
        # Lehrkraft von a2 wandert in den Slot von a1 und umgekehrt
        for moving, dest in ((a2, a1), (a1, a2)):
            conflicts.extend(self._teacher_conflicts(moving, dest, others))

        if conflicts:
            logger.debug(f"Tausch {id1}↔{id2} nicht möglich: {conflicts}")
            return SwapCheck(
                status=ResultStatus.CONFLICT,
                message="Tausch nicht möglich",
                conflicts=conflicts,
                can_swap=False,
                reason=conflicts[0],
            )
        return SwapCheck(
            status=ResultStatus.SUCCESS,
            message="Tausch möglich",
            can_swap=True,
            warnings=self._quota_warnings(a1, a2),
        )

    def _teacher_conflicts(
        self, moving: Assignment, dest: Assignment, others: list[Assignment]
    ) -> list[str]:
        if moving.teacher_id is None:
            return []
        slot = self.store.grid_label(dest.day_of_week, dest.period_number)
        teacher = self.directory.find_teacher(moving.teacher_id)
        if teacher is None:
            return [f"Lehrkraft {moving.teacher_id} existiert nicht"]

        found = []
        if not teacher.serves_session(dest.session_type):
            found.append(
                f"{teacher.name} unterrichtet nicht in der Abteilung '{dest.session_type.value}'")
        if not teacher.is_declared_available(dest.day_of_week, dest.period_number):
            found.append(f"{teacher.name} ist {slot} nicht verfügbar (Sperrzeit)")
        if not is_teacher_free(teacher, dest.day_of_week, dest.period_number, others,
                               respect_declared=False):
            blocking = next(
                r for r in others
                if r.teacher_id == teacher.id and r.slot == dest.slot
            )
            found.append(
                f"{teacher.name} unterrichtet {slot} bereits Klasse "
                f"{blocking.class_id}/{blocking.section} (Zuweisung #{blocking.id})"
            )
        return found

    def _quota_warnings(self, a1: Assignment, a2: Assignment) -> list[str]:
        """Hinweise, wenn sich Fachsummen einer Klasse ändern (blockiert nie)."""
        if a1.subject_id == a2.subject_id or a1.class_section == a2.class_section:
            return []
        warnings = []
        for row, incoming in ((a1, a2), (a2, a1)):
            leaving = self._subject_name(row.subject_id)
            arriving = self._subject_name(incoming.subject_id)
            warnings.append(
                f"Klasse {row.class_id}/{row.section}: {leaving} −1, {arriving} +1")
            subject = next((s for s in self.directory.subjects if s.id == incoming.subject_id), None)
            if subject is not None and subject.class_id != row.class_id:
                warnings.append(
                    f"Fach {subject.name} gehört zu Klasse {subject.class_id}, "
                    f"nicht zu Klasse {row.class_id}")
        return warnings

    def _subject_name(self, subject_id: int) -> str:
        subject = next((s for s in self.directory.subjects if s.id == subject_id), None)
        return subject.name if subject is not None else f"Fach {subject_id}"


class SwapExecutor:
    """Führt einen Tausch atomar aus (beide Seiten oder keine)."""

    def __init__(self, validator: SwapValidator) -> None:
        self.validator = validator
        self.store = validator.store

    def execute(self, id1: int, id2: int) -> SwapResult:
        with self.store.transaction():
            # nie dem Cache vertrauen
            check = self.validator.validate(id1, id2, use_cache=False)
            if not check.can_swap:
                logger.info(f"Tausch {id1}↔{id2} abgelehnt: {check.reason}")
                return SwapResult(
                    status=check.status,
                    message=check.reason or "Tausch nicht möglich",
                    conflicts=check.conflicts or [check.reason],
                )
            a1, a2 = self.store.get(id1), self.store.get(id2)
            try:
                u1, u2 = self.store.update_many({
                    id1: {"subject_id": a2.subject_id, "teacher_id": a2.teacher_id},
                    id2: {"subject_id": a1.subject_id, "teacher_id": a1.teacher_id},
                })
            except ConflictError as exc:
                logger.warning(f"Tausch {id1}↔{id2} beim Schreiben abgelehnt: {exc}")
                return SwapResult(
                    status=ResultStatus.CONFLICT,
                    message="Tausch nicht möglich",
                    conflicts=exc.details or [str(exc)],
                )

        logger.info(f"Tausch {id1}↔{id2} ausgeführt")
        return SwapResult(
            status=ResultStatus.SUCCESS,
            message="Tausch ausgeführt",
            assignment1=u1,
            assignment2=u2,
        )


def _rejected(reason: str, conflicts: Optional[list[str]] = None) -> SwapCheck:
    return SwapCheck(
        status=ResultStatus.ERROR,
        message=reason,
        conflicts=conflicts or [reason],
        can_swap=False,
        reason=reason,
    )
