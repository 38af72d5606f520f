"""AssignmentStore: persistierte Stundenzuweisungen mit Eindeutigkeitsprüfung.

Alle Lese-Prüf-Schreib-Folgen laufen unter einer gemeinsamen (re-entranten)
Sperre. Eine Transaktion merkt sich den Zustand beim Eintritt und stellt ihn
bei jeder Exception wieder her; erst die äußerste Transaktion schreibt die
JSON-Datei.

Die Verfügbarkeit einer Lehrkraft wird nicht gespeichert, sondern aus den
Zuweisungen abgeleitet (teacher_busy_slots / teacher_free_slots).
"""

import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional

from pydantic import BaseModel, ValidationError

from config.schema import SessionType, TimeGridConfig
from models.assignment import Assignment, AssignmentDraft
from models.errors import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    TransactionFailure,
)
from models.results import DeleteResult, ResultStatus
from models.school_class import ClassSection
from models.teacher import Teacher
from models.timeslot import TimeSlot

logger = logging.getLogger(__name__)

# Felder, die ein Update nicht ändern darf
_IMMUTABLE_FIELDS = {"id"}


class StoreSnapshot(BaseModel):
    """Dateiformat des Speichers."""

    next_id: int = 1
    revision: int = 0
    assignments: list[Assignment] = []


class AssignmentStore:
    """Thread-sicherer In-Memory-Speicher mit optionaler JSON-Persistenz."""

    def __init__(
        self,
        grid: TimeGridConfig,
        path: Optional[Path] = None,
        autosave: bool = True,
    ) -> None:
        self.grid = grid
        self.path = Path(path) if path is not None else None
        self.autosave = autosave
        self._lock = threading.RLock()
        self._rows: dict[int, Assignment] = {}
        self._next_id = 1
        self._revision = 0
        self._depth = 0
        self._dirty = False
        if self.path is not None and self.path.exists():
            self._load()

    # ─── Transaktionen ─────────────────────────────────────────────────────

    @property
    def revision(self) -> int:
        """Zähler, der bei jeder bestätigten Änderung steigt."""
        with self._lock:
            return self._revision

    @contextmanager
    def transaction(self) -> Iterator["AssignmentStore"]:
        """Atomarer Block: alles oder nichts.

        Verschachtelte Transaktionen sind erlaubt; nur die äußerste schreibt
        auf die Platte. Schlägt das Schreiben fehl, wird der Speicher auf den
        Stand vor der Transaktion zurückgesetzt (TransactionFailure).
        """
        with self._lock:
            saved = (dict(self._rows), self._next_id, self._revision)
            self._depth += 1
            try:
                yield self
                if self._depth == 1 and self._dirty:
                    self._persist()
            except Exception:
                self._rows, self._next_id, self._revision = saved
                logger.debug(f"Transaktion zurückgerollt (Revision {self._revision})")
                raise
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._dirty = False

    def _touch(self) -> None:
        self._revision += 1
        self._dirty = True

    # ─── Prüfung ───────────────────────────────────────────────────────────

    def _check(
        self,
        candidates: Iterable[AssignmentDraft],
        replaced_ids: Iterable[int] = (),
    ) -> list[str]:
        """Prüft Raster, Pausen, Klassen- und Lehrer-Eindeutigkeit.

        candidates werden gemeinsam gegen alle übrigen Zeilen geprüft
        (replaced_ids gelten als bereits entfernt) und gegeneinander.
        """
        replaced = set(replaced_ids)
        class_index: dict[tuple, Assignment] = {}
        teacher_index: dict[tuple, Assignment] = {}
        for row in self._rows.values():
            if row.id in replaced:
                continue
            class_index.setdefault(row.class_slot_key, row)
            if row.teacher_slot_key is not None:
                teacher_index.setdefault(row.teacher_slot_key, row)

        details: list[str] = []
        for cand in candidates:
            label = _label(cand)
            slot = self.grid_label(cand.day_of_week, cand.period_number)
            if not self.grid.contains(cand.day_of_week, cand.period_number):
                details.append(
                    f"{label}: ({cand.day_of_week}, {cand.period_number}) liegt außerhalb "
                    f"des Rasters {self.grid.days_per_week}×{self.grid.periods_per_day}"
                )
                continue
            if self.grid.is_break(cand.day_of_week, cand.period_number):
                details.append(f"{label}: {slot} ist als Pause gesperrt")
                continue

            other = class_index.get(cand.class_slot_key)
            if other is not None:
                details.append(
                    f"{label}: Klasse {cand.class_id}/{cand.section} ist {slot} "
                    f"bereits belegt ({_label(other)})"
                )
            else:
                class_index[cand.class_slot_key] = cand

            key = cand.teacher_slot_key
            if key is not None:
                other = teacher_index.get(key)
                if other is not None:
                    details.append(
                        f"{label}: Lehrkraft {cand.teacher_id} unterrichtet {slot} bereits "
                        f"Klasse {other.class_id}/{other.section} ({_label(other)})"
                    )
                else:
                    teacher_index[key] = cand
        return details

    def grid_label(self, day_of_week: int, period_number: int) -> str:
        """'So 1.' für Meldungen."""
        return f"{self.grid.day_name(day_of_week)} {period_number}."

    # ─── Schreiben ─────────────────────────────────────────────────────────

    def create(self, draft: AssignmentDraft) -> Assignment:
        """Legt eine Zuweisung an oder wirft ConflictError (nichts gespeichert)."""
        return self.create_many([draft])[0]

    def create_many(self, drafts: list[AssignmentDraft]) -> list[Assignment]:
        """Legt mehrere Zuweisungen gemeinsam an (alles oder nichts)."""
        with self.transaction():
            details = self._check(drafts)
            if details:
                raise ConflictError("Zuweisung verletzt eine Eindeutigkeitsregel", details)
            created = [self._insert(d) for d in drafts]
            if created:
                self._touch()
            return [row.model_copy() for row in created]

    def _insert(self, draft: AssignmentDraft) -> Assignment:
        row = Assignment(id=self._next_id, **draft.model_dump())
        self._next_id += 1
        self._rows[row.id] = row
        logger.debug(f"Angelegt: #{row.id} {row.describe()}")
        return row

    def update(self, assignment_id: int, changes: dict) -> Assignment:
        """Ändert Felder einer Zuweisung (id ist unveränderlich)."""
        return self.update_many({assignment_id: changes})[0]

    def update_many(self, changes: dict[int, dict]) -> list[Assignment]:
        """Ändert mehrere Zuweisungen in einem Schritt.

        Geprüft wird nur der gemeinsame Endzustand. Ein Tausch zweier Zellen
        mit gleichem (Tag, Stunde) durchläuft so keinen ungültigen
        Zwischenzustand.
        """
        with self.transaction():
            updated: list[Assignment] = []
            for assignment_id, fields in changes.items():
                row = self._get(assignment_id)
                bad = _IMMUTABLE_FIELDS & set(fields)
                if bad:
                    raise InvalidRequestError(f"Feld(er) {sorted(bad)} dürfen nicht geändert werden")
                try:
                    updated.append(Assignment.model_validate({**row.model_dump(), **fields}))
                except ValidationError as exc:
                    raise InvalidRequestError(
                        f"Ungültige Änderung an Zuweisung {assignment_id}: {exc}"
                    ) from exc

            details = self._check(updated, replaced_ids=changes.keys())
            if details:
                raise ConflictError("Änderung verletzt eine Eindeutigkeitsregel", details)
            for row in updated:
                self._rows[row.id] = row
                logger.debug(f"Geändert: #{row.id} {row.describe()}")
            if updated:
                self._touch()
            return [row.model_copy() for row in updated]

    def delete_one(self, assignment_id: int) -> None:
        with self.transaction():
            row = self._get(assignment_id)
            del self._rows[row.id]
            self._touch()
            logger.debug(f"Gelöscht: #{row.id} {row.describe()}")

    def delete_class_schedule(
        self,
        class_id: int,
        section: str,
        session_type: SessionType,
        academic_year_id: int,
    ) -> DeleteResult:
        """Entfernt den kompletten Wochenplan einer Klassenabteilung.

        restored_teacher_ids nennt jede Lehrkraft, die mindestens eine Stunde
        verloren hat; ihre Slots sind danach wieder frei.
        """
        with self.transaction():
            removed = self._class_rows(
                ClassSection(class_id=class_id, section=section, session_type=session_type),
                academic_year_id,
            )
            for row in removed:
                del self._rows[row.id]
            if removed:
                self._touch()

        teacher_ids = sorted({r.teacher_id for r in removed if r.teacher_id is not None})
        logger.info(
            f"Klassenplan {class_id}/{section} ({session_type.value}, Jahr {academic_year_id}) "
            f"gelöscht: {len(removed)} Zuweisungen, {len(teacher_ids)} Lehrkräfte frei"
        )
        return DeleteResult(
            status=ResultStatus.SUCCESS,
            message=f"{len(removed)} Zuweisungen gelöscht",
            deleted_count=len(removed),
            restored_teacher_ids=teacher_ids,
        )

    def replace_class_schedule(
        self,
        class_section: ClassSection,
        academic_year_id: int,
        drafts: list[AssignmentDraft],
    ) -> list[Assignment]:
        """Ersetzt den Plan einer Klassenabteilung atomar durch drafts."""
        for d in drafts:
            if d.class_section != class_section or d.academic_year_id != academic_year_id:
                raise InvalidRequestError(
                    f"{d.describe()} gehört nicht zu {class_section} (Jahr {academic_year_id})"
                )
        with self.transaction():
            old = self._class_rows(class_section, academic_year_id)
            details = self._check(drafts, replaced_ids=[r.id for r in old])
            if details:
                raise ConflictError(f"Plan für {class_section} verletzt Eindeutigkeitsregeln", details)
            for row in old:
                del self._rows[row.id]
            created = [self._insert(d) for d in drafts]
            self._touch()
            return [row.model_copy() for row in created]

    # ─── Lesen ─────────────────────────────────────────────────────────────

    def _get(self, assignment_id: int) -> Assignment:
        row = self._rows.get(assignment_id)
        if row is None:
            raise NotFoundError("Zuweisung", assignment_id)
        return row

    def get(self, assignment_id: int) -> Assignment:
        with self._lock:
            return self._get(assignment_id).model_copy()

    def find(self, assignment_id: int) -> Optional[Assignment]:
        with self._lock:
            row = self._rows.get(assignment_id)
            return row.model_copy() if row is not None else None

    def _class_rows(self, class_section: ClassSection, academic_year_id: int) -> list[Assignment]:
        return [
            r for r in self._rows.values()
            if r.academic_year_id == academic_year_id and r.class_section == class_section
        ]

    def list_by(
        self,
        academic_year_id: Optional[int] = None,
        session_type: Optional[SessionType] = None,
        class_id: Optional[int] = None,
        section: Optional[str] = None,
        teacher_id: Optional[int] = None,
        subject_id: Optional[int] = None,
        day_of_week: Optional[int] = None,
        period_number: Optional[int] = None,
    ) -> list[Assignment]:
        """Gefilterte Zuweisungen, sortiert nach Klasse, Abteilung, Tag, Stunde."""
        filters = {
            "academic_year_id": academic_year_id,
            "session_type": session_type,
            "class_id": class_id,
            "section": section,
            "teacher_id": teacher_id,
            "subject_id": subject_id,
            "day_of_week": day_of_week,
            "period_number": period_number,
        }
        active = {k: v for k, v in filters.items() if v is not None}
        with self._lock:
            rows = [
                r.model_copy() for r in self._rows.values()
                if all(getattr(r, k) == v for k, v in active.items())
            ]
        rows.sort(key=lambda r: (r.class_id, r.section, r.day_of_week, r.period_number, r.id))
        return rows

    def teacher_busy_slots(
        self, teacher_id: int, academic_year_id: int, session_type: SessionType
    ) -> set[TimeSlot]:
        """Slots, an denen die Lehrkraft bereits eingeteilt ist."""
        with self._lock:
            return {
                r.slot for r in self._rows.values()
                if r.teacher_id == teacher_id
                and r.academic_year_id == academic_year_id
                and r.session_type == session_type
            }

    def teacher_free_slots(
        self, teacher: Teacher, academic_year_id: int, session_type: SessionType
    ) -> set[TimeSlot]:
        """Effektive Verfügbarkeit: gemeldete Verfügbarkeit minus belegte Slots."""
        busy = self.teacher_busy_slots(teacher.id, academic_year_id, session_type)
        return teacher.declared_availability(self.grid) - busy

    def busy_map(self, academic_year_id: int, session_type: SessionType) -> dict[int, set[TimeSlot]]:
        """Belegte Slots je Lehrkraft."""
        result: dict[int, set[TimeSlot]] = {}
        with self._lock:
            for r in self._rows.values():
                if (r.teacher_id is not None and r.academic_year_id == academic_year_id
                        and r.session_type == session_type):
                    result.setdefault(r.teacher_id, set()).add(r.slot)
        return result

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    # ─── Persistenz ────────────────────────────────────────────────────────

    def _snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            next_id=self._next_id,
            revision=self._revision,
            assignments=sorted(self._rows.values(), key=lambda r: r.id),
        )

    def _persist(self) -> None:
        if self.path is None or not self.autosave:
            return
        self._write(self.path)

    def _write(self, path: Path) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(self._snapshot().model_dump_json(indent=2))
            os.replace(tmp, path)
        except OSError as exc:
            logger.error(f"Zuweisungen konnten nicht gespeichert werden ({path}): {exc}")
            raise TransactionFailure(f"Speichern nach {path} fehlgeschlagen: {exc}") from exc

    def save(self, path: Optional[Path] = None) -> Path:
        """Schreibt den aktuellen Stand (unabhängig von autosave)."""
        target = Path(path) if path is not None else self.path
        if target is None:
            raise InvalidRequestError("Kein Speicherpfad angegeben")
        with self._lock:
            self._write(target)
        return target

    def _load(self) -> None:
        """Lädt die Datei ohne Eindeutigkeitsprüfung (Konflikte meldet ConflictDetector)."""
        with open(self.path, "r", encoding="utf-8") as f:
            snap = StoreSnapshot.model_validate_json(f.read())
        self._rows = {r.id: r for r in snap.assignments}
        max_id = max(self._rows, default=0)
        self._next_id = max(snap.next_id, max_id + 1)
        self._revision = snap.revision
        logger.info(f"{len(self._rows)} Zuweisungen aus {self.path} geladen")


def _label(row: AssignmentDraft) -> str:
    row_id = getattr(row, "id", None)
    return f"Zuweisung #{row_id}" if row_id is not None else "neue Zuweisung"
