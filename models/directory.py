"""SchoolDirectory: Klassen, Lehrkräfte und Fächer + Voraussetzungs-Check (Pydantic v2).

Der Stundenplan-Kern liest diese Daten nur; gepflegt werden sie von der
übrigen Schulverwaltung.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, model_validator

from config.schema import SessionType, TimeGridConfig
from models.errors import NotFoundError
from models.school_class import SchoolClass
from models.subject import Subject
from models.schedule_constraint import ScheduleConstraint
from models.teacher import Teacher
from models.timeslot import TimeSlot, week_slots


class SubjectPrerequisite(BaseModel):
    """Voraussetzungen eines einzelnen Fachs."""

    subject_id: int
    subject_name: str
    required_periods: int
    qualified_teacher_ids: list[int]
    free_teacher_slots: int       # Slots, an denen mind. eine qualifizierte Lehrkraft frei ist
    is_sufficient: bool


class PrerequisiteReport(BaseModel):
    """Ergebnis des Voraussetzungs-Checks vor der Generierung."""

    is_valid: bool
    errors: list[str]      # Generierung nicht sinnvoll möglich
    warnings: list[str]    # Plan wird voraussichtlich unvollständig
    subject_details: list[SubjectPrerequisite] = []

    def print_rich(self) -> None:
        """Gibt den Report formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel

        console = Console()
        if self.is_valid:
            status = "[bold green]✓ BEREIT[/bold green]"
        else:
            status = "[bold red]✗ NICHT BEREIT[/bold red]"

        lines = [status]
        if self.errors:
            lines.append("\n[red bold]Fehler:[/red bold]")
            for e in self.errors:
                lines.append(f"  [red]• {e}[/red]")
        if self.warnings:
            lines.append("\n[yellow bold]Warnungen:[/yellow bold]")
            for w in self.warnings:
                lines.append(f"  [yellow]• {w}[/yellow]")
        if not self.errors and not self.warnings:
            lines.append("[dim]Keine Probleme gefunden.[/dim]")

        console.print(Panel("\n".join(lines), title="Voraussetzungs-Check", border_style="cyan"))


class SchoolDirectory(BaseModel):
    """Vollständiger Stammdatensatz: Klassen, Fächer, Lehrkräfte."""

    classes: list[SchoolClass]
    subjects: list[Subject]
    teachers: list[Teacher]
    constraints: list[ScheduleConstraint] = []   # Planungsregeln
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    data_version: str = "1.0"

    @model_validator(mode='after')
    def _check_references(self):
        for label, items in (("Klasse", self.classes), ("Fach", self.subjects),
                             ("Lehrkraft", self.teachers), ("Regel", self.constraints)):
            ids = [i.id for i in items]
            dupes = sorted({i for i in ids if ids.count(i) > 1})
            if dupes:
                raise ValueError(f"{label}: doppelte IDs {dupes}")
        class_ids = {c.id for c in self.classes}
        for s in self.subjects:
            if s.class_id not in class_ids:
                raise ValueError(f"Fach {s.id} ({s.name}) verweist auf unbekannte Klasse {s.class_id}")
        subject_ids = {s.id for s in self.subjects}
        for rule in self.constraints:
            if rule.class_id is not None and rule.class_id not in class_ids:
                raise ValueError(f"Regel {rule.id} verweist auf unbekannte Klasse {rule.class_id}")
            for sid in (rule.subject_id, rule.reference_subject_id):
                if sid is not None and sid not in subject_ids:
                    raise ValueError(f"Regel {rule.id} verweist auf unbekanntes Fach {sid}")
        return self

    # ─── Lookups ───

    def get_class(self, class_id: int) -> SchoolClass:
        for c in self.classes:
            if c.id == class_id:
                return c
        raise NotFoundError("Klasse", class_id)

    def get_subject(self, subject_id: int) -> Subject:
        for s in self.subjects:
            if s.id == subject_id:
                return s
        raise NotFoundError("Fach", subject_id)

    def get_teacher(self, teacher_id: int) -> Teacher:
        for t in self.teachers:
            if t.id == teacher_id:
                return t
        raise NotFoundError("Lehrkraft", teacher_id)

    def find_teacher(self, teacher_id: Optional[int]) -> Optional[Teacher]:
        if teacher_id is None:
            return None
        return next((t for t in self.teachers if t.id == teacher_id), None)

    def subjects_for_class(self, class_id: int, active_only: bool = True) -> list[Subject]:
        """Fächer einer Klasse, sortiert nach ID."""
        return sorted(
            (s for s in self.subjects
             if s.class_id == class_id and (s.is_active or not active_only)),
            key=lambda s: s.id,
        )

    def qualified_teachers(self, subject_id: int,
                           session_type: Optional[SessionType] = None) -> list[Teacher]:
        """Lehrkräfte mit Qualifikation für das Fach, sortiert nach ID."""
        return sorted(
            (t for t in self.teachers
             if t.can_teach(subject_id)
             and (session_type is None or t.serves_session(session_type))),
            key=lambda t: t.id,
        )

    def rules_for(self, class_id: int, session_type: SessionType) -> list[ScheduleConstraint]:
        """Aktive Planungsregeln, die für die Klasse gelten (globale eingeschlossen)."""
        return [r for r in self.constraints if r.applies_to(class_id, session_type)]

    def classes_for_session(self, session_type: SessionType) -> list[SchoolClass]:
        return sorted((c for c in self.classes if c.session_type == session_type),
                      key=lambda c: c.id)

    # ─── Übersicht ───

    def summary(self) -> str:
        """Kurze Übersicht über den Datensatz."""
        sections = sum(len(c.sections) for c in self.classes)
        need = sum(
            s.weekly_periods * len(self.get_class(s.class_id).sections)
            for s in self.subjects if s.is_active
        )
        lines = [
            f"Klassen: {len(self.classes)} ({sections} Abteilungen)",
            f"Fächer: {len(self.subjects)}",
            f"Lehrkräfte: {len(self.teachers)}",
            f"Planungsregeln: {len(self.constraints)}",
            f"Gesamtbedarf: {need} Stunden/Woche",
        ]
        return "\n".join(lines)

    # ─── Voraussetzungs-Check ───

    def check_prerequisites(
        self,
        class_id: int,
        section: Optional[str],
        session_type: SessionType,
        grid: TimeGridConfig,
        busy_slots: Optional[dict[int, set[TimeSlot]]] = None,
    ) -> PrerequisiteReport:
        """Prüft ob für eine Klasse sinnvoll ein Plan erzeugt werden kann.

        Prüfungen:
        1. Klasse, Abteilung und Abteilungstyp passen zusammen
        2. Aktive Fächer vorhanden, alle mit Soll > 0
        3. Jedes Fach hat eine qualifizierte Lehrkraft dieser Abteilung
        4. Freie Lehrer-Slots pro Fach ≥ Soll
        5. Summe Soll vs. verfügbare Slots im Raster
        6. Slots, an denen keine Lehrkraft der Klasse frei ist

        busy_slots: bereits belegte Slots je Lehrkraft (aus dem Zuweisungsspeicher).
        """
        errors: list[str] = []
        warnings: list[str] = []
        busy_slots = busy_slots or {}

        try:
            school_class = self.get_class(class_id)
        except NotFoundError:
            return PrerequisiteReport(
                is_valid=False, errors=[f"Klasse {class_id} existiert nicht."], warnings=[])

        # ── 1. Abteilung / Abteilungstyp ────────────────────────────────
        if section is not None and section not in school_class.sections:
            errors.append(
                f"Abteilung '{section}' existiert in {school_class.name} nicht "
                f"(vorhanden: {', '.join(school_class.sections)})."
            )
        if school_class.session_type != session_type:
            errors.append(
                f"{school_class.name} gehört zur Abteilung '{school_class.session_type.value}', "
                f"nicht '{session_type.value}'."
            )

        # ── 2. Fächer ───────────────────────────────────────────────────
        subjects = self.subjects_for_class(class_id)
        if not subjects:
            errors.append(f"Für {school_class.name} sind keine Fächer definiert.")
            return PrerequisiteReport(is_valid=False, errors=errors, warnings=warnings)

        for s in subjects:
            if s.weekly_periods <= 0:
                errors.append(f"Fach '{s.name}' hat 0 Wochenstunden.")

        teachable = week_slots(grid)

        # ── 3./4. Lehrkräfte pro Fach ──────────────────────────────────
        details: list[SubjectPrerequisite] = []
        class_teacher_ids: set[int] = set()
        for s in subjects:
            qualified = self.qualified_teachers(s.id, session_type)
            class_teacher_ids.update(t.id for t in qualified)
            free = {
                slot for t in qualified for slot in teachable
                if t.is_declared_available(slot.day_of_week, slot.period_number)
                and slot not in busy_slots.get(t.id, set())
            }
            sufficient = bool(qualified) and len(free) >= s.weekly_periods
            details.append(SubjectPrerequisite(
                subject_id=s.id,
                subject_name=s.name,
                required_periods=s.weekly_periods,
                qualified_teacher_ids=[t.id for t in qualified],
                free_teacher_slots=len(free),
                is_sufficient=sufficient,
            ))
            if not qualified:
                errors.append(f"Fach '{s.name}': Keine Lehrkraft für '{session_type.value}' qualifiziert.")
            elif not sufficient:
                warnings.append(
                    f"Fach '{s.name}': Nur {len(free)} freie Lehrer-Slots "
                    f"bei {s.weekly_periods} benötigten Stunden."
                )

        # Lehrkräfte ohne jeden freien Slot
        for tid in sorted(class_teacher_ids):
            teacher = self.get_teacher(tid)
            free_count = sum(
                1 for slot in teachable
                if teacher.is_declared_available(slot.day_of_week, slot.period_number)
                and slot not in busy_slots.get(tid, set())
            )
            if free_count == 0:
                warnings.append(f"Lehrkraft {teacher.name} hat keinen freien Slot mehr.")

        # ── 5. Gesamtbilanz ─────────────────────────────────────────────
        total_need = sum(s.weekly_periods for s in subjects)
        if total_need < len(teachable):
            warnings.append(
                f"Summe der Fachstunden ({total_need}) < verfügbare Slots ({len(teachable)}) – "
                f"{len(teachable) - total_need} Slots bleiben leer."
            )
        elif total_need > len(teachable):
            warnings.append(
                f"Summe der Fachstunden ({total_need}) > verfügbare Slots ({len(teachable)}) – "
                f"{total_need - len(teachable)} Stunden können nicht platziert werden."
            )

        # ── 6. Slots ohne freie Lehrkraft ───────────────────────────────
        if class_teacher_ids:
            uncovered = [
                slot for slot in teachable
                if not any(
                    self.get_teacher(tid).is_declared_available(slot.day_of_week, slot.period_number)
                    and slot not in busy_slots.get(tid, set())
                    for tid in class_teacher_ids
                )
            ]
            if uncovered:
                warnings.append(
                    "Keine Lehrkraft der Klasse frei: "
                    + ", ".join(f"{grid.day_name(s.day_of_week)} {s.period_number}." for s in uncovered)
                )

        return PrerequisiteReport(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
            subject_details=details,
        )

    # ─── Persistenz ────────────────────────────────────────────────────────

    def save_json(self, path: Path) -> None:
        """Speichert den kompletten Datensatz als JSON-Datei."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        now = datetime.now(timezone.utc)
        updated = self.model_copy(update={
            "modified_at": now,
            "created_at": self.created_at or now,
        })
        with open(path, "w", encoding="utf-8") as f:
            f.write(updated.model_dump_json(indent=2))

    @classmethod
    def load_json(cls, path: Path) -> "SchoolDirectory":
        """Lädt einen Datensatz aus einer JSON-Datei."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"JSON-Datei nicht gefunden: {path}")
        with open(path, "r", encoding="utf-8") as f:
            return cls.model_validate_json(f.read())
