"""Konfliktanalyse über alle gespeicherten Zuweisungen.

Konflikte sind abgeleitete Fakten: sie werden bei jedem Aufruf aus den
aktuellen Zeilen berechnet und nie gespeichert. Relevant ist das vor allem
für Dateien, die außerhalb des Programms bearbeitet wurden.
"""

from collections import defaultdict
from itertools import combinations
from typing import Literal, Optional

from pydantic import BaseModel

from config.schema import SessionType, TimeGridConfig
from data.assignment_store import AssignmentStore
from models.assignment import Assignment
from models.directory import SchoolDirectory
from models.results import ResultStatus, SchedulingResult
from models.timeslot import TimeSlot
from solver.constraints import blocking_rule, quota_status


class Conflict(BaseModel):
    """Ein einzelner Konflikt bzw. Hinweis."""

    severity: Literal["error", "warning"]
    constraint: str              # z.B. "teacher_double_booking"
    description: str
    assignment_ids: list[int]    # Paar bei Doppelbelegung, sonst eine ID
    day_of_week: Optional[int] = None
    period_number: Optional[int] = None


class ConflictReport(SchedulingResult):
    """Ergebnis von list_conflicts."""

    academic_year_id: int
    session_type: SessionType
    items: list[Conflict] = []
    checked_assignments: int = 0

    @property
    def errors(self) -> list[Conflict]:
        return [c for c in self.items if c.severity == "error"]

    @property
    def pairs(self) -> list[tuple[int, int]]:
        """Konfliktpaare (Doppelbelegungen)."""
        return [
            (c.assignment_ids[0], c.assignment_ids[1])
            for c in self.items
            if c.constraint in ("teacher_double_booking", "class_double_booking")
        ]

    def print_rich(self) -> None:
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        warnings = [c for c in self.items if c.severity == "warning"]
        status = (
            "[bold green]✓ KONFLIKTFREI[/bold green]"
            if not self.errors
            else "[bold red]✗ KONFLIKTE GEFUNDEN[/bold red]"
        )
        lines = [
            status,
            f"Zuweisungen: {self.checked_assignments} | "
            f"Konflikte: {len(self.errors)} | Hinweise: {len(warnings)}",
        ]
        console.print(Panel(
            "\n".join(lines),
            title=f"Konflikte Jahr {self.academic_year_id} ({self.session_type.value})",
            border_style="cyan",
        ))
        if not self.items:
            return

        table = Table(box=box.ROUNDED, show_lines=True)
        table.add_column("Typ", width=8)
        table.add_column("Regel", width=24)
        table.add_column("IDs", width=10)
        table.add_column("Beschreibung")
        for c in self.items:
            color = "red" if c.severity == "error" else "yellow"
            table.add_row(
                f"[{color}]{c.severity.upper()}[/{color}]",
                c.constraint,
                ", ".join(f"#{i}" for i in c.assignment_ids),
                c.description,
            )
        console.print(table)


class ConflictDetector:
    """Prüft alle Zuweisungen eines Schuljahrs/Abteilungstyps."""

    def __init__(self, directory: SchoolDirectory, store: AssignmentStore, grid: TimeGridConfig) -> None:
        self.directory = directory
        self.store = store
        self.grid = grid

    def list_conflicts(
        self, academic_year_id: int, session_type: SessionType, include_quota: bool = True
    ) -> ConflictReport:
        rows = self.store.list_by(academic_year_id=academic_year_id, session_type=session_type)
        items: list[Conflict] = []
        items.extend(self._check_teacher_double_booking(rows))
        items.extend(self._check_class_double_booking(rows))
        items.extend(self._check_grid(rows))
        items.extend(self._check_teachers(rows))
        items.extend(self._check_rules(rows))
        if include_quota:
            items.extend(self._check_quota(rows))

        errors = [c for c in items if c.severity == "error"]
        return ConflictReport(
            status=ResultStatus.CONFLICT if errors else ResultStatus.SUCCESS,
            message=f"{len(errors)} Konflikt(e) in {len(rows)} Zuweisungen",
            conflicts=[c.description for c in errors],
            academic_year_id=academic_year_id,
            session_type=session_type,
            items=items,
            checked_assignments=len(rows),
        )

    def _slot(self, row: Assignment) -> str:
        return f"{self.grid.day_name(row.day_of_week)} {row.period_number}."

    # ── Einzelne Prüfungen ────────────────────────────────────────────────────

    def _check_teacher_double_booking(self, rows: list[Assignment]) -> list[Conflict]:
        """Keine Lehrkraft in zwei Klassen zur selben Zeit."""
        seen: dict[tuple, list[Assignment]] = defaultdict(list)
        for r in rows:
            if r.teacher_id is not None:
                seen[(r.teacher_id, r.day_of_week, r.period_number)].append(r)

        found = []
        for (teacher_id, day, period), group in seen.items():
            for a, b in combinations(group, 2):
                found.append(Conflict(
                    severity="error",
                    constraint="teacher_double_booking",
                    assignment_ids=[a.id, b.id],
                    day_of_week=day,
                    period_number=period,
                    description=(
                        f"Lehrkraft {teacher_id} {self._slot(a)}: gleichzeitig in "
                        f"Klasse {a.class_id}/{a.section} und {b.class_id}/{b.section}."
                    ),
                ))
        return found

    def _check_class_double_booking(self, rows: list[Assignment]) -> list[Conflict]:
        """Pro Klassenabteilung und Slot höchstens ein Eintrag."""
        seen: dict[tuple, list[Assignment]] = defaultdict(list)
        for r in rows:
            seen[(r.class_id, r.section, r.day_of_week, r.period_number)].append(r)

        found = []
        for (class_id, section, day, period), group in seen.items():
            for a, b in combinations(group, 2):
                found.append(Conflict(
                    severity="error",
                    constraint="class_double_booking",
                    assignment_ids=[a.id, b.id],
                    day_of_week=day,
                    period_number=period,
                    description=f"Klasse {class_id}/{section} {self._slot(a)}: doppelt belegt.",
                ))
        return found

    def _check_grid(self, rows: list[Assignment]) -> list[Conflict]:
        found = []
        for r in rows:
            if not self.grid.contains(r.day_of_week, r.period_number):
                found.append(Conflict(
                    severity="error", constraint="outside_grid", assignment_ids=[r.id],
                    day_of_week=r.day_of_week, period_number=r.period_number,
                    description=f"({r.day_of_week}, {r.period_number}) liegt außerhalb des Rasters.",
                ))
            elif self.grid.is_break(r.day_of_week, r.period_number):
                found.append(Conflict(
                    severity="error", constraint="break_period", assignment_ids=[r.id],
                    day_of_week=r.day_of_week, period_number=r.period_number,
                    description=f"Klasse {r.class_id}/{r.section} {self._slot(r)}: Unterricht in einer Pause.",
                ))
        return found

    def _check_teachers(self, rows: list[Assignment]) -> list[Conflict]:
        """Sperrzeiten, Abteilungstyp und fehlende Lehrkräfte."""
        found = []
        for r in rows:
            if r.teacher_id is None:
                found.append(Conflict(
                    severity="warning", constraint="missing_teacher", assignment_ids=[r.id],
                    day_of_week=r.day_of_week, period_number=r.period_number,
                    description=f"Klasse {r.class_id}/{r.section} {self._slot(r)}: keine Lehrkraft zugewiesen.",
                ))
                continue
            teacher = self.directory.find_teacher(r.teacher_id)
            if teacher is None:
                found.append(Conflict(
                    severity="error", constraint="unknown_teacher", assignment_ids=[r.id],
                    day_of_week=r.day_of_week, period_number=r.period_number,
                    description=f"Lehrkraft {r.teacher_id} existiert nicht.",
                ))
                continue
            if not teacher.is_declared_available(r.day_of_week, r.period_number):
                found.append(Conflict(
                    severity="error", constraint="teacher_unavailable", assignment_ids=[r.id],
                    day_of_week=r.day_of_week, period_number=r.period_number,
                    description=f"{teacher.name} ist {self._slot(r)} gesperrt, aber eingeplant.",
                ))
            if not teacher.serves_session(r.session_type):
                found.append(Conflict(
                    severity="error", constraint="session_mismatch", assignment_ids=[r.id],
                    day_of_week=r.day_of_week, period_number=r.period_number,
                    description=(
                        f"{teacher.name} unterrichtet nicht in der Abteilung "
                        f"'{r.session_type.value}'."
                    ),
                ))
        return found

    def _check_rules(self, rows: list[Assignment]) -> list[Conflict]:
        """Planungsregeln je Klassenabteilung; subject_per_day nur als Hinweis."""
        found = []
        by_section: dict[tuple, dict[TimeSlot, Assignment]] = defaultdict(dict)
        for r in rows:
            by_section[(r.class_id, r.section, r.session_type)][r.slot] = r

        for (class_id, section, session), grid in sorted(by_section.items()):
            rules = self.directory.rules_for(class_id, session)
            if not rules:
                continue
            for slot, r in sorted(grid.items()):
                before = grid.get(TimeSlot(slot.day_of_week, slot.period_number - 1))
                rule = blocking_rule(
                    rules, r.subject_id, slot.day_of_week, slot.period_number,
                    subject_before=before.subject_id if before is not None else None,
                )
                if rule is None:
                    continue
                ids = [before.id, r.id] if before is not None and rule.constraint_type != "forbidden" else [r.id]
                found.append(Conflict(
                    severity="error", constraint=f"rule_{rule.constraint_type}", assignment_ids=ids,
                    day_of_week=slot.day_of_week, period_number=slot.period_number,
                    description=f"Klasse {class_id}/{section} {self._slot(r)}: verstößt gegen {rule}.",
                ))

            days = range(1, self.grid.days_per_week + 1)
            for rule in rules:
                if rule.constraint_type != "subject_per_day":
                    continue
                missing = [
                    self.grid.day_name(d) for d in days
                    if not any(s.day_of_week == d and a.subject_id == rule.subject_id for s, a in grid.items())
                ]
                if missing:
                    found.append(Conflict(
                        severity="warning", constraint="rule_subject_per_day",
                        assignment_ids=[a.id for a in grid.values() if a.subject_id == rule.subject_id],
                        description=(
                            f"Klasse {class_id}/{section}: Fach {rule.subject_id} fehlt an "
                            f"{', '.join(missing)}."
                        ),
                    ))
        return found

    def _check_quota(self, rows: list[Assignment]) -> list[Conflict]:
        """Abweichungen vom Wochenstunden-Soll (nur Hinweis)."""
        found = []
        sections = sorted({(r.class_id, r.section) for r in rows})
        for class_id, section in sections:
            class_rows = [r for r in rows if r.class_id == class_id and r.section == section]
            for subject in self.directory.subjects_for_class(class_id):
                status = quota_status(class_id, section, subject, class_rows)
                if status.satisfied:
                    continue
                found.append(Conflict(
                    severity="warning", constraint="quota_mismatch",
                    assignment_ids=[r.id for r in class_rows if r.subject_id == subject.id],
                    description=(
                        f"Klasse {class_id}/{section}: {subject.name} "
                        f"{status.assigned}/{status.required} Stunden."
                    ),
                ))
        return found
