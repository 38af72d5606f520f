"""Demo-Daten für den Stundenplan-Generator.

Erzeugt Klassen, Fächer (nach STUNDENTAFEL) und Lehrkräfte mit
reproduzierbaren Zufallsnamen und Sperrzeiten.

Absichtliche Engpässe:
  1. Eine Lehrkraft ist sonntags komplett gesperrt
  2. Einzelne Lehrkräfte melden zufällige Sperrstunden
  3. Fächer mit wenigen Stunden haben nur eine Lehrkraft pro Abteilungstyp

Lösbarkeits-Garantie: Pro Fachname und Abteilungstyp wird so viel
Kapazität angelegt, dass der Bedarf höchstens ~70 % davon ausmacht.
"""

import math
import random
from typing import Optional

from config.defaults import STUNDENTAFEL
from config.schema import SchedulerConfig, SessionType
from models.directory import SchoolDirectory
from models.school_class import SchoolClass
from models.subject import Subject
from models.teacher import Teacher
from models.timeslot import week_slots

# ─── Namens-Listen ────────────────────────────────────────────────────────────

_FIRST_NAMES = [
    "Ahmad", "Amal", "Basma", "Fadi", "Hala", "Hussein", "Iman", "Jamil",
    "Khaled", "Layla", "Mahmoud", "Mona", "Nour", "Omar", "Rana", "Sami",
    "Samira", "Tarek", "Wafa", "Yousef", "Zeina", "Anna", "Jonas", "Lena",
]

_LAST_NAMES = [
    "Haddad", "Khoury", "Nassar", "Saleh", "Mansour", "Aziz", "Hamdan",
    "Darwish", "Qasem", "Jaber", "Odeh", "Sabbagh", "Awad", "Barakat",
    "Müller", "Schmidt", "Weber", "Fischer", "Becker", "Wagner",
]

# Maximale Zielauslastung einer Lehrkraft (Anteil der unterrichtbaren Slots)
_TARGET_LOAD = 0.7


class FakeDataGenerator:
    """Generiert einen vollständigen SchoolDirectory-Datensatz."""

    def __init__(
        self,
        config: SchedulerConfig,
        seed: Optional[int] = None,
        sections_per_class: int = 2,
        evening_grades: tuple[int, ...] = (9,),
    ) -> None:
        self.config = config
        self.rng = random.Random(seed)
        self.sections_per_class = sections_per_class
        self.evening_grades = evening_grades
        self._used_names: set[str] = set()

    # ─── Klassen & Fächer ─────────────────────────────────────────────────────

    def _generate_classes(self) -> list[SchoolClass]:
        classes = []
        for idx, grade in enumerate(sorted(STUNDENTAFEL), start=1):
            session = SessionType.EVENING if grade in self.evening_grades else SessionType.MORNING
            classes.append(SchoolClass(
                id=idx,
                grade=grade,
                name=f"{grade}. Klasse",
                session_type=session,
                sections=[str(s) for s in range(1, self.sections_per_class + 1)],
            ))
        return classes

    def _generate_subjects(self, classes: list[SchoolClass]) -> list[Subject]:
        subjects = []
        next_id = 1
        for c in classes:
            for name, periods in STUNDENTAFEL[c.grade].items():
                subjects.append(Subject(
                    id=next_id, name=name, class_id=c.id, weekly_periods=periods))
                next_id += 1
        return subjects

    # ─── Lehrkräfte ───────────────────────────────────────────────────────────

    def _make_name(self) -> str:
        """Eindeutiger Zufallsname."""
        for _ in range(100):
            name = f"{self.rng.choice(_LAST_NAMES)}, {self.rng.choice(_FIRST_NAMES)}"
            if name not in self._used_names:
                self._used_names.add(name)
                return name
        name = f"Lehrkraft {len(self._used_names) + 1}"
        self._used_names.add(name)
        return name

    def _generate_teachers(self, classes: list[SchoolClass], subjects: list[Subject]) -> list[Teacher]:
        """Lehrkräfte pro (Abteilungstyp, Fachname).

        Bedarf = Σ weekly_periods × Abteilungen; Anzahl = ⌈Bedarf / Zielkapazität⌉.
        """
        grid = self.config.time_grid
        capacity = max(1, int(len(week_slots(grid)) * _TARGET_LOAD))
        class_by_id = {c.id: c for c in classes}

        demand: dict[tuple[SessionType, str], int] = {}
        subject_ids: dict[tuple[SessionType, str], list[int]] = {}
        for s in subjects:
            c = class_by_id[s.class_id]
            key = (c.session_type, s.name)
            demand[key] = demand.get(key, 0) + s.weekly_periods * len(c.sections)
            subject_ids.setdefault(key, []).append(s.id)

        teachers: list[Teacher] = []
        for (session, name), need in sorted(demand.items(), key=lambda kv: (kv[0][0].value, kv[0][1])):
            count = max(1, math.ceil(need / capacity))
            for _ in range(count):
                teachers.append(Teacher(
                    id=len(teachers) + 1,
                    name=self._make_name(),
                    subject_ids=sorted(subject_ids[(session, name)]),
                    session_types=[session],
                    unavailable_slots=self._random_blackout(),
                ))

        # ── Engpass #1: eine Lehrkraft sonntags gesperrt ─────────────────────
        if teachers:
            victim = teachers[self.rng.randrange(len(teachers))]
            sunday = [(1, p) for p in range(1, grid.periods_per_day + 1)]
            victim.unavailable_slots = sorted(set(victim.unavailable_slots) | set(sunday))
        return teachers

    def _random_blackout(self) -> list[tuple[int, int]]:
        """Jede vierte Lehrkraft meldet 1–3 Sperrstunden."""
        if self.rng.random() >= 0.25:
            return []
        grid = self.config.time_grid
        count = self.rng.randint(1, 3)
        slots = {
            (self.rng.randint(1, grid.days_per_week), self.rng.randint(1, grid.periods_per_day))
            for _ in range(count)
        }
        return sorted(slots)

    # ─── Gesamt ───────────────────────────────────────────────────────────────

    def generate(self) -> SchoolDirectory:
        """Erzeugt den vollständigen Datensatz."""
        classes = self._generate_classes()
        subjects = self._generate_subjects(classes)
        teachers = self._generate_teachers(classes, subjects)
        return SchoolDirectory(classes=classes, subjects=subjects, teachers=teachers)

    # ─── Ausgabe ──────────────────────────────────────────────────────────────

    def print_summary(self, data: SchoolDirectory) -> None:
        """Gibt eine Rich-Tabelle mit Übersicht der erzeugten Daten aus."""
        from rich.console import Console
        from rich.table import Table
        from rich import box

        console = Console()
        table = Table(title="Erzeugte Demo-Daten", box=box.ROUNDED)
        table.add_column("Kategorie", style="bold cyan")
        table.add_column("Anzahl", justify="right")
        table.add_column("Details")

        sessions = sorted({c.session_type.value for c in data.classes})
        blocked = sum(1 for t in data.teachers if t.unavailable_slots)
        table.add_row("Klassen", str(len(data.classes)),
                      f"{sum(len(c.sections) for c in data.classes)} Abteilungen, {', '.join(sessions)}")
        table.add_row("Fächer", str(len(data.subjects)), "")
        table.add_row("Lehrkräfte", str(len(data.teachers)), f"{blocked} mit Sperrzeiten")
        console.print(table)
