from pydantic import BaseModel, Field, model_validator
from typing import Optional
from enum import Enum


class SessionType(str, Enum):
    MORNING = "morning"
    EVENING = "evening"


# ─── ZEITRASTER (Wochenraster So–Do × Stunden) ───

class BreakPeriod(BaseModel):
    """Eine Stunde, in der kein Unterricht stattfinden darf (z.B. Gebet, Versammlung)."""
    # Tag 1..days_per_week; None = an jedem Tag
    day_of_week: Optional[int] = None
    # Gesperrte Stunde (1-basiert)
    period_number: int
    # Optionale Bezeichnung
    label: str = "Pause"


class TimeGridConfig(BaseModel):
    """Festes Wochenraster einer Klasse/Abteilung.

    Das Raster definiert:
    - Wie viele Unterrichtstage es gibt (Sonntag bis Donnerstag)
    - Wie viele Stunden pro Tag unterrichtet werden
    - Welche Stunden als Pause gesperrt sind
    """
    # Anzahl Unterrichtstage pro Woche (1 = Sonntag)
    days_per_week: int = Field(5, ge=1, le=7,
        description="Unterrichtstage pro Woche")
    # Stunden pro Tag
    periods_per_day: int = Field(6, ge=1, le=10,
        description="Unterrichtsstunden pro Tag")
    # Namen der Wochentage (Index 0 = Tag 1)
    day_names: list[str] = Field(
        default=["So", "Mo", "Di", "Mi", "Do"],
        description="Namen der Wochentage")
    # Gesperrte Stunden (standardmäßig keine → 30 Slots)
    break_periods: list[BreakPeriod] = Field(
        default_factory=list,
        description="Stunden ohne Unterricht")

    @model_validator(mode='after')
    def validate_grid(self):
        """Tagesnamen und Pausen müssen zum Raster passen."""
        if len(self.day_names) < self.days_per_week:
            raise ValueError(
                f"Nur {len(self.day_names)} Tagesnamen für {self.days_per_week} Tage")
        for bp in self.break_periods:
            if not 1 <= bp.period_number <= self.periods_per_day:
                raise ValueError(
                    f"Pause in Stunde {bp.period_number} liegt außerhalb des Rasters")
            if bp.day_of_week is not None and not 1 <= bp.day_of_week <= self.days_per_week:
                raise ValueError(
                    f"Pause an Tag {bp.day_of_week} liegt außerhalb des Rasters")
        return self

    def contains(self, day_of_week: int, period_number: int) -> bool:
        """True wenn (Tag, Stunde) im Raster liegt."""
        return (1 <= day_of_week <= self.days_per_week
                and 1 <= period_number <= self.periods_per_day)

    def is_break(self, day_of_week: int, period_number: int) -> bool:
        """True wenn die Stunde als Pause gesperrt ist."""
        return any(
            bp.period_number == period_number
            and (bp.day_of_week is None or bp.day_of_week == day_of_week)
            for bp in self.break_periods
        )

    @property
    def total_slots(self) -> int:
        """Anzahl Slots pro Woche inkl. Pausen."""
        return self.days_per_week * self.periods_per_day

    def day_name(self, day_of_week: int) -> str:
        if 1 <= day_of_week <= len(self.day_names):
            return self.day_names[day_of_week - 1]
        return str(day_of_week)


# ─── GENERIERUNG ───

class GenerationConfig(BaseModel):
    """Standardwerte der Generator-Flags (pro Aufruf überschreibbar)."""
    # Lehrkräfte automatisch zuweisen (sonst bleiben Slots für manuelle Zuweisung offen)
    auto_assign_teachers: bool = Field(True,
        description="Lehrkräfte automatisch zuweisen")
    # Lehrkraft mit den wenigsten Stunden in diesem Lauf bevorzugen
    balance_teacher_load: bool = Field(True,
        description="Auslastung der Lehrkräfte ausgleichen")
    # Gemeldete Sperrzeiten der Lehrkräfte beachten
    avoid_teacher_conflicts: bool = Field(True,
        description="Sperrzeiten der Lehrkräfte beachten")
    # Dieselbe Lehrkraft für ein Fach in benachbarten Stunden bevorzugen
    prefer_subject_continuity: bool = Field(True,
        description="Fach-Kontinuität bevorzugen")


# ─── SPEICHER ───

class StoreConfig(BaseModel):
    """Persistenz des Zuweisungsspeichers."""
    # JSON-Datei mit allen Zuweisungen
    data_path: str = Field("output/assignments.json",
        description="Pfad der Zuweisungsdatei")
    # Nach jeder Transaktion speichern
    autosave: bool = Field(True,
        description="Nach jeder Änderung speichern")


# ─── GESAMT-CONFIG ───

class SchedulerConfig(BaseModel):
    """Gesamtkonfiguration des Stundenplan-Moduls."""
    # Name der Schule
    school_name: str = Field("Muster-Schule",
        description="Name der Schule")
    # Aktives Schuljahr
    academic_year_id: int = Field(1, ge=1)
    # Standard-Abteilung (Vormittag/Nachmittag)
    default_session: SessionType = Field(SessionType.MORNING)
    # Wochenraster
    time_grid: TimeGridConfig = Field(default_factory=TimeGridConfig)
    # Generator-Flags
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    # Speicher
    store: StoreConfig = Field(default_factory=StoreConfig)
