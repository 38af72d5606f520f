"""Einheitliche Ergebnis-Modelle aller Stundenplan-Operationen (Pydantic v2).

Jede öffentliche Operation (generieren, Tausch prüfen, Tausch ausführen,
Klassenplan löschen, Konflikte auflisten) liefert ein SchedulingResult mit
einem Status-Tag. Konflikte sind Daten, keine Exceptions.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel

from models.assignment import Assignment, AssignmentDraft


class ResultStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    CONFLICT = "conflict"
    ERROR = "error"


class SchedulingResult(BaseModel):
    """Gemeinsame Basis aller Ergebnisse."""

    status: ResultStatus
    message: str = ""
    conflicts: list[str] = []

    @property
    def ok(self) -> bool:
        return self.status in (ResultStatus.SUCCESS, ResultStatus.PARTIAL)


# ─── Generierung ──────────────────────────────────────────────────────────────

class UnfilledSlot(BaseModel):
    """Ein Slot bzw. Soll-Rest, der manuell vervollständigt werden muss.

    reason:
      no_teacher   – Fach platziert, aber keine freie qualifizierte Lehrkraft
      no_subject   – Slot leer, alle Fach-Kontingente sind erschöpft
      grid_full    – Fach-Soll passt nicht mehr ins Raster (kein Slot)
      blocked      – Slot leer, Planungsregeln sperren alle offenen Fächer
    """

    class_id: int
    section: str
    subject_id: Optional[int] = None
    day_of_week: Optional[int] = None
    period_number: Optional[int] = None
    reason: Literal["no_teacher", "no_subject", "grid_full", "blocked"]
    missing_periods: int = 1


class GenerationResult(SchedulingResult):
    """Ergebnis eines Generator-Laufs (Vorschau oder gespeichert)."""

    preview_only: bool
    working_set: list[AssignmentDraft] = []
    assignments: list[Assignment] = []
    unfilled: list[UnfilledSlot] = []
    filled_count: int = 0
    unfilled_count: int = 0
    class_sections: list[str] = []
    warnings: list[str] = []
    generation_time_seconds: float = 0.0
    constraint_stats: dict[str, int] = {}     # Regeltyp → gesperrte Platzierungen


# ─── Tausch ───────────────────────────────────────────────────────────────────

class SwapCheck(SchedulingResult):
    """Ergebnis der Tausch-Prüfung (verändert nichts)."""

    can_swap: bool
    reason: Optional[str] = None
    warnings: list[str] = []


class SwapResult(SchedulingResult):
    """Ergebnis eines ausgeführten (oder abgelehnten) Tauschs."""

    assignment1: Optional[Assignment] = None
    assignment2: Optional[Assignment] = None


# ─── Löschen ──────────────────────────────────────────────────────────────────

class DeleteResult(SchedulingResult):
    """Ergebnis der Löschung eines kompletten Klassenplans."""

    deleted_count: int = 0
    restored_teacher_ids: list[int] = []
