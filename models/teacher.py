"""Datenmodell für eine Lehrkraft (Pydantic v2)."""

from pydantic import BaseModel, field_validator

from config.schema import SessionType, TimeGridConfig
from models.timeslot import TimeSlot, week_slots


class Teacher(BaseModel):
    """Repräsentiert eine einzelne Lehrkraft.

    Die gemeldeten Sperrzeiten (unavailable_slots) sind unabhängig von
    bestehenden Zuweisungen. Die tatsächliche Verfügbarkeit ergibt sich erst
    aus Sperrzeiten minus belegte Slots (siehe AssignmentStore).
    """

    id: int
    name: str
    subject_ids: list[int]                                    # Qualifikationen
    session_types: list[SessionType] = [SessionType.MORNING, SessionType.EVENING]
    unavailable_slots: list[tuple[int, int]] = []             # (day_of_week, period_number)

    @field_validator("unavailable_slots")
    @classmethod
    def _slots_positive(cls, v: list[tuple[int, int]]) -> list[tuple[int, int]]:
        for day, period in v:
            if day < 1 or period < 1:
                raise ValueError(f"Ungültiger Sperr-Slot ({day}, {period}) – Tag und Stunde sind 1-basiert.")
        return v

    def can_teach(self, subject_id: int) -> bool:
        return subject_id in self.subject_ids

    def serves_session(self, session_type: SessionType) -> bool:
        return session_type in self.session_types

    def is_declared_available(self, day_of_week: int, period_number: int) -> bool:
        """True wenn der Slot nicht als Sperrzeit gemeldet ist."""
        return (day_of_week, period_number) not in self.unavailable_slots

    def declared_availability(self, grid: TimeGridConfig) -> set[TimeSlot]:
        """Alle Slots des Rasters, an denen die Lehrkraft grundsätzlich kann."""
        return {
            s for s in week_slots(grid)
            if self.is_declared_available(s.day_of_week, s.period_number)
        }
