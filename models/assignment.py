"""Datenmodell für eine Stundenzuweisung (Pydantic v2)."""

from typing import Optional

from pydantic import BaseModel, Field

from config.schema import SessionType
from models.school_class import ClassSection
from models.timeslot import TimeSlot


class AssignmentDraft(BaseModel):
    """Eine Zuweisung ohne ID (Vorschau des Generators oder neue Eingabe).

    Eindeutigkeit (wird vom AssignmentStore erzwungen):
    - pro (class_id, section, session_type, day, period) höchstens ein Eintrag
    - pro (teacher_id, day, period, academic_year_id, session_type) höchstens einer
    """

    academic_year_id: int
    session_type: SessionType
    class_id: int
    section: str
    day_of_week: int = Field(ge=1)
    period_number: int = Field(ge=1)
    subject_id: int
    teacher_id: Optional[int] = None     # None = manuelle Zuweisung ausstehend
    room: Optional[str] = None
    notes: Optional[str] = None

    @property
    def slot(self) -> TimeSlot:
        return TimeSlot(self.day_of_week, self.period_number)

    @property
    def class_section(self) -> ClassSection:
        return ClassSection(
            class_id=self.class_id, section=self.section, session_type=self.session_type
        )

    @property
    def class_slot_key(self) -> tuple:
        """Schlüssel der Klassen-Eindeutigkeit."""
        return (self.academic_year_id, self.session_type, self.class_id,
                self.section, self.day_of_week, self.period_number)

    @property
    def teacher_slot_key(self) -> Optional[tuple]:
        """Schlüssel der Lehrer-Eindeutigkeit (None ohne Lehrkraft)."""
        if self.teacher_id is None:
            return None
        return (self.academic_year_id, self.session_type, self.teacher_id,
                self.day_of_week, self.period_number)

    def describe(self) -> str:
        """Kurzbeschreibung für Meldungen."""
        return (f"Klasse {self.class_id}/{self.section} {self.slot} "
                f"(Fach {self.subject_id}, Lehrkraft {self.teacher_id or '–'})")


class Assignment(AssignmentDraft):
    """Eine gespeicherte Zuweisung."""

    id: int

    def to_draft(self) -> AssignmentDraft:
        return AssignmentDraft(**self.model_dump(exclude={"id"}))
