"""Vom Benutzer gepflegte Planungsregeln (Pydantic v2).

Regeltypen:
  forbidden        – Fach darf an (Tag, Stunde) nicht liegen; fehlt Tag oder
                     Stunde, gilt die Regel für jeden Tag bzw. jede Stunde
  no_consecutive   – Fach nie in zwei direkt aufeinanderfolgenden Stunden
  before_after     – Fach nie direkt vor ('before') bzw. nach ('after')
                     dem Bezugsfach
  subject_per_day  – Fach möglichst an jedem Unterrichtstag (nur Hinweis)
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from config.schema import SessionType

ConstraintType = Literal["forbidden", "no_consecutive", "before_after", "subject_per_day"]


class ScheduleConstraint(BaseModel):
    """Eine Planungsregel für ein Fach, global oder für eine Klasse."""

    id: int
    constraint_type: ConstraintType
    subject_id: int
    class_id: Optional[int] = None               # None = alle Klassen
    session_type: Optional[SessionType] = None   # None = beide Abteilungstypen
    day_of_week: Optional[int] = Field(default=None, ge=1)
    period_number: Optional[int] = Field(default=None, ge=1)
    reference_subject_id: Optional[int] = None
    placement: Optional[Literal["before", "after"]] = None
    description: str = ""
    is_active: bool = True

    @model_validator(mode='after')
    def _check_type_fields(self):
        if self.constraint_type == "forbidden" and self.day_of_week is None and self.period_number is None:
            raise ValueError(f"Regel {self.id}: 'forbidden' braucht day_of_week oder period_number")
        if self.constraint_type == "before_after":
            if self.reference_subject_id is None or self.placement is None:
                raise ValueError(
                    f"Regel {self.id}: 'before_after' braucht reference_subject_id und placement")
            if self.reference_subject_id == self.subject_id:
                raise ValueError(f"Regel {self.id}: Bezugsfach ist das Fach selbst")
        return self

    def applies_to(self, class_id: int, session_type: SessionType) -> bool:
        return (
            self.is_active
            and (self.class_id is None or self.class_id == class_id)
            and (self.session_type is None or self.session_type == session_type)
        )

    def forbids(self, subject_id: int, day_of_week: int, period_number: int) -> bool:
        """True bei einer 'forbidden'-Regel, die diesen Slot für das Fach sperrt."""
        return (
            self.constraint_type == "forbidden"
            and self.subject_id == subject_id
            and self.day_of_week in (None, day_of_week)
            and self.period_number in (None, period_number)
        )

    def forbids_sequence(self, first_subject_id: int, second_subject_id: int) -> bool:
        """True wenn first direkt vor second gegen diese Regel verstößt."""
        if self.constraint_type == "no_consecutive":
            return first_subject_id == second_subject_id == self.subject_id
        if self.constraint_type == "before_after":
            if self.placement == "before":
                return (first_subject_id, second_subject_id) == (self.subject_id, self.reference_subject_id)
            return (first_subject_id, second_subject_id) == (self.reference_subject_id, self.subject_id)
        return False

    def __str__(self) -> str:
        if self.description:
            return self.description
        return f"Regel {self.id} ({self.constraint_type}, Fach {self.subject_id})"
