"""Datenmodell für Klasse und Klassenabteilung (Pydantic v2)."""

from pydantic import BaseModel, ConfigDict, field_validator

from config.schema import SessionType


class ClassSection(BaseModel):
    """Eine Unterrichtsgruppe: Klasse + Abteilung + Vormittag/Nachmittag.

    Jede ClassSection besitzt pro Schuljahr genau ein Wochenraster.
    """

    model_config = ConfigDict(frozen=True)

    class_id: int
    section: str
    session_type: SessionType

    def __str__(self) -> str:
        return f"Klasse {self.class_id}/{self.section} ({self.session_type.value})"


class SchoolClass(BaseModel):
    """Repräsentiert eine Klassenstufe mit ihren Abteilungen (z.B. 7 mit "1", "2")."""

    id: int
    grade: int
    name: str                          # "7. Klasse"
    session_type: SessionType = SessionType.MORNING
    sections: list[str] = ["1"]        # Abteilungen

    @field_validator("sections")
    @classmethod
    def _sections_unique(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("Eine Klasse braucht mindestens eine Abteilung.")
        if len(set(v)) != len(v):
            raise ValueError(f"Doppelte Abteilungen: {v}")
        return [str(s) for s in v]

    def class_sections(self) -> list[ClassSection]:
        """Alle Abteilungen als ClassSection, sortiert."""
        return [
            ClassSection(class_id=self.id, section=s, session_type=self.session_type)
            for s in sorted(self.sections)
        ]
