"""Datenmodell für ein Unterrichtsfach (Pydantic v2)."""

from pydantic import BaseModel, Field


class Subject(BaseModel):
    """Ein Fach gehört zu genau einer Klasse (nicht global).

    weekly_periods ist das Wochenstunden-Soll für jede Abteilung der Klasse.
    """

    id: int
    name: str
    class_id: int
    weekly_periods: int = Field(ge=0)
    is_active: bool = True
