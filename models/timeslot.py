"""Datenmodell für einen Zeitslot im Wochenraster."""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from config.schema import TimeGridConfig

_DAY_NAMES = ["So", "Mo", "Di", "Mi", "Do", "Fr", "Sa"]


@dataclass(frozen=True, order=True)
class TimeSlot:
    """Repräsentiert einen einzelnen Unterrichtszeitslot im Wochenraster.

    Kombination aus Wochentag und Stunde.
    Immutable (frozen=True) damit es als Dict-Key / Set-Element nutzbar ist.
    Die Sortierung ist tag-major (erst Tag, dann Stunde).
    """

    # Wochentag (1=Sonntag, 2=Montag, ..., 5=Donnerstag)
    day_of_week: int
    # Stunde (1-basiert, 1 = 1. Stunde)
    period_number: int

    @property
    def slot_id(self) -> str:
        """Eindeutiger String-Bezeichner (z.B. "1_1" für So 1. Stunde)."""
        return f"{self.day_of_week}_{self.period_number}"

    @property
    def day_name(self) -> str:
        """Abgekürzter Tagesname."""
        idx = self.day_of_week - 1
        return _DAY_NAMES[idx] if 0 <= idx < len(_DAY_NAMES) else str(self.day_of_week)

    def is_adjacent(self, other: "TimeSlot") -> bool:
        """True wenn beide Slots am selben Tag direkt aufeinander folgen."""
        return (self.day_of_week == other.day_of_week
                and abs(self.period_number - other.period_number) == 1)

    def __repr__(self) -> str:
        return f"TimeSlot({self.day_name}, Std.{self.period_number})"

    def __str__(self) -> str:
        return f"{self.day_name} {self.period_number}."


def week_slots(grid: "TimeGridConfig", include_breaks: bool = False) -> list[TimeSlot]:
    """Alle Slots des Rasters in fester tag-majorer Reihenfolge."""
    slots = []
    for day in range(1, grid.days_per_week + 1):
        for period in range(1, grid.periods_per_day + 1):
            if not include_breaks and grid.is_break(day, period):
                continue
            slots.append(TimeSlot(day, period))
    return slots
