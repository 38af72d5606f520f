"""Fehlerklassen des Stundenplan-Moduls.

Erwartete Konflikte bei Prüfungen werden als Daten zurückgegeben
(siehe models.results); diese Exceptions markieren Fälle, in denen eine
Operation nicht ausgeführt werden kann.
"""

from typing import Optional


class SchedulingError(Exception):
    """Basisklasse aller Stundenplan-Fehler."""

    retryable = False


class NotFoundError(SchedulingError):
    """Referenzierte Klasse/Lehrkraft/Fach/Zuweisung existiert nicht."""

    def __init__(self, entity: str, entity_id) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} nicht gefunden")


class ConflictError(SchedulingError):
    """Eine Änderung würde eine Eindeutigkeitsregel verletzen.

    details nennt jeden betroffenen Slot bzw. jede betroffene Lehrkraft.
    """

    def __init__(self, message: str, details: Optional[list[str]] = None) -> None:
        self.details = list(details or [])
        text = message if not self.details else f"{message}: " + "; ".join(self.details)
        super().__init__(text)


class InvalidRequestError(SchedulingError):
    """Ungültige Eingabe (z.B. Fach mit 0 Wochenstunden)."""


class TransactionFailure(SchedulingError):
    """Schreiben fehlgeschlagen, nachdem die Prüfung bestanden war.

    Der Aufrufer darf nach erneuter Prüfung einmal wiederholen.
    """

    retryable = True
