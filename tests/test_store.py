"""Tests für den AssignmentStore (Eindeutigkeit, Transaktionen, Persistenz)."""

import json
import threading
from pathlib import Path

import pytest

from config.defaults import default_time_grid, grid_with_breaks
from config.schema import SessionType
from data.assignment_store import AssignmentStore, StoreSnapshot
from models.assignment import Assignment, AssignmentDraft
from models.errors import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    TransactionFailure,
)
from models.teacher import Teacher
from models.timeslot import TimeSlot


# ─── Hilfsfunktionen ──────────────────────────────────────────────────────────

def make_draft(
    class_id: int = 1,
    section: str = "1",
    day: int = 1,
    period: int = 1,
    subject_id: int = 1,
    teacher_id=1,
    year: int = 1,
    session: SessionType = SessionType.MORNING,
) -> AssignmentDraft:
    return AssignmentDraft(
        academic_year_id=year,
        session_type=session,
        class_id=class_id,
        section=section,
        day_of_week=day,
        period_number=period,
        subject_id=subject_id,
        teacher_id=teacher_id,
    )


def make_store(path=None) -> AssignmentStore:
    return AssignmentStore(default_time_grid(), path=path)


# ─── Anlegen / Eindeutigkeit ──────────────────────────────────────────────────

class TestCreate:
    def test_create_assigns_ids(self):
        """Neue Zuweisungen erhalten fortlaufende IDs."""
        store = make_store()
        a = store.create(make_draft(day=1, period=1))
        b = store.create(make_draft(day=1, period=2))
        assert (a.id, b.id) == (1, 2)
        assert store.get(1).period_number == 1
        assert len(store) == 2

    def test_teacher_double_booking_rejected(self):
        """Lehrkraft T um (1,1) in Klasse A → neue Zuweisung in Klasse B um (1,1) scheitert."""
        store = make_store()
        store.create(make_draft(class_id=1, teacher_id=7))
        with pytest.raises(ConflictError) as exc:
            store.create(make_draft(class_id=2, teacher_id=7, subject_id=9))
        assert "Lehrkraft 7" in str(exc.value)
        assert len(store.list_by(class_id=2)) == 0
        assert len(store) == 1

    def test_class_double_booking_rejected(self):
        store = make_store()
        store.create(make_draft(teacher_id=1))
        with pytest.raises(ConflictError) as exc:
            store.create(make_draft(teacher_id=2, subject_id=2))
        assert exc.value.details
        assert "Klasse 1/1" in exc.value.details[0]

    def test_same_teacher_other_session_allowed(self):
        """Vormittag und Nachmittag sind verschiedene Zeiten."""
        store = make_store()
        store.create(make_draft(class_id=1, teacher_id=3))
        store.create(make_draft(class_id=2, teacher_id=3, session=SessionType.EVENING))
        assert len(store) == 2

    def test_same_teacher_other_year_allowed(self):
        store = make_store()
        store.create(make_draft(teacher_id=3, year=1))
        store.create(make_draft(class_id=2, teacher_id=3, year=2))
        assert len(store) == 2

    def test_rows_without_teacher_never_collide(self):
        """teacher_id=None zählt nicht für die Lehrer-Eindeutigkeit."""
        store = make_store()
        store.create(make_draft(class_id=1, teacher_id=None))
        store.create(make_draft(class_id=2, teacher_id=None))
        assert len(store) == 2

    def test_same_teacher_non_adjacent_periods_allowed(self):
        """Gleiche Lehrkraft und gleiches Fach in zwei Stunden einer Klasse ist erlaubt."""
        store = make_store()
        store.create(make_draft(period=1))
        store.create(make_draft(period=4))
        assert len(store.list_by(teacher_id=1)) == 2

    def test_outside_grid_rejected(self):
        store = make_store()
        with pytest.raises(ConflictError, match="außerhalb"):
            store.create(make_draft(day=6))
        with pytest.raises(ConflictError, match="außerhalb"):
            store.create(make_draft(period=7))

    def test_break_period_rejected(self):
        store = AssignmentStore(grid_with_breaks(4))
        with pytest.raises(ConflictError, match="Pause"):
            store.create(make_draft(period=4))
        store.create(make_draft(period=3))

    def test_create_many_is_all_or_nothing(self):
        store = make_store()
        drafts = [make_draft(period=1), make_draft(period=2), make_draft(class_id=2, period=2)]
        with pytest.raises(ConflictError):
            store.create_many(drafts)
        assert len(store) == 0
        assert store.revision == 0


# ─── Ändern ───────────────────────────────────────────────────────────────────

class TestUpdate:
    def test_update_changes_fields(self):
        store = make_store()
        a = store.create(make_draft())
        updated = store.update(a.id, {"teacher_id": 5, "room": "R12"})
        assert updated.teacher_id == 5
        assert store.get(a.id).room == "R12"

    def test_update_unknown_id(self):
        with pytest.raises(NotFoundError):
            make_store().update(99, {"teacher_id": 1})

    def test_update_id_forbidden(self):
        store = make_store()
        a = store.create(make_draft())
        with pytest.raises(InvalidRequestError):
            store.update(a.id, {"id": 42})

    def test_update_invalid_value(self):
        store = make_store()
        a = store.create(make_draft())
        with pytest.raises(InvalidRequestError):
            store.update(a.id, {"day_of_week": 0})

    def test_update_conflict_leaves_row_unchanged(self):
        store = make_store()
        store.create(make_draft(class_id=1, teacher_id=1))
        b = store.create(make_draft(class_id=2, teacher_id=2, subject_id=2))
        with pytest.raises(ConflictError):
            store.update(b.id, {"teacher_id": 1})
        assert store.get(b.id).teacher_id == 2

    def test_update_many_checks_final_state(self):
        """Lehrer-Tausch zweier Klassen zur selben Stunde ist im Endzustand gültig."""
        store = make_store()
        a = store.create(make_draft(class_id=1, teacher_id=1, subject_id=1))
        b = store.create(make_draft(class_id=2, teacher_id=2, subject_id=2))
        store.update_many({
            a.id: {"teacher_id": 2, "subject_id": 2},
            b.id: {"teacher_id": 1, "subject_id": 1},
        })
        assert store.get(a.id).teacher_id == 2
        assert store.get(b.id).teacher_id == 1

    def test_returned_rows_are_copies(self):
        """Änderungen an zurückgegebenen Objekten wirken nicht auf den Speicher."""
        store = make_store()
        a = store.create(make_draft())
        a.teacher_id = 99
        store.list_by()[0].subject_id = 99
        assert store.get(a.id).teacher_id == 1
        assert store.get(a.id).subject_id == 1


# ─── Löschen / Verfügbarkeit ──────────────────────────────────────────────────

class TestDelete:
    def test_delete_one(self):
        store = make_store()
        a = store.create(make_draft())
        store.delete_one(a.id)
        assert len(store) == 0
        with pytest.raises(NotFoundError):
            store.delete_one(a.id)

    def test_delete_class_schedule_restores_availability(self):
        """Gelöschter Klassenplan gibt alle betroffenen Lehrkräfte wieder frei."""
        store = make_store()
        store.create(make_draft(class_id=1, period=1, teacher_id=1))
        store.create(make_draft(class_id=1, period=2, teacher_id=2))
        store.create(make_draft(class_id=1, period=3, teacher_id=None))
        store.create(make_draft(class_id=2, period=1, teacher_id=3))
        store.create(make_draft(class_id=1, section="2", period=1, teacher_id=4))

        result = store.delete_class_schedule(1, "1", SessionType.MORNING, 1)
        assert result.deleted_count == 3
        assert result.restored_teacher_ids == [1, 2]
        assert result.ok

        t1 = Teacher(id=1, name="A", subject_ids=[1])
        assert TimeSlot(1, 1) in store.teacher_free_slots(t1, 1, SessionType.MORNING)
        assert store.teacher_busy_slots(1, 1, SessionType.MORNING) == set()
        # andere Klassenabteilungen bleiben
        assert len(store.list_by(class_id=2)) == 1
        assert len(store.list_by(class_id=1, section="2")) == 1

        # freigewordener Slot ist wieder belegbar
        store.create(make_draft(class_id=3, period=1, teacher_id=1))

    def test_delete_empty_schedule(self):
        store = make_store()
        result = store.delete_class_schedule(1, "1", SessionType.MORNING, 1)
        assert result.deleted_count == 0
        assert result.restored_teacher_ids == []
        assert store.revision == 0

    def test_free_slots_respect_declared_blackout(self):
        store = make_store()
        store.create(make_draft(day=2, period=2, teacher_id=1))
        teacher = Teacher(id=1, name="A", subject_ids=[1], unavailable_slots=[(1, 1)])
        free = store.teacher_free_slots(teacher, 1, SessionType.MORNING)
        assert len(free) == 28
        assert TimeSlot(1, 1) not in free
        assert TimeSlot(2, 2) not in free


# ─── Abfragen ─────────────────────────────────────────────────────────────────

class TestListBy:
    def test_filters_and_order(self):
        store = make_store()
        store.create(make_draft(class_id=2, day=1, period=1, teacher_id=1))
        store.create(make_draft(class_id=1, day=2, period=1, teacher_id=2))
        store.create(make_draft(class_id=1, day=1, period=3, teacher_id=3))
        rows = store.list_by(academic_year_id=1, session_type=SessionType.MORNING)
        assert [(r.class_id, r.day_of_week, r.period_number) for r in rows] == [
            (1, 1, 3), (1, 2, 1), (2, 1, 1),
        ]
        assert len(store.list_by(teacher_id=2)) == 1
        assert store.list_by(day_of_week=5) == []

    def test_busy_map(self):
        store = make_store()
        store.create(make_draft(period=1, teacher_id=1))
        store.create(make_draft(period=2, teacher_id=1))
        store.create(make_draft(period=3, teacher_id=None))
        busy = store.busy_map(1, SessionType.MORNING)
        assert busy == {1: {TimeSlot(1, 1), TimeSlot(1, 2)}}


# ─── Transaktionen ────────────────────────────────────────────────────────────

class TestTransactions:
    def test_revision_counts_mutations(self):
        store = make_store()
        a = store.create(make_draft())
        assert store.revision == 1
        store.update(a.id, {"room": "A1"})
        assert store.revision == 2
        store.delete_one(a.id)
        assert store.revision == 3

    def test_exception_rolls_back(self):
        store = make_store()
        store.create(make_draft(period=1))
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.create(make_draft(period=2))
                store.create(make_draft(period=3))
                raise RuntimeError("abbrechen")
        assert len(store) == 1
        assert store.revision == 1

    def test_inner_conflict_keeps_outer_changes(self):
        store = make_store()
        with store.transaction():
            store.create(make_draft(period=1))
            with pytest.raises(ConflictError):
                store.create(make_draft(period=1, teacher_id=2))
            store.create(make_draft(period=2))
        assert len(store) == 2

    def test_concurrent_creates_never_double_book(self):
        """Parallele Schreiber: genau einer bekommt den Slot."""
        store = make_store()
        errors: list[Exception] = []

        def worker(class_id: int) -> None:
            try:
                store.create(make_draft(class_id=class_id, teacher_id=1))
            except ConflictError as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(c,)) for c in range(1, 9)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store) == 1
        assert len(errors) == 7


# ─── Persistenz ───────────────────────────────────────────────────────────────

class TestPersistence:
    def test_roundtrip(self, tmp_path: Path):
        path = tmp_path / "assignments.json"
        store = make_store(path)
        store.create(make_draft(period=1))
        store.create(make_draft(period=2, teacher_id=None))
        assert path.exists()

        reloaded = make_store(path)
        assert len(reloaded) == 2
        assert reloaded.revision == store.revision
        assert reloaded.get(2).teacher_id is None
        # IDs werden nach dem Laden fortgesetzt
        assert reloaded.create(make_draft(period=3)).id == 3

    def test_autosave_off(self, tmp_path: Path):
        path = tmp_path / "assignments.json"
        store = AssignmentStore(default_time_grid(), path=path, autosave=False)
        store.create(make_draft())
        assert not path.exists()
        store.save()
        assert path.exists()

    def test_save_without_path(self):
        with pytest.raises(InvalidRequestError):
            make_store().save()

    def test_failed_write_rolls_back(self, tmp_path: Path):
        """Schreibfehler → TransactionFailure, Speicher unverändert."""
        blocker = tmp_path / "datei"
        blocker.write_text("kein Verzeichnis")
        store = make_store(blocker / "assignments.json")
        with pytest.raises(TransactionFailure) as exc:
            store.create(make_draft())
        assert exc.value.retryable
        assert len(store) == 0
        assert store.revision == 0

    def test_load_does_not_revalidate(self, tmp_path: Path):
        """Extern bearbeitete Dateien dürfen Konflikte enthalten."""
        rows = [
            Assignment(id=1, **make_draft(class_id=1).model_dump()),
            Assignment(id=2, **make_draft(class_id=2).model_dump()),
        ]
        path = tmp_path / "assignments.json"
        path.write_text(StoreSnapshot(next_id=3, assignments=rows).model_dump_json(), encoding="utf-8")

        store = make_store(path)
        assert len(store) == 2
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["next_id"] == 3
