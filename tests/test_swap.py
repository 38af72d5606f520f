"""Tests für Tausch-Prüfung, Tausch-Cache und Tausch-Ausführung."""

from config.defaults import default_time_grid
from config.schema import SessionType
from data.assignment_store import AssignmentStore
from models.assignment import AssignmentDraft
from models.directory import SchoolDirectory
from models.results import ResultStatus, SwapCheck
from models.school_class import SchoolClass
from models.subject import Subject
from models.teacher import Teacher
from solver.swap import SwapExecutor, SwapValidator, SwapValidityCache


# ─── Hilfsfunktionen ──────────────────────────────────────────────────────────

def make_directory() -> SchoolDirectory:
    """Klasse 1 (Abteilungen 1 und 2) mit Mathe/Deutsch, Klasse 3 mit Physik.

    Lehrkraft 1 unterrichtet Mathe und Physik, Lehrkraft 2 Deutsch.
    """
    return SchoolDirectory(
        classes=[
            SchoolClass(id=1, grade=7, name="7. Klasse", sections=["1", "2"]),
            SchoolClass(id=3, grade=9, name="9. Klasse"),
        ],
        subjects=[
            Subject(id=1, name="Mathe", class_id=1, weekly_periods=5),
            Subject(id=2, name="Deutsch", class_id=1, weekly_periods=5),
            Subject(id=3, name="Physik", class_id=3, weekly_periods=2),
        ],
        teachers=[
            Teacher(id=1, name="Frau Alt", subject_ids=[1, 3]),
            Teacher(id=2, name="Herr Berg", subject_ids=[2]),
        ],
    )


def row(class_id, section, day, period, subject_id, teacher_id, year=1,
        session=SessionType.MORNING) -> AssignmentDraft:
    return AssignmentDraft(
        academic_year_id=year, session_type=session, class_id=class_id,
        section=section, day_of_week=day, period_number=period,
        subject_id=subject_id, teacher_id=teacher_id,
    )


def make_setup(cache: bool = True):
    directory = make_directory()
    store = AssignmentStore(default_time_grid())
    validator = SwapValidator(directory, store, SwapValidityCache() if cache else None)
    return directory, store, validator, SwapExecutor(validator)


# ─── Prüfung ──────────────────────────────────────────────────────────────────

class TestSwapValidation:
    def test_valid_swap_same_slot(self):
        """Zwei Abteilungen zur selben Zeit: Lehrkräfte tauschen nur die Klasse."""
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "2", 1, 1, 2, 2))
        check = validator.validate(a.id, b.id)
        assert check.can_swap
        assert check.status == ResultStatus.SUCCESS
        assert check.reason is None

    def test_teacher_busy_at_destination(self):
        """Lehrkraft 1 unterrichtet So 2. bereits Klasse 3."""
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "1", 1, 2, 2, 2))
        c = store.create(row(3, "1", 1, 2, 3, 1))
        check = validator.validate(a.id, b.id)
        assert not check.can_swap
        assert check.status == ResultStatus.CONFLICT
        assert "Frau Alt" in check.reason
        assert "So 2." in check.reason
        assert f"#{c.id}" in check.reason

    def test_swap_within_same_class_different_periods(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "1", 1, 2, 2, 2))
        assert validator.validate(a.id, b.id).can_swap

    def test_same_id_rejected(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        check = validator.validate(a.id, a.id)
        assert not check.can_swap
        assert check.status == ResultStatus.ERROR

    def test_unknown_ids_named(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        check = validator.validate(a.id, 99)
        assert not check.can_swap
        assert check.status == ResultStatus.ERROR
        assert check.conflicts == ["Zuweisung 99 nicht gefunden"]

        both = validator.validate(98, 99)
        assert len(both.conflicts) == 2

    def test_different_years_rejected(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "1", 1, 1, 2, 2, year=2))
        check = validator.validate(a.id, b.id)
        assert not check.can_swap
        assert "Schuljahre" in check.reason

    def test_different_sessions_rejected(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "1", 1, 1, 2, 2, session=SessionType.EVENING))
        check = validator.validate(a.id, b.id)
        assert not check.can_swap
        assert check.status == ResultStatus.ERROR

    def test_blackout_at_destination(self):
        directory, store, validator, _ = make_setup()
        directory.teachers[1].unavailable_slots = [(1, 1)]
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "1", 2, 1, 2, 2))
        check = validator.validate(a.id, b.id)
        assert not check.can_swap
        assert "Sperrzeit" in check.reason

    def test_teacher_not_serving_session(self):
        directory, store, validator, _ = make_setup()
        directory.teachers[1].session_types = [SessionType.EVENING]
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "2", 1, 1, 2, 2))
        check = validator.validate(a.id, b.id)
        assert not check.can_swap
        assert "Abteilung" in check.reason

    def test_unassigned_teacher_can_move(self):
        """Zellen ohne Lehrkraft haben keine Lehrer-Bedingung."""
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, None))
        b = store.create(row(1, "1", 1, 2, 2, 2))
        assert validator.validate(a.id, b.id).can_swap

    def test_check_does_not_modify(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "2", 1, 1, 2, 2))
        before = store.revision
        validator.validate(a.id, b.id)
        assert store.revision == before
        assert store.get(a.id).teacher_id == 1


class TestQuotaWarnings:
    def test_warns_when_class_totals_change(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "2", 1, 1, 2, 2))
        check = validator.validate(a.id, b.id)
        assert check.can_swap
        assert "Klasse 1/1: Mathe −1, Deutsch +1" in check.warnings
        assert "Klasse 1/2: Deutsch −1, Mathe +1" in check.warnings

    def test_no_warning_within_one_section(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "1", 1, 2, 2, 2))
        assert validator.validate(a.id, b.id).warnings == []

    def test_foreign_subject_warning(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 2, 2))
        b = store.create(row(3, "1", 1, 2, 3, 1))
        check = validator.validate(a.id, b.id)
        assert check.can_swap
        assert any("Physik gehört zu Klasse 3" in w for w in check.warnings)


# ─── Cache ────────────────────────────────────────────────────────────────────

class TestSwapCache:
    def test_second_check_hits_cache(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "2", 1, 1, 2, 2))
        first = validator.validate(a.id, b.id)
        second = validator.validate(a.id, b.id)
        assert first == second
        assert validator.cache.hits == 1
        assert validator.cache.misses == 1

    def test_pair_is_ordered(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "2", 1, 1, 2, 2))
        validator.validate(a.id, b.id)
        validator.validate(b.id, a.id)
        assert validator.cache.hits == 0
        assert len(validator.cache) == 2

    def test_store_change_invalidates(self):
        """Nach einer Änderung im Speicher gilt ein alter Eintrag nicht mehr."""
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "1", 1, 2, 2, 2))
        assert validator.validate(a.id, b.id).can_swap

        store.create(row(3, "1", 1, 2, 3, 1))
        check = validator.validate(a.id, b.id)
        assert not check.can_swap
        assert validator.cache.hits == 0

    def test_bypass_cache(self):
        _, store, validator, _ = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "2", 1, 1, 2, 2))
        validator.validate(a.id, b.id)
        validator.validate(a.id, b.id, use_cache=False)
        assert validator.cache.hits == 0

    def test_lru_eviction(self):
        cache = SwapValidityCache(max_entries=2)
        check = SwapCheck(status=ResultStatus.SUCCESS, can_swap=True)
        cache.put(1, 2, 0, check)
        cache.put(1, 3, 0, check)
        cache.get(1, 2, 0)
        cache.put(1, 4, 0, check)
        assert cache.get(1, 3, 0) is None
        assert cache.get(1, 2, 0) is not None
        assert len(cache) == 2

    def test_cached_result_is_copy(self):
        cache = SwapValidityCache()
        cache.put(1, 2, 0, SwapCheck(status=ResultStatus.SUCCESS, can_swap=True, warnings=["x"]))
        cache.get(1, 2, 0).warnings.append("y")
        assert cache.get(1, 2, 0).warnings == ["x"]

    def test_invalidate(self):
        cache = SwapValidityCache()
        cache.put(1, 2, 0, SwapCheck(status=ResultStatus.SUCCESS, can_swap=True))
        cache.invalidate()
        assert cache.get(1, 2, 0) is None


# ─── Ausführung ───────────────────────────────────────────────────────────────

class TestSwapExecution:
    def test_swap_exchanges_subject_and_teacher(self):
        _, store, _, executor = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "2", 1, 1, 2, 2))
        result = executor.execute(a.id, b.id)
        assert result.status == ResultStatus.SUCCESS
        assert (result.assignment1.subject_id, result.assignment1.teacher_id) == (2, 2)
        assert (result.assignment2.subject_id, result.assignment2.teacher_id) == (1, 1)
        # Klasse, Tag und Stunde bleiben
        assert result.assignment1.section == "1"
        assert result.assignment1.slot == a.slot

    def test_swap_is_reversible(self):
        _, store, _, executor = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "1", 1, 2, 2, 2))
        executor.execute(a.id, b.id)
        executor.execute(a.id, b.id)
        assert store.get(a.id) == a
        assert store.get(b.id) == b

    def test_rejected_swap_changes_nothing(self):
        _, store, _, executor = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "1", 1, 2, 2, 2))
        store.create(row(3, "1", 1, 2, 3, 1))
        revision = store.revision
        result = executor.execute(a.id, b.id)
        assert result.status == ResultStatus.CONFLICT
        assert result.assignment1 is None
        assert store.revision == revision
        assert store.get(a.id) == a
        assert store.get(b.id) == b

    def test_unknown_id(self):
        _, store, _, executor = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        result = executor.execute(a.id, 42)
        assert result.status == ResultStatus.ERROR
        assert not result.ok

    def test_executor_ignores_stale_cache(self):
        """Ein veralteter Cache-Eintrag darf den Tausch nicht erlauben."""
        _, store, validator, executor = make_setup()
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "1", 1, 2, 2, 2))
        stale = SwapCheck(status=ResultStatus.SUCCESS, can_swap=True)
        store.create(row(3, "1", 1, 2, 3, 1))
        validator.cache.put(a.id, b.id, store.revision, stale)
        result = executor.execute(a.id, b.id)
        assert result.status == ResultStatus.CONFLICT

    def test_swap_persists(self, tmp_path):
        directory = make_directory()
        path = tmp_path / "assignments.json"
        store = AssignmentStore(default_time_grid(), path)
        a = store.create(row(1, "1", 1, 1, 1, 1))
        b = store.create(row(1, "2", 1, 1, 2, 2))
        SwapExecutor(SwapValidator(directory, store)).execute(a.id, b.id)

        reloaded = AssignmentStore(default_time_grid(), path)
        assert reloaded.get(a.id).teacher_id == 2
        assert reloaded.get(b.id).teacher_id == 1
