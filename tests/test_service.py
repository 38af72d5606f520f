"""Tests für die SchedulingService-Fassade."""

import pytest

from config.defaults import default_scheduler_config
from config.schema import GenerationConfig, SessionType
from data.assignment_store import AssignmentStore
from models.assignment import AssignmentDraft
from models.directory import SchoolDirectory
from models.errors import ConflictError, InvalidRequestError, NotFoundError
from models.results import ResultStatus
from models.school_class import SchoolClass
from models.subject import Subject
from models.teacher import Teacher
from models.timeslot import TimeSlot
from solver.service import SchedulingService


# ─── Hilfsfunktionen ──────────────────────────────────────────────────────────

def make_directory() -> SchoolDirectory:
    """Klasse 1 (zwei Abteilungen) und Abendklasse 2."""
    subjects = [
        Subject(id=i, name=f"Fach{i}", class_id=1, weekly_periods=5) for i in range(1, 7)
    ] + [Subject(id=20, name="Abendfach", class_id=2, weekly_periods=3)]
    teachers = [
        Teacher(id=100 + i, name=f"Lehrkraft {i}", subject_ids=[i], session_types=[SessionType.MORNING])
        for i in range(1, 7)
    ] + [
        Teacher(id=200, name="Abend-Lehrkraft", subject_ids=[20], session_types=[SessionType.EVENING]),
        Teacher(id=300, name="Springer", subject_ids=[1, 2], unavailable_slots=[(1, 1)]),
    ]
    return SchoolDirectory(
        classes=[
            SchoolClass(id=1, grade=7, name="7. Klasse", sections=["1", "2"]),
            SchoolClass(id=2, grade=9, name="9. Klasse", session_type=SessionType.EVENING),
        ],
        subjects=subjects,
        teachers=teachers,
    )


def make_service(tmp_path, **generation) -> SchedulingService:
    config = default_scheduler_config()
    config.store.data_path = str(tmp_path / "assignments.json")
    if generation:
        config.generation = GenerationConfig(**generation)
    return SchedulingService(config, make_directory())


def draft(class_id, section, day, period, subject_id, teacher_id,
          session=SessionType.MORNING) -> AssignmentDraft:
    return AssignmentDraft(
        academic_year_id=1, session_type=session, class_id=class_id, section=section,
        day_of_week=day, period_number=period, subject_id=subject_id, teacher_id=teacher_id,
    )


# ─── Generierung ──────────────────────────────────────────────────────────────

class TestGenerate:
    def test_defaults_from_config(self, tmp_path):
        service = make_service(tmp_path)
        result = service.generate(class_id=1, section="1")
        assert result.preview_only
        assert all(d.academic_year_id == 1 for d in result.working_set)
        assert all(d.session_type == SessionType.MORNING for d in result.working_set)

    def test_config_flags_used(self, tmp_path):
        service = make_service(tmp_path, auto_assign_teachers=False)
        result = service.generate(class_id=1, section="1")
        assert all(d.teacher_id is None for d in result.working_set)

    def test_flag_override(self, tmp_path):
        service = make_service(tmp_path, auto_assign_teachers=False)
        result = service.generate(class_id=1, section="1", auto_assign_teachers=True)
        assert all(d.teacher_id is not None for d in result.working_set)

    def test_none_override_keeps_config(self, tmp_path):
        service = make_service(tmp_path, auto_assign_teachers=False)
        result = service.generate(class_id=1, section="1", auto_assign_teachers=None)
        assert all(d.teacher_id is None for d in result.working_set)

    def test_unknown_flag(self, tmp_path):
        with pytest.raises(InvalidRequestError, match="turbo"):
            make_service(tmp_path).generate(class_id=1, turbo=True)

    def test_evening_class(self, tmp_path):
        service = make_service(tmp_path)
        result = service.generate(session_type=SessionType.EVENING, preview_only=False)
        assert result.class_sections == ["Klasse 2/1 (evening)"]
        assert {a.teacher_id for a in result.assignments} == {200}
        assert result.status == ResultStatus.PARTIAL

    def test_commit_writes_file(self, tmp_path):
        service = make_service(tmp_path)
        service.generate(class_id=1, preview_only=False)
        assert (tmp_path / "assignments.json").exists()
        reloaded = AssignmentStore(service.grid, tmp_path / "assignments.json")
        assert len(reloaded) == 60

    def test_save_preview(self, tmp_path):
        service = make_service(tmp_path)
        preview = service.generate(class_id=1, section="2")
        result = service.save_preview(preview.working_set)
        assert result.ok
        assert len(service.store.list_by(class_id=1, section="2")) == 30


# ─── Voraussetzungs-Check ─────────────────────────────────────────────────────

class TestPrerequisites:
    def test_ready_class(self, tmp_path):
        report = make_service(tmp_path).check_prerequisites(1)
        assert report.is_valid
        assert len(report.subject_details) == 6

    def test_own_rows_not_counted_as_busy(self, tmp_path):
        service = make_service(tmp_path)
        service.generate(class_id=1, preview_only=False)
        report = service.check_prerequisites(1)
        assert report.is_valid
        assert all(d.is_sufficient for d in report.subject_details)

    def test_session_mismatch(self, tmp_path):
        report = make_service(tmp_path).check_prerequisites(2, session_type=SessionType.MORNING)
        assert not report.is_valid

    def test_unknown_class(self, tmp_path):
        report = make_service(tmp_path).check_prerequisites(99)
        assert not report.is_valid


# ─── Löschen / manuelle Zuweisung ─────────────────────────────────────────────

class TestDeleteAndAssign:
    def test_delete_restores_availability(self, tmp_path):
        service = make_service(tmp_path)
        service.generate(class_id=1, section="1", preview_only=False)
        free_before = service.store.teacher_free_slots(service.directory.get_teacher(101), 1, SessionType.MORNING)
        result = service.delete_class_schedule(1, "1")
        assert result.status == ResultStatus.SUCCESS
        assert result.deleted_count == 30
        assert 101 in result.restored_teacher_ids
        free_after = service.store.teacher_free_slots(service.directory.get_teacher(101), 1, SessionType.MORNING)
        assert len(free_after) == 30
        assert len(free_before) < len(free_after)

    def test_delete_keeps_other_sections(self, tmp_path):
        service = make_service(tmp_path)
        service.generate(class_id=1, preview_only=False)
        service.delete_class_schedule(1, "1")
        assert service.store.list_by(class_id=1, section="1") == []
        assert len(service.store.list_by(class_id=1, section="2")) == 30

    def test_delete_unknown(self, tmp_path):
        service = make_service(tmp_path)
        with pytest.raises(NotFoundError):
            service.delete_class_schedule(99, "1")
        with pytest.raises(NotFoundError):
            service.delete_class_schedule(1, "7")

    def test_assign_teacher(self, tmp_path):
        service = make_service(tmp_path)
        row = service.store.create(draft(1, "1", 1, 2, 1, None))
        updated = service.assign_teacher(row.id, 300)
        assert updated.teacher_id == 300
        assert service.assign_teacher(row.id, None).teacher_id is None

    def test_assign_unqualified(self, tmp_path):
        service = make_service(tmp_path)
        row = service.store.create(draft(1, "1", 1, 2, 3, None))
        with pytest.raises(ConflictError, match="nicht qualifiziert"):
            service.assign_teacher(row.id, 300)

    def test_assign_blocked_slot(self, tmp_path):
        service = make_service(tmp_path)
        row = service.store.create(draft(1, "1", 1, 1, 1, None))
        with pytest.raises(ConflictError, match="gesperrt"):
            service.assign_teacher(row.id, 300)

    def test_assign_busy_teacher(self, tmp_path):
        service = make_service(tmp_path)
        service.store.create(draft(1, "2", 1, 2, 1, 101))
        row = service.store.create(draft(1, "1", 1, 2, 1, None))
        with pytest.raises(ConflictError):
            service.assign_teacher(row.id, 101)
        assert service.store.get(row.id).teacher_id is None

    def test_assign_unknown_teacher(self, tmp_path):
        service = make_service(tmp_path)
        row = service.store.create(draft(1, "1", 1, 2, 1, None))
        with pytest.raises(NotFoundError):
            service.assign_teacher(row.id, 999)


# ─── Tausch / Analyse ─────────────────────────────────────────────────────────

class TestSwapAndAnalysis:
    def test_swap_roundtrip(self, tmp_path):
        service = make_service(tmp_path)
        a = service.store.create(draft(1, "1", 1, 2, 1, 101))
        b = service.store.create(draft(1, "2", 1, 2, 2, 102))
        assert service.validate_swap(a.id, b.id).can_swap
        result = service.execute_swap(a.id, b.id)
        assert result.status == ResultStatus.SUCCESS
        assert service.store.get(a.id).teacher_id == 102

    def test_generated_plan_is_conflict_free(self, tmp_path):
        service = make_service(tmp_path)
        service.generate(class_id=1, preview_only=False)
        report = service.list_conflicts()
        assert report.errors == []
        assert report.checked_assignments == 60

    def test_suggest_for_open_slot(self, tmp_path):
        service = make_service(tmp_path)
        row = service.store.create(draft(1, "1", 1, 2, 1, None))
        candidates = service.suggest_teachers(row.id)
        assert [c.teacher_id for c in candidates] == [101, 300]

    def test_class_grid(self, tmp_path):
        service = make_service(tmp_path)
        service.generate(class_id=1, section="1", preview_only=False)
        grid = service.class_grid(1, "1")
        assert len(grid) == 30
        assert grid[TimeSlot(1, 1)].section == "1"

    def test_class_grid_unknown_section(self, tmp_path):
        with pytest.raises(NotFoundError):
            make_service(tmp_path).class_grid(1, "9")
