"""Greedy-Stundenplan-Generator.

Ablauf pro Klassenabteilung:
  1. Fächer mit Rest-Soll, größtes Rest-Soll zuerst (Gleichstand: Fach-ID);
     Fächer mit Regel subject_per_day, die heute noch fehlen, vorab
  2. Slots in fester Reihenfolge (Tag, dann Stunde), Pausen übersprungen
  3. Lehrkraft wählen: qualifiziert, Abteilung passt, frei im Slot;
     Reihenfolge Kontinuität → bereits für das Fach eingesetzt → geringste
     Last in diesem Lauf → ID
  4. Keine freie Lehrkraft: nächstes Fach mit freier Lehrkraft, sonst das
     erste Fach ohne Lehrkraft (teacher_id=None, manuell zu vervollständigen)
  5. Planungsregeln (forbidden, no_consecutive, before_after) sperren ein
     Fach für den Slot; sind alle offenen Fächer gesperrt, bleibt er leer

Der Generator bricht nie wegen eines unlösbaren Slots ab; offene Stunden
landen als UnfilledSlot im Ergebnis. Gleiche Eingabe ergibt denselben Plan.
"""

import logging
import time
from collections import defaultdict
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from config.schema import GenerationConfig, SessionType, TimeGridConfig
from data.assignment_store import AssignmentStore
from models.assignment import Assignment, AssignmentDraft
from models.directory import SchoolDirectory
from models.errors import ConflictError, InvalidRequestError, NotFoundError
from models.results import GenerationResult, ResultStatus, UnfilledSlot
from models.schedule_constraint import ScheduleConstraint
from models.school_class import ClassSection, SchoolClass
from models.subject import Subject
from models.teacher import Teacher
from models.timeslot import TimeSlot, week_slots
from solver.constraints import blocking_rule, is_teacher_free, teacher_problems

logger = logging.getLogger(__name__)


class GenerationFlags(BaseModel):
    auto_assign_teachers: bool = True
    balance_teacher_load: bool = True
    avoid_teacher_conflicts: bool = True     # False: Sperrzeiten ignorieren (nie Doppelbelegung)
    prefer_subject_continuity: bool = True

    @classmethod
    def from_config(cls, config: GenerationConfig) -> "GenerationFlags":
        return cls(**config.model_dump())


class GenerationRequest(BaseModel):
    """Ein Generator-Auftrag.

    Ohne class_id werden alle Klassen des Abteilungstyps erzeugt, ohne
    section alle Abteilungen der Klasse.
    """

    academic_year_id: int = Field(ge=1)
    session_type: SessionType
    class_id: Optional[int] = None
    section: Optional[str] = None
    flags: GenerationFlags = Field(default_factory=GenerationFlags)
    preview_only: bool = True

    @model_validator(mode='after')
    def _section_needs_class(self):
        if self.section is not None and self.class_id is None:
            raise ValueError("section ohne class_id ist nicht eindeutig")
        return self


class _Occupancy:
    """Belegte Zuweisungen fremder Klassenabteilungen, nach Slot indiziert."""

    def __init__(self, rows: list[AssignmentDraft]) -> None:
        self._by_slot: dict[TimeSlot, list[AssignmentDraft]] = defaultdict(list)
        for row in rows:
            self._by_slot[row.slot].append(row)

    def at(self, slot: TimeSlot) -> list[AssignmentDraft]:
        return self._by_slot.get(slot, [])


class ScheduleGenerator:
    """Erzeugt Wochenpläne aus Stammdaten und bestehenden Zuweisungen."""

    def __init__(
        self,
        directory: SchoolDirectory,
        store: AssignmentStore,
        grid: TimeGridConfig,
    ) -> None:
        self.directory = directory
        self.store = store
        self.grid = grid

    # ─── Öffentliche API ───────────────────────────────────────────────────

    def generate(self, request: GenerationRequest) -> GenerationResult:
        """Erzeugt (Vorschau) oder ersetzt (Commit) die Pläne der Ziel-Abteilungen."""
        start = time.time()
        targets = self._resolve_targets(request)
        year, session = request.academic_year_id, request.session_type
        logger.info(
            f"Generiere Stundenplan: {len(targets)} Klassenabteilung(en), "
            f"Jahr {year}, {session.value}, "
            f"{'Vorschau' if request.preview_only else 'speichern'}"
        )

        working_set: list[AssignmentDraft] = []
        saved: list[Assignment] = []
        unfilled: list[UnfilledSlot] = []
        conflicts: list[str] = []
        warnings: list[str] = []
        load: dict[int, int] = defaultdict(int)
        rule_stats: dict[str, int] = defaultdict(int)
        # Vorschau simuliert das schrittweise Ersetzen auf einer Kopie
        simulated: list[AssignmentDraft] = list(self.store.list_by(academic_year_id=year, session_type=session))

        for school_class, cs, subjects in targets:
            if request.preview_only:
                others = [r for r in simulated if r.class_section != cs]
                drafts, gaps = self._build_section(
                    school_class, cs, subjects, others, request.flags, year, load, rule_stats)
                simulated = others + drafts
                working_set.extend(drafts)
                self._count_load(load, drafts)
            else:
                try:
                    with self.store.transaction():
                        others = [
                            r for r in self.store.list_by(academic_year_id=year, session_type=session)
                            if r.class_section != cs
                        ]
                        drafts, gaps = self._build_section(
                            school_class, cs, subjects, others, request.flags, year, load, rule_stats)
                        rows = self.store.replace_class_schedule(cs, year, drafts)
                except ConflictError as exc:
                    logger.warning(f"{cs}: Speichern verworfen – {exc}")
                    conflicts.extend(exc.details or [str(exc)])
                    continue
                saved.extend(rows)
                working_set.extend(drafts)
                self._count_load(load, drafts)

            unfilled.extend(gaps)
            open_count = sum(g.missing_periods for g in gaps)
            if open_count:
                warnings.append(f"{cs}: {open_count} Stunde(n) offen")
                logger.warning(f"{cs}: {open_count} Stunde(n) konnten nicht vollständig belegt werden")

        auto = request.flags.auto_assign_teachers
        filled = sum(1 for d in working_set if d.teacher_id is not None or not auto)
        unfilled_count = sum(g.missing_periods for g in unfilled)
        elapsed = time.time() - start

        if conflicts:
            status = ResultStatus.CONFLICT
        elif unfilled_count:
            status = ResultStatus.PARTIAL
        else:
            status = ResultStatus.SUCCESS

        logger.info(
            f"Generierung beendet in {elapsed:.2f}s: {filled} belegt, "
            f"{unfilled_count} offen, {len(conflicts)} Konflikt(e)"
        )
        return GenerationResult(
            status=status,
            message=f"{filled} Stunden belegt, {unfilled_count} offen",
            conflicts=conflicts,
            preview_only=request.preview_only,
            working_set=working_set,
            assignments=saved,
            unfilled=unfilled,
            filled_count=filled,
            unfilled_count=unfilled_count,
            class_sections=[str(cs) for _, cs, _ in targets],
            warnings=warnings,
            generation_time_seconds=round(elapsed, 3),
            constraint_stats=dict(rule_stats),
        )

    def save_preview(self, working_set: list[AssignmentDraft]) -> GenerationResult:
        """Speichert einen geprüften Vorschau-Plan.

        Jede enthaltene Klassenabteilung wird atomar ersetzt. Verstößt eine
        Zeile gegen Lehrkraft- oder Planungsregeln, oder scheitert das
        Ersetzen, wird nur diese Abteilung verworfen; die anderen bleiben
        gespeichert.
        """
        groups: dict[tuple[int, ClassSection], list[AssignmentDraft]] = {}
        for draft in working_set:
            self._check_references(draft)
            groups.setdefault((draft.academic_year_id, draft.class_section), []).append(draft)

        saved: list[Assignment] = []
        conflicts: list[str] = []
        for (year, cs), drafts in sorted(groups.items(), key=lambda kv: (kv[0][0], kv[0][1].class_id, kv[0][1].section)):
            problems = self._preview_problems(cs, drafts)
            if problems:
                logger.warning(f"{cs}: Vorschau nicht gespeichert – {len(problems)} Regelverstoß/-verstöße")
                conflicts.extend(problems)
                continue
            try:
                saved.extend(self.store.replace_class_schedule(cs, year, drafts))
                logger.info(f"{cs}: {len(drafts)} Zuweisungen gespeichert")
            except ConflictError as exc:
                logger.warning(f"{cs}: Vorschau nicht gespeichert – {exc}")
                conflicts.extend(exc.details or [str(exc)])

        open_count = sum(1 for a in saved if a.teacher_id is None)
        if conflicts:
            status = ResultStatus.CONFLICT
        elif open_count:
            status = ResultStatus.PARTIAL
        else:
            status = ResultStatus.SUCCESS
        return GenerationResult(
            status=status,
            message=f"{len(saved)} Zuweisungen gespeichert",
            conflicts=conflicts,
            preview_only=False,
            assignments=saved,
            filled_count=len(saved) - open_count,
            unfilled_count=open_count,
            class_sections=[str(cs) for (_, cs) in groups],
        )

    # ─── Eingabeprüfung ────────────────────────────────────────────────────

    def _resolve_targets(
        self, request: GenerationRequest
    ) -> list[tuple[SchoolClass, ClassSection, list[Subject]]]:
        if request.class_id is not None:
            school_class = self.directory.get_class(request.class_id)
            if school_class.session_type != request.session_type:
                raise InvalidRequestError(
                    f"{school_class.name} gehört zur Abteilung '{school_class.session_type.value}', "
                    f"nicht '{request.session_type.value}'"
                )
            if request.section is not None and request.section not in school_class.sections:
                raise NotFoundError("Abteilung", f"{school_class.id}/{request.section}")
            classes = [school_class]
        else:
            classes = self.directory.classes_for_session(request.session_type)
            if not classes:
                raise InvalidRequestError(
                    f"Keine Klassen für Abteilung '{request.session_type.value}' vorhanden")

        targets = []
        for school_class in classes:
            subjects = self._subjects_for(school_class)
            for cs in school_class.class_sections():
                if request.section is not None and cs.section != request.section:
                    continue
                targets.append((school_class, cs, subjects))
        targets.sort(key=lambda t: (t[1].class_id, t[1].section))
        return targets

    def _subjects_for(self, school_class: SchoolClass) -> list[Subject]:
        subjects = self.directory.subjects_for_class(school_class.id)
        if not subjects:
            raise InvalidRequestError(f"Für {school_class.name} sind keine aktiven Fächer definiert")
        zero = [s.name for s in subjects if s.weekly_periods <= 0]
        if zero:
            raise InvalidRequestError(
                f"{school_class.name}: Fächer ohne Wochenstunden: {', '.join(zero)}")
        return subjects

    def _check_references(self, draft: AssignmentDraft) -> None:
        school_class = self.directory.get_class(draft.class_id)
        if draft.section not in school_class.sections:
            raise NotFoundError("Abteilung", f"{draft.class_id}/{draft.section}")
        subject = self.directory.get_subject(draft.subject_id)
        if subject.class_id != draft.class_id:
            raise InvalidRequestError(
                f"Fach {subject.name} gehört nicht zu {school_class.name}")
        if draft.teacher_id is not None:
            self.directory.get_teacher(draft.teacher_id)

    def _preview_problems(self, cs: ClassSection, drafts: list[AssignmentDraft]) -> list[str]:
        """Lehrkraft- und Regelverstöße einer Klassenabteilung im Vorschau-Plan."""
        school_class = self.directory.get_class(cs.class_id)
        if cs.session_type != school_class.session_type:
            return [
                f"{cs}: {school_class.name} gehört zur Abteilung "
                f"'{school_class.session_type.value}', nicht '{cs.session_type.value}'"
            ]

        rules = self.directory.rules_for(cs.class_id, cs.session_type)
        subject_at = {d.slot: d.subject_id for d in drafts}
        problems = []
        for d in sorted(drafts, key=lambda d: d.slot):
            label = self.store.grid_label(d.day_of_week, d.period_number)
            teacher = self.directory.find_teacher(d.teacher_id)
            if teacher is not None:
                problems.extend(
                    f"{cs} {label}: {p}"
                    for p in teacher_problems(
                        teacher, d.subject_id, d.session_type, d.day_of_week, d.period_number, label)
                )
            rule = blocking_rule(
                rules, d.subject_id, d.day_of_week, d.period_number,
                subject_before=subject_at.get(TimeSlot(d.day_of_week, d.period_number - 1)),
            )
            if rule is not None:
                problems.append(f"{cs} {label}: verstößt gegen {rule}")
        return problems

    # ─── Kern ──────────────────────────────────────────────────────────────

    def _build_section(
        self,
        school_class: SchoolClass,
        cs: ClassSection,
        subjects: list[Subject],
        others: list[AssignmentDraft],
        flags: GenerationFlags,
        year: int,
        run_load: dict[int, int],
        rule_stats: dict[str, int],
    ) -> tuple[list[AssignmentDraft], list[UnfilledSlot]]:
        """Füllt das Wochenraster einer Klassenabteilung."""
        occupancy = _Occupancy(others)
        rules = self.directory.rules_for(cs.class_id, cs.session_type)
        every_day = {r.subject_id for r in rules if r.constraint_type == "subject_per_day"}
        remaining = {s.id: s.weekly_periods for s in subjects}
        load = dict(run_load)
        placed: dict[TimeSlot, AssignmentDraft] = {}
        used: dict[int, set[int]] = defaultdict(set)     # Fach → eingesetzte Lehrkräfte
        on_day: dict[int, set[int]] = defaultdict(set)   # Tag → platzierte Fächer
        drafts: list[AssignmentDraft] = []
        gaps: list[UnfilledSlot] = []

        for slot in week_slots(self.grid):
            open_subjects = [s for s in subjects if remaining[s.id] > 0]
            if not open_subjects:
                gaps.append(UnfilledSlot(
                    class_id=cs.class_id, section=cs.section,
                    day_of_week=slot.day_of_week, period_number=slot.period_number,
                    reason="no_subject",
                ))
                continue

            candidates = sorted(
                self._allowed(open_subjects, slot, rules, placed, rule_stats),
                key=lambda s: (
                    0 if s.id in every_day and s.id not in on_day[slot.day_of_week] else 1,
                    -remaining[s.id],
                    s.id,
                ),
            )
            if not candidates:
                logger.debug(f"{cs} {slot}: alle offenen Fächer durch Planungsregeln gesperrt")
                gaps.append(UnfilledSlot(
                    class_id=cs.class_id, section=cs.section,
                    day_of_week=slot.day_of_week, period_number=slot.period_number,
                    reason="blocked",
                ))
                continue

            subject, teacher = candidates[0], None
            if flags.auto_assign_teachers:
                for cand in candidates:
                    teacher = self._pick_teacher(cand, slot, cs, occupancy, placed, used, load, flags)
                    if teacher is not None:
                        subject = cand
                        break

            draft = AssignmentDraft(
                academic_year_id=year,
                session_type=cs.session_type,
                class_id=cs.class_id,
                section=cs.section,
                day_of_week=slot.day_of_week,
                period_number=slot.period_number,
                subject_id=subject.id,
                teacher_id=teacher.id if teacher is not None else None,
            )
            drafts.append(draft)
            placed[slot] = draft
            on_day[slot.day_of_week].add(subject.id)
            remaining[subject.id] -= 1

            if teacher is not None:
                used[subject.id].add(teacher.id)
                load[teacher.id] = load.get(teacher.id, 0) + 1
                logger.debug(f"{cs} {slot}: {subject.name} / {teacher.name}")
            elif flags.auto_assign_teachers:
                logger.debug(f"{cs} {slot}: {subject.name} ohne freie Lehrkraft")
                gaps.append(UnfilledSlot(
                    class_id=cs.class_id, section=cs.section, subject_id=subject.id,
                    day_of_week=slot.day_of_week, period_number=slot.period_number,
                    reason="no_teacher",
                ))

        for s in subjects:
            if remaining[s.id] > 0:
                gaps.append(UnfilledSlot(
                    class_id=cs.class_id, section=cs.section, subject_id=s.id,
                    reason="grid_full", missing_periods=remaining[s.id],
                ))
        return drafts, gaps

    @staticmethod
    def _allowed(
        subjects: list[Subject],
        slot: TimeSlot,
        rules: list[ScheduleConstraint],
        placed: dict[TimeSlot, AssignmentDraft],
        rule_stats: dict[str, int],
    ) -> list[Subject]:
        """Fächer, die keine Planungsregel an diesem Slot verbietet."""
        if not rules:
            return subjects
        before = placed.get(TimeSlot(slot.day_of_week, slot.period_number - 1))
        after = placed.get(TimeSlot(slot.day_of_week, slot.period_number + 1))
        allowed = []
        for s in subjects:
            rule = blocking_rule(
                rules, s.id, slot.day_of_week, slot.period_number,
                subject_before=before.subject_id if before is not None else None,
                subject_after=after.subject_id if after is not None else None,
            )
            if rule is None:
                allowed.append(s)
            else:
                rule_stats[rule.constraint_type] += 1
        return allowed

    def _pick_teacher(
        self,
        subject: Subject,
        slot: TimeSlot,
        cs: ClassSection,
        occupancy: _Occupancy,
        placed: dict[TimeSlot, AssignmentDraft],
        used: dict[int, set[int]],
        load: dict[int, int],
        flags: GenerationFlags,
    ) -> Optional[Teacher]:
        busy_here = occupancy.at(slot)
        free = [
            t for t in self.directory.qualified_teachers(subject.id, cs.session_type)
            if is_teacher_free(
                t, slot.day_of_week, slot.period_number, busy_here,
                respect_declared=flags.avoid_teacher_conflicts,
            )
        ]
        if not free:
            return None

        neighbours = [
            placed.get(TimeSlot(slot.day_of_week, slot.period_number + delta))
            for delta in (-1, 1)
        ]

        def rank(teacher: Teacher) -> tuple:
            key = []
            if flags.prefer_subject_continuity:
                adjacent = any(
                    n is not None and n.subject_id == subject.id and n.teacher_id == teacher.id
                    for n in neighbours
                )
                key.append(0 if adjacent else 1)
                key.append(0 if teacher.id in used[subject.id] else 1)
            if flags.balance_teacher_load:
                key.append(load.get(teacher.id, 0))
            key.append(teacher.id)
            return tuple(key)

        return min(free, key=rank)

    @staticmethod
    def _count_load(load: dict[int, int], drafts: list[AssignmentDraft]) -> None:
        for d in drafts:
            if d.teacher_id is not None:
                load[d.teacher_id] += 1
