from models.teacher import Teacher
from models.school_class import SchoolClass, ClassSection
from models.subject import Subject
from models.timeslot import TimeSlot, week_slots
from models.assignment import Assignment, AssignmentDraft
from models.directory import SchoolDirectory, PrerequisiteReport
from models.schedule_constraint import ScheduleConstraint
from models.errors import (
    SchedulingError,
    NotFoundError,
    ConflictError,
    InvalidRequestError,
    TransactionFailure,
)

__all__ = [
    "Teacher",
    "SchoolClass",
    "ClassSection",
    "Subject",
    "TimeSlot",
    "week_slots",
    "Assignment",
    "AssignmentDraft",
    "SchoolDirectory",
    "PrerequisiteReport",
    "ScheduleConstraint",
    "SchedulingError",
    "NotFoundError",
    "ConflictError",
    "InvalidRequestError",
    "TransactionFailure",
]
