"""
Record types for the University Management System.

Each pydantic model is one entity kind held by the DatabaseManager. Field
declaration order is the column order of the flat-text files, so do not
reorder fields.
"""

import time
from typing import ClassVar, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from security import get_password_hash

ROLES = ["admin", "teacher", "student"]
SEMESTER_STATUSES = ["active", "completed", "upcoming"]
EXAM_TYPES = ["midterm", "final", "quiz", "assignment"]
ENROLLMENT_STATUSES = ["enrolled", "completed", "dropped"]
ATTENDANCE_STATUSES = ["present", "absent", "late"]

RecordKey = Union[str, Tuple[str, ...]]


def _check_choice(value: str, choices, label: str) -> str:
    if value not in choices:
        raise ValueError(f"{label} must be one of {', '.join(choices)}")
    return value


def _check_digits(value, label: str):
    # Base-10 digits only, so "1_0", "3.0" and " 3" are rejected
    if isinstance(value, str) and not (value.isascii() and value.isdigit()):
        raise ValueError(f"{label} must be a base-10 integer")
    return value


class Record(BaseModel):
    """Base for all stored records"""

    model_config = ConfigDict(validate_assignment=True)

    KEY_FIELDS: ClassVar[Tuple[str, ...]] = ()

    @property
    def key(self) -> RecordKey:
        if not self.KEY_FIELDS:
            raise TypeError(f"{type(self).__name__} records have no key")
        values = tuple(getattr(self, name) for name in self.KEY_FIELDS)
        return values[0] if len(values) == 1 else values


class User(Record):
    KEY_FIELDS: ClassVar[Tuple[str, ...]] = ("id",)

    id: str
    username: str
    password_hash: str
    role: str
    name: str
    email: str
    phone: str = ""
    address: str = ""
    department_id: str = ""
    date_joined: str = ""

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        return _check_choice(v, ROLES, "Role")

    @field_validator("date_joined")
    @classmethod
    def validate_date_joined(cls, v):
        # Epoch seconds as text, empty when unknown
        if v and not (v.isascii() and v.isdigit()):
            raise ValueError("date_joined must be epoch seconds")
        return v

    @classmethod
    def create(cls, id: str, username: str, password: str, role: str, name: str, email: str,
               phone: str = "", address: str = "", department_id: str = "") -> "User":
        """Build a user from a plaintext password, stamping the join time"""
        return cls(
            id=id,
            username=username,
            password_hash=get_password_hash(password),
            role=role,
            name=name,
            email=email,
            phone=phone,
            address=address,
            department_id=department_id,
            date_joined=str(int(time.time())),
        )


class Department(Record):
    KEY_FIELDS: ClassVar[Tuple[str, ...]] = ("dept_id",)

    dept_id: str
    name: str
    head_of_dept: str = ""
    description: str = ""


class Semester(Record):
    KEY_FIELDS: ClassVar[Tuple[str, ...]] = ("semester_id",)

    semester_id: str
    name: str
    start_date: str
    end_date: str
    status: str = "upcoming"

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_choice(v, SEMESTER_STATUSES, "Semester status")


class Course(Record):
    KEY_FIELDS: ClassVar[Tuple[str, ...]] = ("course_id",)

    course_id: str
    name: str
    teacher_id: str
    department_id: str = ""
    semester_id: str = ""
    credits: int = Field(0, ge=0)
    schedule: str = ""  # e.g. "Mon-Wed-Fri 9:00-10:00"
    max_students: int = Field(0, ge=0)

    @field_validator("credits", "max_students", mode="before")
    @classmethod
    def validate_counts(cls, v):
        return _check_digits(v, "Credits and max students")


class Exam(Record):
    KEY_FIELDS: ClassVar[Tuple[str, ...]] = ("exam_id",)

    exam_id: str
    course_id: str
    name: str
    date: str
    time: str
    exam_type: str
    total_marks: int = Field(..., gt=0)

    @field_validator("exam_type")
    @classmethod
    def validate_exam_type(cls, v):
        return _check_choice(v, EXAM_TYPES, "Exam type")

    @field_validator("total_marks", mode="before")
    @classmethod
    def validate_total_marks(cls, v):
        return _check_digits(v, "Total marks")


class Grade(Record):
    KEY_FIELDS: ClassVar[Tuple[str, ...]] = ("student_id", "exam_id")

    student_id: str
    exam_id: str
    marks_obtained: int = Field(..., ge=0)
    letter_grade: str
    comments: str = ""

    @field_validator("marks_obtained", mode="before")
    @classmethod
    def validate_marks(cls, v):
        return _check_digits(v, "Marks")


class Enrollment(Record):
    KEY_FIELDS: ClassVar[Tuple[str, ...]] = ("student_id", "course_id")

    student_id: str
    course_id: str
    grade: str = ""
    status: str = "enrolled"

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_choice(v, ENROLLMENT_STATUSES, "Enrollment status")


class Attendance(Record):
    # Append-only log, no key
    student_id: str
    course_id: str
    date: str
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _check_choice(v, ATTENDANCE_STATUSES, "Attendance status")
