"""
Cross-entity checks run before every mutation.

The DatabaseManager stores whatever it is handed; these helpers are where
duplicate keys, dangling references, double enrollment and out-of-range
marks get rejected. Each check raises IntegrityError and changes nothing.
"""

from typing import Type

from db_manager import DatabaseManager
from models import Course, Exam, Record, User

# (lower bound percentage, letter), highest band first
GRADE_LADDER = [
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "B-"),
    (60, "C+"),
    (55, "C"),
    (50, "C-"),
]
FAILING_GRADE = "F"


class IntegrityError(ValueError):
    """A mutation would break referential or value constraints"""


def letter_grade(marks: int, total_marks: int) -> str:
    """Map marks out of total to a letter grade, lower band bounds inclusive"""
    if total_marks <= 0:
        raise IntegrityError("Total marks must be positive")
    for threshold, letter in GRADE_LADDER:
        # marks / total * 100 >= threshold, in integers
        if marks * 100 >= threshold * total_marks:
            return letter
    return FAILING_GRADE


def ensure_new_user(db: DatabaseManager, user_id: str, username: str):
    if db.find_user_by_id(user_id):
        raise IntegrityError("User ID already exists")
    if db.find_user(username):
        raise IntegrityError("Username already exists")


def ensure_new_key(db: DatabaseManager, model: Type[Record], key: str):
    if db.find(model, key) is not None:
        raise IntegrityError(f"{model.__name__} ID already exists")


def ensure_role(db: DatabaseManager, user_id: str, role: str) -> User:
    user = db.find_user_by_id(user_id)
    if not user or user.role != role:
        raise IntegrityError(f"Invalid {role} ID")
    return user


def ensure_reference(db: DatabaseManager, model: Type[Record], key: str):
    """
    Validate a Department/Semester reference.
    - Blank is fine only while nothing of that kind exists yet
    - Otherwise the key must name an existing record
    """
    if not key and not db.get_collection(model):
        return
    if db.find(model, key) is None:
        raise IntegrityError(f"Invalid {model.__name__.lower()} ID")


def ensure_can_enroll(db: DatabaseManager, student_id: str, course_id: str):
    course = db.find_course(course_id)
    if not course:
        raise IntegrityError("Course not found")
    if db.is_student_enrolled(student_id, course_id):
        raise IntegrityError("Student already enrolled")
    if course.max_students and db.count_active_enrollments(course_id) >= course.max_students:
        raise IntegrityError("Course is full")


def ensure_marks_in_range(marks: int, exam: Exam):
    if marks < 0 or marks > exam.total_marks:
        raise IntegrityError(f"Invalid marks! Must be between 0 and {exam.total_marks}")


def ensure_exam_in_course(exam: Exam, course_id: str):
    if exam.course_id != course_id:
        raise IntegrityError("Invalid exam ID")


def ensure_enrolled(db: DatabaseManager, student_id: str, course_id: str):
    if not db.is_student_enrolled(student_id, course_id):
        raise IntegrityError("Student not enrolled in this course")


# ==================== DELETE POLICY ====================

def ensure_department_unused(db: DatabaseManager, dept_id: str):
    if any(u.department_id == dept_id for u in db.users):
        raise IntegrityError("Department still has users assigned")
    if any(c.department_id == dept_id for c in db.courses):
        raise IntegrityError("Department still has courses")


def ensure_semester_unused(db: DatabaseManager, semester_id: str):
    if any(c.semester_id == semester_id for c in db.courses):
        raise IntegrityError("Semester still has courses")


def ensure_teacher_unassigned(db: DatabaseManager, teacher_id: str):
    if db.get_teacher_courses(teacher_id):
        raise IntegrityError("Teacher is still assigned to courses")


def ensure_course_owner(course: Course, teacher: User):
    if course.teacher_id != teacher.id:
        raise IntegrityError("Invalid course or not your course")

