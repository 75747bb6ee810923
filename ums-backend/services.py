import functools
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel

import integrity
from app_logger import get_logger
from config import BACKUP_DIR
from db_manager import DatabaseManager
from integrity import IntegrityError
from models import (
    ROLES,
    Attendance,
    Course,
    Department,
    Enrollment,
    Exam,
    Grade,
    Semester,
    User,
)
from security import get_password_hash, verify_password

logger = get_logger("services")

SIGNUP_PREFIXES = {"student": "STU", "teacher": "TCH"}
EXAM_PREFIX = "EX"
PROFILE_FIELDS = {"name", "email", "phone", "address"}


class AccessDenied(PermissionError):
    """The acting user's role does not allow the operation"""


def requires_role(*roles: str):
    """Reject calls whose acting user (first argument after self) lacks one of the roles"""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, actor: User, *args, **kwargs):
            if actor is None or actor.role not in roles:
                raise AccessDenied(f"{func.__name__} requires role: {' or '.join(roles)}")
            return func(self, actor, *args, **kwargs)
        return wrapper
    return decorator


# ==================== RESPONSE MODELS ====================

class TranscriptEntry(BaseModel):
    course_id: str
    course_name: str
    credits: int
    grade: str
    status: str


class Transcript(BaseModel):
    student_id: str
    name: str
    email: str
    entries: List[TranscriptEntry]
    total_credits: int
    earned_credits: int


class UniversityService:
    """Role-gated operations over a single DatabaseManager"""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def save(self) -> bool:
        return self.db.save_all_data()

    # ==================== ACCOUNTS ====================

    def signup(self, role: str, username: str, password: str, name: str, email: str,
               phone: str = "", address: str = "", department_id: str = "") -> User:
        """Self registration for students and teachers, the id is allocated here"""
        if role not in SIGNUP_PREFIXES:
            raise IntegrityError("Only students and teachers can sign up")

        new_id = self.db.next_id(User, SIGNUP_PREFIXES[role])
        integrity.ensure_new_user(self.db, new_id, username)
        if department_id:
            integrity.ensure_reference(self.db, Department, department_id)

        user = User.create(new_id, username, password, role, name, email, phone, address, department_id)
        self.db.insert(user)
        logger.info(f"[SIGNUP] {role} registration successful, id {new_id}")
        return user

    def login(self, username: str, password: str) -> Optional[User]:
        user = self.db.find_user(username)
        if user and verify_password(password, user.password_hash):
            logger.info(f"[LOGIN] {username} logged in")
            return user
        logger.info(f"[LOGIN] Invalid credentials for {username}")
        return None

    def change_password(self, actor: User, current_password: str, new_password: str) -> User:
        if not verify_password(current_password, actor.password_hash):
            raise IntegrityError("Current password is incorrect")
        updated = self.db.update(User, actor.id, password_hash=get_password_hash(new_password))
        if updated is None:
            raise IntegrityError("User not found")
        return updated

    def update_profile(self, actor: User, **fields) -> User:
        unknown = set(fields) - PROFILE_FIELDS
        if unknown:
            raise IntegrityError(f"Cannot update: {', '.join(sorted(unknown))}")
        updated = self.db.update(User, actor.id, **fields)
        if updated is None:
            raise IntegrityError("User not found")
        return updated

    def get_profile(self, actor: User) -> User:
        return actor

    # ==================== ADMIN: DEPARTMENTS & SEMESTERS ====================

    @requires_role("admin")
    def create_department(self, actor: User, dept_id: str, name: str, head_of_dept: str = "",
                          description: str = "") -> Department:
        integrity.ensure_new_key(self.db, Department, dept_id)
        department = Department(dept_id=dept_id, name=name, head_of_dept=head_of_dept, description=description)
        return self.db.insert(department)

    @requires_role("admin")
    def delete_department(self, actor: User, dept_id: str) -> bool:
        if not self.db.find_department(dept_id):
            return False
        integrity.ensure_department_unused(self.db, dept_id)
        return self.db.remove(Department, dept_id)

    @requires_role("admin")
    def create_semester(self, actor: User, semester_id: str, name: str, start_date: str, end_date: str,
                        status: str = "upcoming") -> Semester:
        integrity.ensure_new_key(self.db, Semester, semester_id)
        semester = Semester(semester_id=semester_id, name=name, start_date=start_date,
                            end_date=end_date, status=status)
        return self.db.insert(semester)

    @requires_role("admin")
    def update_semester_status(self, actor: User, semester_id: str, status: str) -> Optional[Semester]:
        return self.db.update(Semester, semester_id, status=status)

    @requires_role("admin")
    def delete_semester(self, actor: User, semester_id: str) -> bool:
        if not self.db.find_semester(semester_id):
            return False
        integrity.ensure_semester_unused(self.db, semester_id)
        return self.db.remove(Semester, semester_id)

    # ==================== ADMIN: USERS ====================

    @requires_role("admin")
    def create_user(self, actor: User, role: str, user_id: str, username: str, password: str, name: str,
                    email: str, phone: str = "", address: str = "", department_id: str = "") -> User:
        if role not in ROLES:
            raise IntegrityError(f"Role must be one of {', '.join(ROLES)}")
        integrity.ensure_new_user(self.db, user_id, username)
        if department_id:
            integrity.ensure_reference(self.db, Department, department_id)
        user = User.create(user_id, username, password, role, name, email, phone, address, department_id)
        self.db.insert(user)
        logger.info(f"[CREATE_USER] {role} {user_id} created")
        return user

    @requires_role("admin")
    def delete_user(self, actor: User, user_id: str) -> bool:
        """
        Delete a user account.
        - Teachers still assigned to courses are kept
        - A student's enrollments, grades and attendance go with them
        """
        user = self.db.find_user_by_id(user_id)
        if not user:
            return False
        if user.id == actor.id:
            raise IntegrityError("Cannot delete the logged in user")
        if user.role == "teacher":
            integrity.ensure_teacher_unassigned(self.db, user_id)

        self.db.remove_where(Enrollment, lambda e: e.student_id == user_id)
        self.db.remove_where(Grade, lambda g: g.student_id == user_id)
        self.db.remove_where(Attendance, lambda a: a.student_id == user_id)
        removed = self.db.remove(User, user_id)
        logger.info(f"[DELETE_USER] Deleted {user.role} {user_id}")
        return removed

    # ==================== ADMIN: COURSES ====================

    @requires_role("admin")
    def create_course(self, actor: User, course_id: str, name: str, teacher_id: str, department_id: str,
                      semester_id: str, credits: int, schedule: str, max_students: int) -> Course:
        integrity.ensure_new_key(self.db, Course, course_id)
        integrity.ensure_role(self.db, teacher_id, "teacher")
        integrity.ensure_reference(self.db, Department, department_id)
        integrity.ensure_reference(self.db, Semester, semester_id)

        course = Course(course_id=course_id, name=name, teacher_id=teacher_id, department_id=department_id,
                        semester_id=semester_id, credits=credits, schedule=schedule, max_students=max_students)
        return self.db.insert(course)

    @requires_role("admin")
    def delete_course(self, actor: User, course_id: str) -> bool:
        """Delete a course together with its exams, their grades, enrollments and attendance"""
        if not self.db.find_course(course_id):
            return False

        exam_ids = {e.exam_id for e in self.db.get_course_exams(course_id)}
        grades = self.db.remove_where(Grade, lambda g: g.exam_id in exam_ids)
        self.db.remove_where(Exam, lambda e: e.course_id == course_id)
        enrollments = self.db.remove_where(Enrollment, lambda e: e.course_id == course_id)
        self.db.remove_where(Attendance, lambda a: a.course_id == course_id)
        self.db.remove(Course, course_id)
        logger.info(f"[DELETE_COURSE] {course_id}: removed {len(exam_ids)} exams, {grades} grades, "
                    f"{enrollments} enrollments")
        return True

    @requires_role("admin")
    def get_report(self, actor: User) -> Dict[str, Any]:
        return self.db.get_database_stats()

    @requires_role("admin")
    def backup(self, actor: User, backup_dir: str = BACKUP_DIR) -> str:
        """Flush everything to disk, then copy the data directory"""
        if not self.db.save_all_data():
            raise OSError("Could not save data before backup")
        return self.db.backup_data(backup_dir)

    # ==================== TEACHER ====================

    def _own_course(self, teacher: User, course_id: str) -> Course:
        course = self.db.find_course(course_id)
        if not course:
            raise IntegrityError("Invalid course or not your course")
        integrity.ensure_course_owner(course, teacher)
        return course

    @requires_role("teacher")
    def get_my_courses(self, actor: User) -> List[Course]:
        return self.db.get_teacher_courses(actor.id)

    @requires_role("teacher")
    def create_exam(self, actor: User, course_id: str, name: str, date: str, time: str, exam_type: str,
                    total_marks: int) -> Exam:
        self._own_course(actor, course_id)
        exam_id = self.db.next_id(Exam, EXAM_PREFIX)
        exam = Exam(exam_id=exam_id, course_id=course_id, name=name, date=date, time=time,
                    exam_type=exam_type, total_marks=total_marks)
        self.db.insert(exam)
        logger.info(f"[CREATE_EXAM] {exam_id} created for {course_id}")
        return exam

    @requires_role("teacher")
    def get_course_exams(self, actor: User, course_id: str) -> List[Exam]:
        self._own_course(actor, course_id)
        return self.db.get_course_exams(course_id)

    @requires_role("teacher")
    def delete_exam(self, actor: User, exam_id: str) -> bool:
        """Delete an exam of one of the teacher's courses, with its grades"""
        exam = self.db.find_exam(exam_id)
        if not exam:
            return False
        course = self.db.find_course(exam.course_id)
        if not course or course.teacher_id != actor.id:
            raise AccessDenied("Not authorized to delete this exam")

        self.db.remove_where(Grade, lambda g: g.exam_id == exam_id)
        return self.db.remove(Exam, exam_id)

    @requires_role("teacher")
    def enroll_student(self, actor: User, course_id: str, student_id: str) -> Enrollment:
        self._own_course(actor, course_id)
        integrity.ensure_role(self.db, student_id, "student")
        integrity.ensure_can_enroll(self.db, student_id, course_id)

        enrollment = Enrollment(student_id=student_id, course_id=course_id)
        self.db.insert(enrollment)
        logger.info(f"[ENROLL] {student_id} enrolled in {course_id}")
        return enrollment

    @requires_role("teacher")
    def update_enrollment_status(self, actor: User, course_id: str, student_id: str, status: str,
                                 grade: Optional[str] = None) -> Optional[Enrollment]:
        """Close out an active enrollment as completed or dropped"""
        self._own_course(actor, course_id)
        enrollment = self.db.find_active_enrollment(student_id, course_id)
        if enrollment is None:
            return None
        changes = {"status": status}
        if grade is not None:
            changes["grade"] = grade
        return self.db.update_record(enrollment, **changes)

    @requires_role("teacher")
    def get_course_roster(self, actor: User, course_id: str) -> List[Tuple[User, Enrollment]]:
        self._own_course(actor, course_id)
        return self.db.get_course_roster(course_id)

    @requires_role("teacher")
    def enter_grade(self, actor: User, course_id: str, exam_id: str, student_id: str, marks: int,
                    comments: str = "") -> Tuple[Grade, bool]:
        """
        Enter or re-enter marks for a student's exam.
        Returns the grade and True when it was newly created, False when an
        existing grade for the same student and exam was updated.
        """
        self._own_course(actor, course_id)
        exam = self.db.find_exam(exam_id)
        if not exam:
            raise IntegrityError("Invalid exam ID")
        integrity.ensure_exam_in_course(exam, course_id)
        integrity.ensure_enrolled(self.db, student_id, course_id)
        integrity.ensure_marks_in_range(marks, exam)

        letter = integrity.letter_grade(marks, exam.total_marks)
        existing = self.db.find_grade(student_id, exam_id)
        if existing:
            self.db.update_record(existing, marks_obtained=marks, letter_grade=letter, comments=comments)
            logger.info(f"[GRADE] Updated {student_id}/{exam_id}: {marks} ({letter})")
            return existing, False

        grade = Grade(student_id=student_id, exam_id=exam_id, marks_obtained=marks,
                      letter_grade=letter, comments=comments)
        self.db.insert(grade)
        logger.info(f"[GRADE] Entered {student_id}/{exam_id}: {marks} ({letter})")
        return grade, True

    @requires_role("teacher")
    def get_course_grades(self, actor: User, course_id: str) -> List[Tuple[Exam, Grade]]:
        self._own_course(actor, course_id)
        return self.db.get_course_grades(course_id)

    @requires_role("teacher")
    def mark_attendance(self, actor: User, course_id: str, student_id: str, date: str,
                        status: str) -> Attendance:
        self._own_course(actor, course_id)
        integrity.ensure_enrolled(self.db, student_id, course_id)
        attendance = Attendance(student_id=student_id, course_id=course_id, date=date, status=status)
        return self.db.insert(attendance)

    # ==================== STUDENT ====================

    @requires_role("student")
    def get_enrolled_courses(self, actor: User) -> List[Tuple[Course, Enrollment]]:
        rows = []
        for enrollment in self.db.get_student_enrollments(actor.id):
            course = self.db.find_course(enrollment.course_id)
            if course:
                rows.append((course, enrollment))
        return rows

    @requires_role("student")
    def get_my_grades(self, actor: User) -> List[Tuple[Course, Exam, Grade]]:
        rows = []
        seen = set()
        for course, _ in self.get_enrolled_courses(actor):
            # A re-enrollment lists the course twice
            if course.course_id in seen:
                continue
            seen.add(course.course_id)
            for exam in self.db.get_course_exams(course.course_id):
                grade = self.db.find_grade(actor.id, exam.exam_id)
                if grade:
                    rows.append((course, exam, grade))
        return rows

    @requires_role("student")
    def get_my_attendance(self, actor: User) -> List[Attendance]:
        return self.db.get_student_attendance(actor.id)

    @requires_role("student")
    def get_transcript(self, actor: User) -> Transcript:
        """Credits attempted over every enrollment, earned where a passing grade is recorded"""
        entries = []
        total_credits = 0
        earned_credits = 0

        for course, enrollment in self.get_enrolled_courses(actor):
            entries.append(TranscriptEntry(
                course_id=course.course_id,
                course_name=course.name,
                credits=course.credits,
                grade=enrollment.grade,
                status=enrollment.status,
            ))
            total_credits += course.credits
            if enrollment.grade and enrollment.grade != integrity.FAILING_GRADE:
                earned_credits += course.credits

        return Transcript(
            student_id=actor.id,
            name=actor.name,
            email=actor.email,
            entries=entries,
            total_credits=total_credits,
            earned_credits=earned_credits,
        )
