import os
import shutil
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type

import codec
from app_logger import get_logger
from config import (
    BACKUP_DIR,
    DATA_DIR,
    DEFAULT_ADMIN_EMAIL,
    DEFAULT_ADMIN_ID,
    DEFAULT_ADMIN_NAME,
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_ADMIN_USERNAME,
)
from models import (
    Attendance,
    Course,
    Department,
    Enrollment,
    Exam,
    Grade,
    Record,
    RecordKey,
    Semester,
    User,
)

logger = get_logger("db_manager")

# Record kind -> (attribute holding the collection, backing file name)
COLLECTIONS: Dict[Type[Record], Tuple[str, str]] = {
    User: ("users", "users.csv"),
    Department: ("departments", "departments.csv"),
    Semester: ("semesters", "semesters.csv"),
    Course: ("courses", "courses.csv"),
    Exam: ("exams", "exams.csv"),
    Grade: ("grades", "grades.csv"),
    Enrollment: ("enrollments", "enrollments.csv"),
    Attendance: ("attendance_records", "attendance.csv"),
}


def generate_next_id(prefix: str, existing_ids: Iterable[str]) -> str:
    """
    Next sequential identifier for a prefix, e.g. STU001, STU002, ...
    - Only ids that start with the prefix and carry a purely numeric suffix count
    - The number is zero padded to at least 3 digits, wider numbers are kept whole
    """
    max_num = 0
    for existing in existing_ids:
        if len(existing) <= len(prefix) or not existing.startswith(prefix):
            continue
        suffix = existing[len(prefix):]
        if suffix.isascii() and suffix.isdigit():
            max_num = max(max_num, int(suffix))
    return f"{prefix}{max_num + 1:03d}"


class DatabaseManager:
    """Manages the flat-file record collections of the university"""

    def __init__(self, base_dir: str = DATA_DIR, autoload: bool = True):
        self.base_dir = base_dir
        self.users: List[User] = []
        self.departments: List[Department] = []
        self.semesters: List[Semester] = []
        self.courses: List[Course] = []
        self.exams: List[Exam] = []
        self.grades: List[Grade] = []
        self.enrollments: List[Enrollment] = []
        self.attendance_records: List[Attendance] = []
        self._ensure_directories()
        if autoload:
            self.load_all_data()

    def _ensure_directories(self):
        """Ensure the data directory exists"""
        try:
            os.makedirs(self.base_dir, exist_ok=True)
        except OSError as e:
            logger.error(f"Error creating data directory {self.base_dir}: {e}")

    def get_collection_file(self, model: Type[Record]) -> str:
        return os.path.join(self.base_dir, COLLECTIONS[model][1])

    def get_collection(self, model: Type[Record]) -> List[Any]:
        return getattr(self, COLLECTIONS[model][0])

    # ==================== LOAD & SAVE ====================

    def load_all_data(self):
        for model in COLLECTIONS:
            self.load_collection(model)

    def save_all_data(self) -> bool:
        """Write every collection back to disk, True only if all writes succeeded"""
        results = [self.save_collection(model) for model in COLLECTIONS]
        return all(results)

    def load_collection(self, model: Type[Record]) -> List[Any]:
        """
        Read one collection from its file, in file order.
        - Missing or unreadable file -> empty collection
        - Malformed lines are skipped, the rest still load
        - An empty users collection gets the default administrator
        """
        file_path = self.get_collection_file(model)
        records = []
        skipped = 0

        if os.path.exists(file_path):
            try:
                with open(file_path, "r", encoding="utf-8", newline="") as f:
                    lines = f.read().split(codec.LINE_END)
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"[LOAD] Error reading {file_path}: {e}")
                lines = []

            i = 0
            while i < len(lines):
                if not lines[i].strip():
                    i += 1
                    continue
                end, record = self._read_record(model, lines, i)
                if record is None:
                    skipped += 1
                    logger.warning(f"[LOAD] Skipping malformed line {i + 1} in {file_path}")
                    # A quote that never closes costs only its own line
                    i += 1
                    continue
                records.append(record)
                i = end

        setattr(self, COLLECTIONS[model][0], records)
        logger.debug(f"[LOAD] {model.__name__}: {len(records)} loaded, {skipped} skipped")

        if model is User and not records:
            self._create_default_admin()

        return records

    @staticmethod
    def _read_record(model: Type[Record], lines: List[str], start: int) -> Tuple[int, Optional[Record]]:
        """Decode the record starting at lines[start], joining lines while a quoted field is open"""
        end = start + 1
        open_quote = lines[start].count('"') % 2
        while open_quote and end < len(lines):
            open_quote ^= lines[end].count('"') % 2
            end += 1
        if open_quote:
            return start + 1, None
        text = codec.LINE_END.join(line.rstrip("\r") for line in lines[start:end])
        return end, codec.decode(model, text)

    def save_collection(self, model: Type[Record]) -> bool:
        """Overwrite the collection file with one encoded line per record"""
        file_path = self.get_collection_file(model)
        try:
            os.makedirs(os.path.dirname(file_path) or ".", exist_ok=True)
            with open(file_path, "w", encoding="utf-8", newline="") as f:
                for record in self.get_collection(model):
                    f.write(codec.encode(record) + codec.LINE_END)
        except OSError as e:
            logger.error(f"[SAVE] Error writing {file_path}: {e}")
            return False
        return True

    def _create_default_admin(self):
        admin = User.create(
            DEFAULT_ADMIN_ID,
            DEFAULT_ADMIN_USERNAME,
            DEFAULT_ADMIN_PASSWORD,
            "admin",
            DEFAULT_ADMIN_NAME,
            DEFAULT_ADMIN_EMAIL,
        )
        self.users.append(admin)
        self.save_collection(User)
        logger.info(f"[LOAD] No users found, created default administrator '{DEFAULT_ADMIN_USERNAME}'")

    # ==================== GENERIC RECORD OPERATIONS ====================

    def insert(self, record: Record) -> Record:
        """Append a record; uniqueness is the caller's concern"""
        self.get_collection(type(record)).append(record)
        return record

    def _index_of(self, model: Type[Record], key: RecordKey) -> Optional[int]:
        for index, record in enumerate(self.get_collection(model)):
            if record.key == key:
                return index
        return None

    def find(self, model: Type[Record], key: RecordKey) -> Optional[Any]:
        index = self._index_of(model, key)
        return None if index is None else self.get_collection(model)[index]

    def remove(self, model: Type[Record], key: RecordKey) -> bool:
        """Remove the first record with the key, False if there is none"""
        index = self._index_of(model, key)
        if index is None:
            return False
        del self.get_collection(model)[index]
        return True

    def remove_where(self, model: Type[Record], predicate: Callable[[Any], bool]) -> int:
        """Remove every matching record, returns how many went"""
        records = self.get_collection(model)
        kept = [r for r in records if not predicate(r)]
        removed = len(records) - len(kept)
        records[:] = kept
        return removed

    def update_record(self, record: Record, **changes) -> Record:
        """Apply field changes to a stored record in place.

        The changed record is validated as a whole first, so a bad value leaves
        the record untouched.
        """
        model = type(record)
        unknown = set(changes) - set(model.model_fields)
        if unknown:
            raise ValueError(f"Unknown {model.__name__} fields: {', '.join(sorted(unknown))}")
        validated = model(**{**record.model_dump(), **changes})
        for name in changes:
            setattr(record, name, getattr(validated, name))
        return record

    def update(self, model: Type[Record], key: RecordKey, **changes) -> Optional[Any]:
        """Update the first record with the key, None if there is none"""
        record = self.find(model, key)
        if record is None:
            return None
        return self.update_record(record, **changes)

    def next_id(self, model: Type[Record], prefix: str) -> str:
        existing_ids = [record.key for record in self.get_collection(model)]
        return generate_next_id(prefix, existing_ids)

    # ==================== LOOKUPS ====================

    def find_user(self, username: str) -> Optional[User]:
        """Get user by username"""
        for user in self.users:
            if user.username == username:
                return user
        return None

    def find_user_by_id(self, user_id: str) -> Optional[User]:
        return self.find(User, user_id)

    def find_department(self, dept_id: str) -> Optional[Department]:
        return self.find(Department, dept_id)

    def find_semester(self, semester_id: str) -> Optional[Semester]:
        return self.find(Semester, semester_id)

    def find_course(self, course_id: str) -> Optional[Course]:
        return self.find(Course, course_id)

    def find_exam(self, exam_id: str) -> Optional[Exam]:
        return self.find(Exam, exam_id)

    def find_grade(self, student_id: str, exam_id: str) -> Optional[Grade]:
        return self.find(Grade, (student_id, exam_id))

    def find_active_enrollment(self, student_id: str, course_id: str) -> Optional[Enrollment]:
        for enrollment in self.enrollments:
            if (enrollment.student_id == student_id and enrollment.course_id == course_id
                    and enrollment.status == "enrolled"):
                return enrollment
        return None

    # ==================== DERIVATIONS ====================

    def get_users_by_role(self, role: str) -> List[User]:
        return [u for u in self.users if u.role == role]

    def get_teacher_courses(self, teacher_id: str) -> List[Course]:
        return [c for c in self.courses if c.teacher_id == teacher_id]

    def get_course_exams(self, course_id: str) -> List[Exam]:
        return [e for e in self.exams if e.course_id == course_id]

    def get_course_enrollments(self, course_id: str) -> List[Enrollment]:
        return [e for e in self.enrollments if e.course_id == course_id]

    def get_student_enrollments(self, student_id: str) -> List[Enrollment]:
        return [e for e in self.enrollments if e.student_id == student_id]

    def get_student_grades(self, student_id: str) -> List[Grade]:
        return [g for g in self.grades if g.student_id == student_id]

    def get_student_attendance(self, student_id: str) -> List[Attendance]:
        return [a for a in self.attendance_records if a.student_id == student_id]

    def get_course_roster(self, course_id: str) -> List[Tuple[User, Enrollment]]:
        """Enrolled students of a course with their enrollment, unknown students skipped"""
        roster = []
        for enrollment in self.get_course_enrollments(course_id):
            student = self.find_user_by_id(enrollment.student_id)
            if student:
                roster.append((student, enrollment))
        return roster

    def get_course_grades(self, course_id: str) -> List[Tuple[Exam, Grade]]:
        """Every grade recorded against the course's exams, grouped by exam"""
        rows = []
        for exam in self.get_course_exams(course_id):
            for grade in self.grades:
                if grade.exam_id == exam.exam_id:
                    rows.append((exam, grade))
        return rows

    def is_student_enrolled(self, student_id: str, course_id: str) -> bool:
        """Only status 'enrolled' counts; completed and dropped do not"""
        return self.find_active_enrollment(student_id, course_id) is not None

    def count_active_enrollments(self, course_id: str) -> int:
        return sum(1 for e in self.enrollments if e.course_id == course_id and e.status == "enrolled")

    # ==================== BACKUP & STATISTICS ====================

    def backup_data(self, backup_dir: str = BACKUP_DIR) -> str:
        """Copy the data directory into a timestamped backup folder"""
        if not os.path.isdir(self.base_dir):
            raise ValueError(f"Data directory {self.base_dir} not found")

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        backup_path = os.path.join(backup_dir, f"backup_{timestamp}")
        shutil.copytree(self.base_dir, backup_path)
        logger.info(f"[BACKUP] Data backed up to {backup_path}")
        return backup_path

    def get_database_stats(self) -> Dict[str, Any]:
        """Get overall database statistics"""
        return {
            "total_users": len(self.users),
            "admins": len(self.get_users_by_role("admin")),
            "teachers": len(self.get_users_by_role("teacher")),
            "students": len(self.get_users_by_role("student")),
            "total_departments": len(self.departments),
            "total_semesters": len(self.semesters),
            "total_courses": len(self.courses),
            "total_exams": len(self.exams),
            "total_grades": len(self.grades),
            "total_enrollments": len(self.enrollments),
            "total_attendance_records": len(self.attendance_records),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
