import os

import pytest
from pydantic import ValidationError

from db_manager import DatabaseManager, generate_next_id
from models import Attendance, Course, Department, Enrollment, Exam, Grade, Semester, User
from security import verify_password


# ==================== ID ALLOCATION ====================

def test_next_id_after_highest():
    assert generate_next_id("STU", {"STU001", "STU003"}) == "STU004"


def test_next_id_starts_at_one():
    assert generate_next_id("EX", []) == "EX001"


def test_next_id_ignores_other_prefixes_and_non_numeric_suffixes():
    ids = ["TCH009", "STUabc", "STU", "STU00x", "STU002", "admin001"]
    assert generate_next_id("STU", ids) == "STU003"


def test_next_id_grows_past_three_digits():
    assert generate_next_id("STU", ["STU999"]) == "STU1000"
    assert generate_next_id("STU", ["STU1000", "STU0042"]) == "STU1001"


def test_next_id_is_never_taken():
    ids = ["STU001", "STU002", "STU010", "STU7"]
    assert generate_next_id("STU", ids) not in ids


def test_manager_next_id_uses_current_collection(seeded_db):
    assert seeded_db.next_id(Exam, "EX") == "EX004"
    assert seeded_db.next_id(User, "STU") == "STU005"
    assert seeded_db.next_id(User, "TCH") == "TCH003"


# ==================== LOAD & SAVE ====================

def test_empty_store_gets_default_admin(db, data_dir):
    assert len(db.users) == 1
    admin = db.users[0]
    assert admin.id == "admin001"
    assert admin.username == "admin"
    assert admin.role == "admin"
    assert verify_password("admin123", admin.password_hash)
    assert os.path.exists(os.path.join(data_dir, "users.csv"))

    for collection in (db.departments, db.semesters, db.courses, db.exams, db.grades, db.enrollments,
                       db.attendance_records):
        assert collection == []


def test_reload_does_not_add_second_admin(db, data_dir):
    reloaded = DatabaseManager(base_dir=data_dir)
    assert [u.username for u in reloaded.users] == ["admin"]
    assert reloaded.users[0] == db.users[0]


def test_save_and_load_keep_order(seeded_db, data_dir):
    seeded_db.insert(Department(dept_id="PHY", name="Physics, Applied", head_of_dept="Dr. Curie",
                                description="Labs, lectures and seminars"))
    assert seeded_db.save_all_data()

    reloaded = DatabaseManager(base_dir=data_dir)
    assert reloaded.users == seeded_db.users
    assert reloaded.departments == seeded_db.departments
    assert reloaded.semesters == seeded_db.semesters
    assert reloaded.courses == seeded_db.courses
    assert reloaded.exams == seeded_db.exams
    assert reloaded.grades == seeded_db.grades
    assert reloaded.enrollments == seeded_db.enrollments
    assert reloaded.attendance_records == seeded_db.attendance_records
    assert reloaded.departments[-1].name == "Physics, Applied"


def test_malformed_lines_are_skipped(data_dir):
    os.makedirs(data_dir, exist_ok=True)
    with open(os.path.join(data_dir, "courses.csv"), "w", encoding="utf-8") as f:
        f.write("CS101,Intro,TCH001,CSE,FALL2025,3,Mon,30\n")
        f.write("broken line\n")
        f.write("\n")
        f.write("CS102,Data Structures,TCH001,CSE,FALL2025,x,Tue,30\n")
        f.write("CS103,Algorithms,TCH001,CSE,FALL2025,4,Wed,20\n")

    db = DatabaseManager(base_dir=data_dir)
    assert [c.course_id for c in db.courses] == ["CS101", "CS103"]


def test_unterminated_quote_costs_only_its_own_line(data_dir):
    os.makedirs(data_dir, exist_ok=True)
    with open(os.path.join(data_dir, "courses.csv"), "w", encoding="utf-8") as f:
        f.write("CS101,Intro,TCH001,CSE,FALL2025,3,Mon,30\n")
        f.write('CS102,"Data Structures,TCH001,CSE,FALL2025,3,Tue,30\n')
        f.write("CS103,Algorithms,TCH001,CSE,FALL2025,4,Wed,20\n")
        f.write("CS104,Databases,TCH002,CSE,FALL2025,3,Thu,25\n")

    db = DatabaseManager(base_dir=data_dir)
    assert [c.course_id for c in db.courses] == ["CS101", "CS103", "CS104"]

    assert db.save_all_data()
    reloaded = DatabaseManager(base_dir=data_dir)
    assert [c.course_id for c in reloaded.courses] == ["CS101", "CS103", "CS104"]


def test_quoted_field_spanning_lines_loads(data_dir):
    os.makedirs(data_dir, exist_ok=True)
    with open(os.path.join(data_dir, "grades.csv"), "w", encoding="utf-8") as f:
        f.write('STU001,EX001,85,B+,"Good work,\nshow more steps"\n')
        f.write("STU002,EX001,92,A+,Excellent\n")

    db = DatabaseManager(base_dir=data_dir)
    assert [g.comments for g in db.grades] == ["Good work,\nshow more steps", "Excellent"]


def test_save_failure_is_reported(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    db = DatabaseManager(base_dir=str(blocker / "data"))
    assert [u.username for u in db.users] == ["admin"]
    assert db.save_all_data() is False


# ==================== RECORD OPERATIONS ====================

def test_insert_does_not_enforce_uniqueness(db):
    db.insert(Department(dept_id="CSE", name="First"))
    db.insert(Department(dept_id="CSE", name="Second"))
    assert len(db.departments) == 2
    assert db.find_department("CSE").name == "First"


def test_remove_first_match_only(db):
    db.insert(Department(dept_id="CSE", name="First"))
    db.insert(Department(dept_id="CSE", name="Second"))
    assert db.remove(Department, "CSE")
    assert [d.name for d in db.departments] == ["Second"]


def test_remove_missing_key(db):
    assert db.remove(Course, "NOPE") is False


def test_remove_where(seeded_db):
    removed = seeded_db.remove_where(Enrollment, lambda e: e.course_id == "CS101")
    assert removed == 2
    assert all(e.course_id != "CS101" for e in seeded_db.enrollments)


def test_update_in_place(seeded_db):
    semester = seeded_db.find_semester("SPRING2026")
    updated = seeded_db.update(Semester, "SPRING2026", status="active")
    assert updated is semester
    assert seeded_db.find_semester("SPRING2026").status == "active"


def test_update_missing_key(db):
    assert db.update(Semester, "NOPE", status="active") is None


def test_update_with_invalid_value_leaves_record_unchanged(seeded_db):
    with pytest.raises(ValidationError):
        seeded_db.update(Semester, "FALL2025", name="Autumn", status="paused")
    semester = seeded_db.find_semester("FALL2025")
    assert semester.status == "active"
    assert semester.name == "Fall 2025"


def test_update_unknown_field(seeded_db):
    with pytest.raises(ValueError):
        seeded_db.update(Course, "CS101", room="B12")


def test_composite_key_lookup(seeded_db):
    grade = seeded_db.find_grade("STU001", "EX001")
    assert grade.marks_obtained == 85
    assert seeded_db.find(Grade, ("STU001", "EX001")) is grade
    assert seeded_db.find_grade("STU001", "EX002") is None


# ==================== QUERIES ====================

def test_find_user_by_username_and_id(seeded_db):
    assert seeded_db.find_user("teacher1").id == "TCH001"
    assert seeded_db.find_user_by_id("STU002").username == "student2"
    assert seeded_db.find_user("nobody") is None


def test_derivations_preserve_order(seeded_db):
    assert [c.course_id for c in seeded_db.get_teacher_courses("TCH001")] == ["CS101"]
    assert [e.exam_id for e in seeded_db.get_course_exams("CS101")] == ["EX001", "EX002"]
    assert [e.course_id for e in seeded_db.get_student_enrollments("STU003")] == ["MATH201"]
    assert [g.exam_id for g in seeded_db.get_student_grades("STU001")] == ["EX001"]
    assert [a.date for a in seeded_db.get_student_attendance("STU003")] == ["2025-08-15"]
    assert seeded_db.get_course_exams("NOPE") == []


def test_derivations_do_not_deduplicate(seeded_db):
    seeded_db.insert(Attendance(student_id="STU001", course_id="CS101", date="2025-08-15", status="present"))
    assert len(seeded_db.get_student_attendance("STU001")) == 2


def test_is_student_enrolled_counts_only_active(seeded_db):
    assert seeded_db.is_student_enrolled("STU001", "CS101")
    assert not seeded_db.is_student_enrolled("STU001", "MATH201")

    seeded_db.find_active_enrollment("STU001", "CS101").status = "completed"
    assert not seeded_db.is_student_enrolled("STU001", "CS101")


def test_course_roster_skips_unknown_students(seeded_db):
    seeded_db.insert(Enrollment(student_id="STU999", course_id="CS101"))
    roster = seeded_db.get_course_roster("CS101")
    assert [(u.id, e.status) for u, e in roster] == [("STU001", "enrolled"), ("STU002", "enrolled")]


def test_course_grades(seeded_db):
    rows = seeded_db.get_course_grades("CS101")
    assert [(exam.exam_id, grade.student_id) for exam, grade in rows] == [("EX001", "STU001"), ("EX001", "STU002")]


def test_users_by_role(seeded_db):
    assert len(seeded_db.get_users_by_role("student")) == 4
    assert len(seeded_db.get_users_by_role("teacher")) == 2


# ==================== BACKUP & STATS ====================

def test_backup_copies_the_files(seeded_db, tmp_path):
    path = seeded_db.backup_data(str(tmp_path / "backups"))
    assert sorted(os.listdir(path)) == sorted(os.listdir(seeded_db.base_dir))


def test_database_stats(seeded_db):
    stats = seeded_db.get_database_stats()
    assert stats["total_users"] == 7
    assert stats["admins"] == 1
    assert stats["teachers"] == 2
    assert stats["students"] == 4
    assert stats["total_courses"] == 2
    assert stats["total_exams"] == 3
    assert stats["total_grades"] == 3
    assert stats["total_enrollments"] == 4
    assert stats["total_attendance_records"] == 3
    assert "timestamp" in stats
