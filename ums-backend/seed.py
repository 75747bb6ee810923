from app_logger import get_logger
from db_manager import COLLECTIONS, DatabaseManager
from models import Attendance, Course, Department, Enrollment, Exam, Grade, Semester, User

logger = get_logger("seed")

SEED_PASSWORD = "pass123"

SEED_USERS = [
    ("TCH001", "teacher1", "teacher", "Dr. John Smith", "john.smith@university.edu", "123-456-7890", "123 University Ave", "CSE"),
    ("TCH002", "teacher2", "teacher", "Prof. Jane Doe", "jane.doe@university.edu", "123-456-7891", "124 University Ave", "MATH"),
    ("STU001", "student1", "student", "Alice Johnson", "alice.j@student.edu", "123-456-7892", "125 Campus St", "CSE"),
    ("STU002", "student2", "student", "Bob Wilson", "bob.w@student.edu", "123-456-7893", "126 Campus St", "CSE"),
    ("STU003", "student3", "student", "Carol Brown", "carol.b@student.edu", "123-456-7894", "127 Campus St", "MATH"),
    ("STU004", "student4", "student", "David Lee", "david.l@student.edu", "123-456-7895", "128 Campus St", "MATH"),
]


def seed_data(db: DatabaseManager) -> bool:
    """
    Replace everything but users with the demo dataset and save it.
    Demo users are added only when their id is not taken yet, so seeding
    twice does not duplicate accounts.
    """
    for model in COLLECTIONS:
        if model is not User:
            db.get_collection(model).clear()

    db.departments.extend([
        Department(dept_id="CSE", name="Computer Science & Engineering", head_of_dept="Dr. Alice Smith",
                   description="Computer Science Department"),
        Department(dept_id="MATH", name="Mathematics", head_of_dept="Dr. Bob Johnson",
                   description="Mathematics Department"),
    ])

    db.semesters.extend([
        Semester(semester_id="FALL2025", name="Fall 2025", start_date="2025-08-15", end_date="2025-12-15",
                 status="active"),
        Semester(semester_id="SPRING2026", name="Spring 2026", start_date="2026-01-15", end_date="2026-05-15",
                 status="upcoming"),
    ])

    for user_id, username, role, name, email, phone, address, dept_id in SEED_USERS:
        if db.find_user_by_id(user_id) or db.find_user(username):
            continue
        db.insert(User.create(user_id, username, SEED_PASSWORD, role, name, email, phone, address, dept_id))

    db.courses.extend([
        Course(course_id="CS101", name="Introduction to Computer Science", teacher_id="TCH001",
               department_id="CSE", semester_id="FALL2025", credits=3, schedule="Mon-Wed-Fri 9:00-10:00",
               max_students=30),
        Course(course_id="MATH201", name="Calculus II", teacher_id="TCH002", department_id="MATH",
               semester_id="FALL2025", credits=4, schedule="Tue-Thu 10:00-11:30", max_students=25),
    ])

    db.exams.extend([
        Exam(exam_id="EX001", course_id="CS101", name="Midterm Exam", date="2025-10-15", time="10:00-12:00",
             exam_type="midterm", total_marks=100),
        Exam(exam_id="EX002", course_id="CS101", name="Final Exam", date="2025-12-10", time="14:00-17:00",
             exam_type="final", total_marks=150),
        Exam(exam_id="EX003", course_id="MATH201", name="Quiz 1", date="2025-09-20", time="10:00-10:30",
             exam_type="quiz", total_marks=25),
    ])

    db.enrollments.extend([
        Enrollment(student_id="STU001", course_id="CS101"),
        Enrollment(student_id="STU002", course_id="CS101"),
        Enrollment(student_id="STU003", course_id="MATH201"),
        Enrollment(student_id="STU004", course_id="MATH201"),
    ])

    db.grades.extend([
        Grade(student_id="STU001", exam_id="EX001", marks_obtained=85, letter_grade="B+", comments="Good work"),
        Grade(student_id="STU002", exam_id="EX001", marks_obtained=92, letter_grade="A+", comments="Excellent"),
        Grade(student_id="STU003", exam_id="EX003", marks_obtained=20, letter_grade="A-", comments="Satisfactory"),
    ])

    db.attendance_records.extend([
        Attendance(student_id="STU001", course_id="CS101", date="2025-08-15", status="present"),
        Attendance(student_id="STU002", course_id="CS101", date="2025-08-15", status="present"),
        Attendance(student_id="STU003", course_id="MATH201", date="2025-08-15", status="absent"),
    ])

    saved = db.save_all_data()
    logger.info(f"[SEED] Test data seeded ({'saved' if saved else 'NOT saved'})")
    return saved
