"""CLI script to seed the backend DB with a small demo data set.
Usage: python scripts/seed_demo.py [--password PASSWORD]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `educatech` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from educatech.database import engine, create_db_and_tables
from educatech import models, repositories, services
from educatech.errors import ConflictError

DEMO_TEACHER = "teacher@educatech.dev"
DEMO_STUDENT = "student@educatech.dev"


def seed(session: Session, password: str = "demo-password") -> dict:
    """Create a teacher, a student, one course with two lessons and an enrollment.

    Running it again reuses the existing demo users and skips anything
    that already exists.
    """
    users = services.UserService(session)
    user_repo = repositories.UserRepository(session)

    def ensure_user(email, role, first_name):
        existing = user_repo.get_by_email(email)
        if existing:
            return existing.id
        return users.create(first_name, "Demo", email, password, role).id

    teacher_id = ensure_user(DEMO_TEACHER, models.Role.TEACHER, "Tina")
    student_id = ensure_user(DEMO_STUDENT, models.Role.STUDENT, "Sam")

    courses = services.CourseService(session)
    found = [c for c in courses.list_by_teacher(teacher_id) if c.title == "Intro to Python"]
    course = found[0] if found else courses.create("Intro to Python", "Variables, loops and functions.", teacher_id)

    lessons = services.LessonService(session)
    created_lessons = 0
    for title, content in (("Variables", "# Variables\nNames bound to values."), ("Loops", "# Loops\n`for` and `while`.")):
        try:
            lessons.create(title, content, course.id)
            created_lessons += 1
        except ConflictError:
            pass

    enrollments = services.EnrollmentService(session)
    try:
        enrollments.enroll(student_id, course.id)
        enrolled = True
    except ConflictError:
        enrolled = False
    return {
        "teacher_id": teacher_id,
        "student_id": student_id,
        "course_id": course.id,
        "lessons_created": created_lessons,
        "enrolled": enrolled,
    }


def main(password: str):
    create_db_and_tables()
    with Session(engine) as session:
        summary = seed(session, password=password)
    print(summary)


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Seed demo users, a course, lessons and an enrollment.')
    parser.add_argument('--password', default='demo-password', help='password for the demo users')
    args = parser.parse_args()
    main(args.password)
