"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
courses, lessons, enrollments). Repositories return SQLModel objects
and perform commits/refreshes where appropriate. A unique constraint
violated on commit is rolled back and reported as `ConflictError`.
"""

import logging
from typing import List, Optional, Tuple
from sqlmodel import Session, select
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from . import models
from .errors import ConflictError

logger = logging.getLogger("educatech.repositories")

# SQLSTATE for unique_violation (PostgreSQL drivers expose it as `pgcode`)
UNIQUE_VIOLATION_SQLSTATE = "23505"


def _is_unique_violation(exc: IntegrityError) -> bool:
    """Tell unique-constraint failures apart from NOT NULL / foreign key ones."""
    if getattr(exc.orig, "pgcode", None) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    # SQLite: "UNIQUE constraint failed: ...", MySQL: "Duplicate entry ..."
    message = str(exc.orig).lower()
    return "unique constraint" in message or "duplicate entry" in message


class _Repository:
    """Shared CRUD helpers. Subclasses set `model`."""
    model = None
    conflict_message = "resource violates a uniqueness constraint"

    def __init__(self, session: Session):
        self.session = session

    def get(self, obj_id: int):
        """Fetch a row by primary key or `None`."""
        return self.session.get(self.model, obj_id)

    def save(self, obj):
        """Insert or update `obj` and return the refreshed instance."""
        self.session.add(obj)
        self._commit()
        self.session.refresh(obj)
        return obj

    def delete(self, obj) -> None:
        """Delete `obj` together with any dependents staged before it."""
        self.session.delete(obj)
        self._commit()

    def list_page(self, offset: int, limit: int) -> Tuple[list, int]:
        """Return one page of rows ordered by id plus the total row count."""
        stmt = select(self.model).order_by(self.model.id).offset(offset).limit(limit)
        items = self.session.exec(stmt).all()
        total = self.session.exec(select(func.count()).select_from(self.model)).one()
        return items, total

    def _commit(self):
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if not _is_unique_violation(exc):
                logger.error("integrity_error table=%s: %s", self.model.__tablename__, exc.orig)
                raise
            logger.warning("unique_violation table=%s: %s", self.model.__tablename__, exc.orig)
            raise ConflictError(self.conflict_message) from exc

    def _stage_delete(self, rows) -> int:
        # deletes are flushed but not committed; the parent delete commits them
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)


class UserRepository(_Repository):
    """CRUD operations for `User` objects."""
    model = models.User
    conflict_message = "a user with this email already exists"

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email (case-insensitive) or `None` if not found."""
        stmt = select(models.User).where(func.lower(models.User.email) == email.lower())
        return self.session.exec(stmt).first()

    def list_by_role(self, role: models.Role) -> List[models.User]:
        """Return every user holding `role`."""
        stmt = select(models.User).where(models.User.role == role).order_by(models.User.id)
        return self.session.exec(stmt).all()


class CourseRepository(_Repository):
    """CRUD operations and lookups for `Course` records."""
    model = models.Course

    def list_by_teacher(self, teacher_id: int) -> List[models.Course]:
        """Return all courses taught by `teacher_id`."""
        stmt = select(models.Course).where(models.Course.teacher_id == teacher_id).order_by(models.Course.id)
        return self.session.exec(stmt).all()

    def search_by_title(self, keyword: str) -> List[models.Course]:
        """Case-insensitive substring search on the course title."""
        escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        stmt = select(models.Course).where(
            models.Course.title.ilike(f"%{escaped}%", escape="\\")
        ).order_by(models.Course.id)
        return self.session.exec(stmt).all()

    def delete_by_teacher(self, teacher_id: int) -> int:
        """Stage deletion of every course taught by `teacher_id`.

        Lessons and enrollments of those courses must be staged first.
        """
        return self._stage_delete(self.list_by_teacher(teacher_id))


class LessonRepository(_Repository):
    """CRUD operations for `Lesson` records."""
    model = models.Lesson
    conflict_message = "a lesson with this title already exists in the course"

    def list_by_course(self, course_id: int) -> List[models.Lesson]:
        """Return the lessons of a course in creation order."""
        stmt = select(models.Lesson).where(models.Lesson.course_id == course_id).order_by(models.Lesson.id)
        return self.session.exec(stmt).all()

    def get_by_title_and_course(self, title: str, course_id: int) -> Optional[models.Lesson]:
        """Return the lesson titled `title` in `course_id` or `None`."""
        stmt = select(models.Lesson).where(
            models.Lesson.title == title,
            models.Lesson.course_id == course_id
        )
        return self.session.exec(stmt).first()

    def delete_by_course(self, course_id: int) -> int:
        """Stage deletion of every lesson in `course_id`."""
        return self._stage_delete(self.list_by_course(course_id))


class EnrollmentRepository(_Repository):
    """CRUD operations and lookups for `Enrollment` records."""
    model = models.Enrollment
    conflict_message = "student is already enrolled in this course"

    def get_by_student_and_course(self, student_id: int, course_id: int) -> Optional[models.Enrollment]:
        """Return the enrollment for the (student, course) pair or `None`."""
        stmt = select(models.Enrollment).where(
            models.Enrollment.student_id == student_id,
            models.Enrollment.course_id == course_id
        )
        return self.session.exec(stmt).first()

    def list_by_student(self, student_id: int) -> List[models.Enrollment]:
        """Return all enrollments held by `student_id`."""
        stmt = select(models.Enrollment).where(models.Enrollment.student_id == student_id).order_by(models.Enrollment.id)
        return self.session.exec(stmt).all()

    def list_by_course(self, course_id: int) -> List[models.Enrollment]:
        """Return all enrollments of `course_id`."""
        stmt = select(models.Enrollment).where(models.Enrollment.course_id == course_id).order_by(models.Enrollment.id)
        return self.session.exec(stmt).all()

    def delete_by_student(self, student_id: int) -> int:
        """Stage deletion of every enrollment held by `student_id`."""
        return self._stage_delete(self.list_by_student(student_id))

    def delete_by_course(self, course_id: int) -> int:
        """Stage deletion of every enrollment of `course_id`."""
        return self._stage_delete(self.list_by_course(course_id))
