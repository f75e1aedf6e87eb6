"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
validators and mappers. Services perform validation, execute domain
logic, persist aggregates via repositories and return external views.
Failures are raised as `errors.DomainError` subclasses.
"""

from datetime import datetime, timedelta, timezone
import json
import logging
from typing import Optional, Tuple
from passlib.context import CryptContext
import jwt
from sqlmodel import Session
from . import mappers, models, repositories, schemas
from .config import settings
from .errors import ConflictError, InvalidArgumentError, NotFoundError
from .validators import (
    require_positive_id,
    resolve_course,
    resolve_enrollment,
    resolve_lesson,
    resolve_user,
)

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
logger = logging.getLogger("educatech.services")


def _page_bounds(page: int, size: Optional[int]) -> Tuple[int, int, int]:
    """Validate paging parameters and return `(page, size, offset)`."""
    if size is None:
        size = settings.DEFAULT_PAGE_SIZE
    if page is None or page < 0:
        raise InvalidArgumentError(f"Invalid page: {page}")
    if size < 1 or size > settings.MAX_PAGE_SIZE:
        raise InvalidArgumentError(f"Page size must be between 1 and {settings.MAX_PAGE_SIZE}")
    return page, size, page * size


def _log_event(event: str, **fields):
    logger.info("%s %s", event, json.dumps(fields, ensure_ascii=True, default=str))


class AuthService:
    """Credential verification and token issuing."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def authenticate(self, email: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_email(email)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "email": user.email, "role": user.role.value, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class UserService:
    """Registration, profile updates and user lookups."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.course_repo = repositories.CourseRepository(session)
        self.lesson_repo = repositories.LessonRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)

    def create(self, first_name: str, last_name: str, email: str, password: str, role: models.Role = models.Role.STUDENT) -> schemas.UserOut:
        """Create a user with a hashed password.

        Raises `ConflictError` when the email is already registered.
        """
        if self.user_repo.get_by_email(email):
            raise ConflictError(f"A user with email {email} already exists")
        user = models.User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password_hash=PWD_CTX.hash(password),
            role=role,
        )
        saved = self.user_repo.save(user)
        _log_event("user_created", user_id=saved.id, role=saved.role.value)
        return mappers.to_user_out(saved)

    def get(self, user_id: int) -> schemas.UserOut:
        return mappers.to_user_out(resolve_user(self.user_repo, user_id))

    def list_page(self, page: int = 0, size: Optional[int] = None) -> schemas.Page:
        page, size, offset = _page_bounds(page, size)
        items, total = self.user_repo.list_page(offset, size)
        return mappers.to_page(items, mappers.to_user_out, page, size, total)

    def update(self, user_id: int, first_name: str, last_name: str, email: str, password: str, role: models.Role = models.Role.STUDENT) -> schemas.UserOut:
        """Replace every editable field of a user; the password is rehashed.

        A role change is refused with `ConflictError` while the user still
        teaches courses (leaving TEACHER) or holds enrollments (leaving
        STUDENT).
        """
        user = resolve_user(self.user_repo, user_id)
        other = self.user_repo.get_by_email(email)
        if other and other.id != user.id:
            raise ConflictError(f"A user with email {email} already exists")
        if role != user.role:
            self._ensure_role_change_allowed(user, role)
        user.first_name = first_name
        user.last_name = last_name
        user.email = email
        user.password_hash = PWD_CTX.hash(password)
        user.role = role
        return mappers.to_user_out(self.user_repo.save(user))

    def _ensure_role_change_allowed(self, user: models.User, role: models.Role):
        if user.role == models.Role.TEACHER and self.course_repo.list_by_teacher(user.id):
            raise ConflictError(f"User with id: {user.id} still teaches courses and must remain a teacher")
        if user.role == models.Role.STUDENT and self.enrollment_repo.list_by_student(user.id):
            raise ConflictError(f"User with id: {user.id} still holds enrollments and must remain a student")
        logger.info("user_role_changed user_id=%s from=%s to=%s", user.id, user.role.value, role.value)

    def delete(self, user_id: int) -> None:
        """Delete a user and everything it owns.

        The user's enrollments go first, then the lessons and enrollments
        of every course it teaches, then those courses and the user.
        """
        user = resolve_user(self.user_repo, user_id)
        removed_enrollments = self.enrollment_repo.delete_by_student(user.id)
        removed_lessons = 0
        for course in self.course_repo.list_by_teacher(user.id):
            removed_enrollments += self.enrollment_repo.delete_by_course(course.id)
            removed_lessons += self.lesson_repo.delete_by_course(course.id)
        removed_courses = self.course_repo.delete_by_teacher(user.id)
        self.user_repo.delete(user)
        _log_event(
            "user_deleted",
            user_id=user_id,
            enrollments=removed_enrollments,
            lessons=removed_lessons,
            courses=removed_courses,
        )

    def list_by_role(self, role: models.Role):
        return [mappers.to_user_out(u) for u in self.user_repo.list_by_role(role)]

    def get_by_email(self, email: str) -> schemas.UserOut:
        user = self.user_repo.get_by_email(email)
        if not user:
            raise NotFoundError(f"User not found with email: {email}")
        return mappers.to_user_out(user)


class CourseService:
    """Course management; every course is taught by a TEACHER."""
    def __init__(self, session: Session):
        self.session = session
        self.course_repo = repositories.CourseRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.lesson_repo = repositories.LessonRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)

    def create(self, title: str, description: str, teacher_id: int) -> schemas.CourseOut:
        """Create a course after checking the teacher holds the TEACHER role."""
        teacher = resolve_user(self.user_repo, teacher_id, models.Role.TEACHER)
        course = models.Course(title=title, description=description, teacher_id=teacher.id)
        saved = self.course_repo.save(course)
        _log_event("course_created", course_id=saved.id, teacher_id=teacher.id)
        return mappers.to_course_out(saved)

    def get(self, course_id: int) -> schemas.CourseOut:
        return mappers.to_course_out(resolve_course(self.course_repo, course_id))

    def list_page(self, page: int = 0, size: Optional[int] = None) -> schemas.Page:
        page, size, offset = _page_bounds(page, size)
        items, total = self.course_repo.list_page(offset, size)
        return mappers.to_page(items, mappers.to_course_out, page, size, total)

    def update(self, course_id: int, title: str, description: str, teacher_id: int) -> schemas.CourseOut:
        """Replace title, description and teacher of an existing course."""
        require_positive_id(course_id, "course")
        require_positive_id(teacher_id, "teacher")
        course = resolve_course(self.course_repo, course_id)
        teacher = resolve_user(self.user_repo, teacher_id, models.Role.TEACHER)
        course.title = title
        course.description = description
        course.teacher_id = teacher.id
        return mappers.to_course_out(self.course_repo.save(course))

    def assign_teacher(self, course_id: int, teacher_id: int) -> schemas.CourseOut:
        """Hand a course over to another teacher.

        Assigning the teacher the course already has is rejected with
        `ConflictError`.
        """
        require_positive_id(course_id, "course")
        require_positive_id(teacher_id, "teacher")
        course = resolve_course(self.course_repo, course_id)
        teacher = resolve_user(self.user_repo, teacher_id, models.Role.TEACHER)
        if course.teacher_id == teacher.id:
            logger.warning("teacher_reassignment_noop course_id=%s teacher_id=%s", course_id, teacher_id)
            raise ConflictError(f"Teacher with id: {teacher_id} is already assigned to course with id: {course_id}")
        previous = course.teacher_id
        course.teacher_id = teacher.id
        saved = self.course_repo.save(course)
        _log_event("course_teacher_assigned", course_id=course_id, previous_teacher_id=previous, teacher_id=teacher.id)
        return mappers.to_course_out(saved)

    def delete(self, course_id: int) -> None:
        """Delete a course after removing its enrollments and lessons."""
        course = resolve_course(self.course_repo, course_id)
        removed_enrollments = self.enrollment_repo.delete_by_course(course.id)
        removed_lessons = self.lesson_repo.delete_by_course(course.id)
        self.course_repo.delete(course)
        _log_event("course_deleted", course_id=course_id, enrollments=removed_enrollments, lessons=removed_lessons)

    def list_by_teacher(self, teacher_id: int):
        teacher = resolve_user(self.user_repo, teacher_id, models.Role.TEACHER)
        return [mappers.to_course_out(c) for c in self.course_repo.list_by_teacher(teacher.id)]

    def search_by_title(self, keyword: str):
        """Return courses whose title contains `keyword`, ignoring case."""
        if keyword is None or not keyword.strip():
            raise InvalidArgumentError("Title keyword must not be blank")
        return [mappers.to_course_out(c) for c in self.course_repo.search_by_title(keyword.strip())]


class LessonService:
    """Lesson management; titles are unique within a course."""
    def __init__(self, session: Session):
        self.session = session
        self.lesson_repo = repositories.LessonRepository(session)
        self.course_repo = repositories.CourseRepository(session)

    def create(self, title: str, content: str, course_id: int) -> schemas.LessonOut:
        course = resolve_course(self.course_repo, course_id)
        self._ensure_unique_title(title, course.id)
        lesson = models.Lesson(title=title, content=content, course_id=course.id)
        saved = self.lesson_repo.save(lesson)
        _log_event("lesson_created", lesson_id=saved.id, course_id=course.id)
        return mappers.to_lesson_out(saved)

    def get(self, lesson_id: int) -> schemas.LessonOut:
        return mappers.to_lesson_out(resolve_lesson(self.lesson_repo, lesson_id))

    def list_page(self, page: int = 0, size: Optional[int] = None) -> schemas.Page:
        page, size, offset = _page_bounds(page, size)
        items, total = self.lesson_repo.list_page(offset, size)
        return mappers.to_page(items, mappers.to_lesson_out, page, size, total)

    def update(self, lesson_id: int, title: str, content: str, course_id: int) -> schemas.LessonOut:
        """Replace title, content and course of a lesson.

        A lesson may keep its own title; clashing with another lesson of
        the target course raises `ConflictError`.
        """
        require_positive_id(lesson_id, "lesson")
        require_positive_id(course_id, "course")
        lesson = resolve_lesson(self.lesson_repo, lesson_id)
        course = resolve_course(self.course_repo, course_id)
        self._ensure_unique_title(title, course.id, exclude_id=lesson.id)
        lesson.title = title
        lesson.content = content
        lesson.course_id = course.id
        return mappers.to_lesson_out(self.lesson_repo.save(lesson))

    def delete(self, lesson_id: int) -> None:
        lesson = resolve_lesson(self.lesson_repo, lesson_id)
        self.lesson_repo.delete(lesson)
        _log_event("lesson_deleted", lesson_id=lesson_id)

    def list_by_course(self, course_id: int):
        course = resolve_course(self.course_repo, course_id)
        return [mappers.to_lesson_out(lesson) for lesson in self.lesson_repo.list_by_course(course.id)]

    def _ensure_unique_title(self, title: str, course_id: int, exclude_id: Optional[int] = None):
        existing = self.lesson_repo.get_by_title_and_course(title, course_id)
        if existing and existing.id != exclude_id:
            raise ConflictError(f"Lesson with title '{title}' already exists in course with id: {course_id}")


class EnrollmentService:
    """Enroll students into courses and query enrollments.

    A (student, course) pair is either unenrolled or enrolled exactly
    once. The existence check below produces a friendly error; the
    database unique constraint settles concurrent duplicates.
    """
    def __init__(self, session: Session):
        self.session = session
        self.enrollment_repo = repositories.EnrollmentRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.course_repo = repositories.CourseRepository(session)

    def enroll(self, student_id: int, course_id: int) -> schemas.EnrollmentOut:
        """Enroll `student_id` into `course_id`.

        Raises `InvalidArgumentError` for non-positive ids,
        `NotFoundError`/`RoleMismatchError` when the student or course
        cannot be resolved and `ConflictError` when already enrolled.
        """
        require_positive_id(student_id, "student")
        require_positive_id(course_id, "course")
        student = resolve_user(self.user_repo, student_id, models.Role.STUDENT)
        course = resolve_course(self.course_repo, course_id)
        if self.enrollment_repo.get_by_student_and_course(student.id, course.id):
            logger.warning("duplicate_enrollment student_id=%s course_id=%s", student_id, course_id)
            raise ConflictError(f"Student with id: {student_id} has already enrolled in course with id: {course_id}")
        saved = self.enrollment_repo.save(models.Enrollment(student_id=student.id, course_id=course.id))
        _log_event("enrollment_created", enrollment_id=saved.id, student_id=student.id, course_id=course.id)
        return mappers.to_enrollment_out(saved)

    def unenroll(self, enrollment_id: int) -> None:
        enrollment = resolve_enrollment(self.enrollment_repo, enrollment_id)
        self.enrollment_repo.delete(enrollment)
        _log_event("enrollment_deleted", enrollment_id=enrollment_id)

    def get(self, enrollment_id: int) -> schemas.EnrollmentOut:
        return mappers.to_enrollment_out(resolve_enrollment(self.enrollment_repo, enrollment_id))

    def list_page(self, page: int = 0, size: Optional[int] = None) -> schemas.Page:
        page, size, offset = _page_bounds(page, size)
        items, total = self.enrollment_repo.list_page(offset, size)
        return mappers.to_page(items, mappers.to_enrollment_out, page, size, total)

    def get_by_student(self, student_id: int):
        student = resolve_user(self.user_repo, student_id, models.Role.STUDENT)
        return [mappers.to_enrollment_out(e) for e in self.enrollment_repo.list_by_student(student.id)]

    def get_by_course(self, course_id: int):
        course = resolve_course(self.course_repo, course_id)
        return [mappers.to_enrollment_out(e) for e in self.enrollment_repo.list_by_course(course.id)]

    def get_by_student_and_course(self, student_id: int, course_id: int) -> schemas.EnrollmentOut:
        require_positive_id(student_id, "student")
        require_positive_id(course_id, "course")
        student = resolve_user(self.user_repo, student_id, models.Role.STUDENT)
        course = resolve_course(self.course_repo, course_id)
        enrollment = self.enrollment_repo.get_by_student_and_course(student.id, course.id)
        if not enrollment:
            raise NotFoundError(f"Enrollment not found for student id: {student_id} and course id: {course_id}")
        return mappers.to_enrollment_out(enrollment)

    def update(self, enrollment_id: int, student_id: int, course_id: int) -> schemas.EnrollmentOut:
        """Point an enrollment at another student and/or course.

        Student and course are both replaced; the enrollment date is
        kept. Moving onto a pair held by another enrollment raises
        `ConflictError`.
        """
        require_positive_id(enrollment_id, "enrollment")
        require_positive_id(student_id, "student")
        require_positive_id(course_id, "course")
        enrollment = resolve_enrollment(self.enrollment_repo, enrollment_id)
        student = resolve_user(self.user_repo, student_id, models.Role.STUDENT)
        course = resolve_course(self.course_repo, course_id)
        other = self.enrollment_repo.get_by_student_and_course(student.id, course.id)
        if other and other.id != enrollment.id:
            raise ConflictError(f"Student with id: {student_id} has already enrolled in course with id: {course_id}")
        enrollment.student_id = student.id
        enrollment.course_id = course.id
        saved = self.enrollment_repo.save(enrollment)
        _log_event("enrollment_updated", enrollment_id=saved.id, student_id=student.id, course_id=course.id)
        return mappers.to_enrollment_out(saved)
