"""Precondition checks shared by the services.

These are plain functions: given a claimed id (and optionally the role
the referenced user must hold) they either return the resolved entity
or raise a domain error. Id checks run before any repository access.
"""

from typing import Optional
from . import models, repositories
from .errors import InvalidArgumentError, NotFoundError, RoleMismatchError

# primary keys are signed 64-bit integers
MAX_ID = 2 ** 63 - 1


def require_positive_id(value: Optional[int], label: str) -> int:
    """Raise `InvalidArgumentError` unless `value` is a positive integer that fits a key column."""
    if value is None or isinstance(value, bool) or not isinstance(value, int) or value <= 0 or value > MAX_ID:
        raise InvalidArgumentError(f"Invalid {label} ID: {value}")
    return value


def has_role(user: models.User, role: models.Role) -> bool:
    return user.role == role


def resolve_user(repo: repositories.UserRepository, user_id: Optional[int], required_role: Optional[models.Role] = None) -> models.User:
    """Return the user `user_id`, optionally checking its role.

    Raises `NotFoundError` when no such user exists and
    `RoleMismatchError` when it exists but does not hold `required_role`.
    """
    label = required_role.value.lower() if required_role else "user"
    require_positive_id(user_id, label)
    user = repo.get(user_id)
    if not user:
        raise NotFoundError(f"User not found with id: {user_id}")
    if required_role is not None and not has_role(user, required_role):
        raise RoleMismatchError(f"User with id: {user_id} is not a {label}")
    return user


def resolve_course(repo: repositories.CourseRepository, course_id: Optional[int]) -> models.Course:
    require_positive_id(course_id, "course")
    course = repo.get(course_id)
    if not course:
        raise NotFoundError(f"Course not found with id: {course_id}")
    return course


def resolve_lesson(repo: repositories.LessonRepository, lesson_id: Optional[int]) -> models.Lesson:
    require_positive_id(lesson_id, "lesson")
    lesson = repo.get(lesson_id)
    if not lesson:
        raise NotFoundError(f"Lesson not found with id: {lesson_id}")
    return lesson


def resolve_enrollment(repo: repositories.EnrollmentRepository, enrollment_id: Optional[int]) -> models.Enrollment:
    require_positive_id(enrollment_id, "enrollment")
    enrollment = repo.get(enrollment_id)
    if not enrollment:
        raise NotFoundError(f"Enrollment not found with id: {enrollment_id}")
    return enrollment
