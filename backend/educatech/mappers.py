"""Build external views from database models.

Only the fields listed in the response schemas leave the service
layer; in particular `User.password_hash` is never mapped.
"""

from . import models, schemas


def to_user_out(user: models.User) -> schemas.UserOut:
    return schemas.UserOut(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        role=user.role,
    )


def to_course_out(course: models.Course) -> schemas.CourseOut:
    return schemas.CourseOut(
        id=course.id,
        title=course.title,
        description=course.description,
        teacher_id=course.teacher_id,
    )


def to_lesson_out(lesson: models.Lesson) -> schemas.LessonOut:
    return schemas.LessonOut(
        id=lesson.id,
        title=lesson.title,
        content=lesson.content,
        course_id=lesson.course_id,
    )


def to_enrollment_out(enrollment: models.Enrollment) -> schemas.EnrollmentOut:
    # the API exposes the student as `user_id`
    return schemas.EnrollmentOut(
        id=enrollment.id,
        user_id=enrollment.student_id,
        course_id=enrollment.course_id,
        enrollment_date=enrollment.enrollment_date,
    )


def to_page(items, mapper, page: int, size: int, total: int) -> schemas.Page:
    """Wrap mapped `items` into a `Page` envelope."""
    return schemas.Page(items=[mapper(i) for i in items], page=page, size=size, total=total)
