"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table. Cross-table references are plain foreign
keys; dependent rows are removed explicitly by the services when a
parent is deleted.
"""

from enum import Enum
from typing import Optional
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field
from datetime import datetime, timezone


class Role(str, Enum):
    """Closed set of roles a `User` can hold."""
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: decides which operations the user may be the subject of
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    email: str = Field(index=True, nullable=False, unique=True, max_length=255)
    password_hash: str
    role: Role = Field(default=Role.STUDENT, index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Course(SQLModel, table=True):
    """A course taught by exactly one `User` with the TEACHER role."""
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(index=True, max_length=255)
    description: str = Field(max_length=10000)
    teacher_id: int = Field(foreign_key='user.id', index=True)


class Lesson(SQLModel, table=True):
    """A lesson inside a `Course`. Titles are unique per course."""
    __table_args__ = (UniqueConstraint('title', 'course_id', name='uq_lesson_title_course'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=255)
    content: str = Field(max_length=2000)
    course_id: int = Field(foreign_key='course.id', index=True)


class Enrollment(SQLModel, table=True):
    """Links one student to one course.

    `enrollment_date` is assigned when the row is built and is never
    taken from the client or changed afterwards. A student may hold at
    most one enrollment per course.
    """
    __table_args__ = (UniqueConstraint('student_id', 'course_id', name='uq_enrollment_student_course'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    course_id: int = Field(foreign_key='course.id', index=True)
    enrollment_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
