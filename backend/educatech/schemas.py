"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and reject malformed input
(blank or oversized strings, missing or non-positive ids) before it
reaches the services. Response schemas never carry credentials.
"""

from datetime import datetime
from typing import Generic, List, TypeVar
from pydantic import BaseModel, EmailStr, Field, field_validator
from .models import Role

T = TypeVar("T")


def _not_blank(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("must not be blank")
    return stripped


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    email: EmailStr
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"


class UserIn(BaseModel):
    """Request body for creating or fully replacing a user."""
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    email: EmailStr
    password: str = Field(min_length=8, max_length=60)
    role: Role = Role.STUDENT

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, value: str) -> str:
        return _not_blank(value)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        if len(value) > 255:
            raise ValueError("email must be at most 255 characters")
        return value.strip().lower()

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("password cannot be blank")
        return value


class CourseIn(BaseModel):
    """Request body for creating or fully replacing a course."""
    title: str = Field(max_length=255)
    description: str = Field(max_length=10000)
    teacher_id: int = Field(gt=0)

    @field_validator("title", "description")
    @classmethod
    def validate_text(cls, value: str) -> str:
        return _not_blank(value)


class LessonIn(BaseModel):
    """Request body for creating or fully replacing a lesson."""
    title: str = Field(max_length=255)
    content: str = Field(max_length=2000)
    course_id: int = Field(gt=0)

    @field_validator("title", "content")
    @classmethod
    def validate_text(cls, value: str) -> str:
        return _not_blank(value)


class EnrollmentIn(BaseModel):
    """Request body for enrolling (or re-pointing an enrollment).

    The enrollment date is always assigned by the server.
    """
    user_id: int = Field(gt=0)
    course_id: int = Field(gt=0)


class UserOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    role: Role


class CourseOut(BaseModel):
    id: int
    title: str
    description: str
    teacher_id: int


class LessonOut(BaseModel):
    id: int
    title: str
    content: str
    course_id: int


class EnrollmentOut(BaseModel):
    id: int
    user_id: int
    course_id: int
    enrollment_date: datetime


class Page(BaseModel, Generic[T]):
    """One page of a listing; `page` is zero-based."""
    items: List[T]
    page: int
    size: int
    total: int
