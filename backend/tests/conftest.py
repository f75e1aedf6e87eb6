from pathlib import Path
import os
import tempfile
import pytest
from sqlmodel import Session

# Point the app at a throwaway SQLite file before any educatech module is imported.
_DB_DIR = Path(tempfile.mkdtemp(prefix="educatech-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"

from educatech.database import create_db_and_tables, drop_db_and_tables, engine  # noqa: E402
from educatech import models  # noqa: E402
from educatech.services import PWD_CTX  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db():
    """Ensure every test starts from an empty schema."""
    drop_db_and_tables()
    create_db_and_tables()
    yield


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def make_user(session):
    """Insert a user directly and return it; ids may be forced for scenarios."""
    def _make(role=models.Role.STUDENT, email=None, user_id=None, password="password123"):
        user = models.User(
            id=user_id,
            first_name="Test",
            last_name=role.value.title(),
            email=email or f"{role.value.lower()}{user_id or ''}-{os.urandom(3).hex()}@example.com",
            password_hash=PWD_CTX.hash(password),
            role=role,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
    return _make


@pytest.fixture
def make_course(session):
    def _make(teacher, title="Intro to Python", course_id=None):
        course = models.Course(id=course_id, title=title, description="A first course.", teacher_id=teacher.id)
        session.add(course)
        session.commit()
        session.refresh(course)
        return course
    return _make
