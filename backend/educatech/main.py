"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the course management
backend. Controllers are thin: they accept requests, delegate to
services, and return JSON responses. Domain errors raised by the
services are translated into status codes by the exception handlers
registered below.

Endpoints implemented:
- POST /auth/login, GET /users/me
- /users: create, list, get, update, delete, by role, by email
- /courses: create, list, get, update, delete, assign teacher, by teacher, search
- /lessons: create, list, get, update, delete, by course
- /enrollments: enroll, list, get, update, unenroll, by student, by course, by pair
"""

from datetime import datetime, timezone
from typing import List, Optional
import json
import logging
import os
import time
import uuid
from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session
from .config import settings
from .database import create_db_and_tables, get_session
from .errors import DomainError, InvalidArgumentError
from . import mappers, models, schemas, services
from .auth import get_current_user

app = FastAPI(title="Course Management API")
logger = logging.getLogger("educatech.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()

GENERIC_ERROR_MESSAGE = "An unexpected internal server error occurred."


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.error(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


def _error_response(request: Request, status_code: int, kind: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": kind,
            "detail": detail,
            "status": status_code,
            "path": request.url.path,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return _error_response(request, exc.status_code, exc.kind, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _error_response(request, 400, InvalidArgumentError.kind, "; ".join(problems))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error path=%s", request.url.path, exc_info=exc)
    return _error_response(request, 500, "internal_error", GENERIC_ERROR_MESSAGE)


@app.post('/auth/login', response_model=schemas.TokenOut)
def login(payload: schemas.LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token.

    The returned token contains `user_id`, `email` and `role` and is
    signed using the configured JWT secret.
    """
    token = services.AuthService(db).authenticate(payload.email, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token}


@app.get('/users/me', response_model=schemas.UserOut)
def read_current_user(user: models.User = Depends(get_current_user)):
    """Return the profile of the authenticated user."""
    return mappers.to_user_out(user)


@app.post('/users', response_model=schemas.UserOut, status_code=201)
def create_user(payload: schemas.UserIn, db: Session = Depends(get_session)):
    """Register a new user. The email must not be registered yet."""
    return services.UserService(db).create(
        payload.first_name, payload.last_name, payload.email, payload.password, payload.role
    )


@app.get('/users', response_model=schemas.Page[schemas.UserOut])
def list_users(page: int = 0, size: Optional[int] = None, db: Session = Depends(get_session)):
    return services.UserService(db).list_page(page, size)


@app.get('/users/role/{role}', response_model=List[schemas.UserOut])
def list_users_by_role(role: models.Role, db: Session = Depends(get_session)):
    return services.UserService(db).list_by_role(role)


@app.get('/users/email/{email}', response_model=schemas.UserOut)
def get_user_by_email(email: str, db: Session = Depends(get_session)):
    return services.UserService(db).get_by_email(email)


@app.get('/users/{user_id}', response_model=schemas.UserOut)
def get_user(user_id: int, db: Session = Depends(get_session)):
    return services.UserService(db).get(user_id)


@app.put('/users/{user_id}', response_model=schemas.UserOut)
def update_user(user_id: int, payload: schemas.UserIn, db: Session = Depends(get_session)):
    """Replace a user's profile, credentials and role."""
    return services.UserService(db).update(
        user_id, payload.first_name, payload.last_name, payload.email, payload.password, payload.role
    )


@app.delete('/users/{user_id}', status_code=204)
def delete_user(user_id: int, db: Session = Depends(get_session)):
    """Delete a user together with its enrollments and taught courses."""
    services.UserService(db).delete(user_id)
    return Response(status_code=204)


@app.post('/courses', response_model=schemas.CourseOut, status_code=201)
def create_course(payload: schemas.CourseIn, db: Session = Depends(get_session)):
    """Create a course; `teacher_id` must reference a TEACHER."""
    return services.CourseService(db).create(payload.title, payload.description, payload.teacher_id)


@app.get('/courses', response_model=schemas.Page[schemas.CourseOut])
def list_courses(page: int = 0, size: Optional[int] = None, db: Session = Depends(get_session)):
    return services.CourseService(db).list_page(page, size)


@app.get('/courses/search', response_model=List[schemas.CourseOut])
def search_courses(title: str, db: Session = Depends(get_session)):
    """Case-insensitive substring search on course titles."""
    return services.CourseService(db).search_by_title(title)


@app.get('/courses/teacher/{teacher_id}', response_model=List[schemas.CourseOut])
def list_courses_by_teacher(teacher_id: int, db: Session = Depends(get_session)):
    return services.CourseService(db).list_by_teacher(teacher_id)


@app.get('/courses/{course_id}', response_model=schemas.CourseOut)
def get_course(course_id: int, db: Session = Depends(get_session)):
    return services.CourseService(db).get(course_id)


@app.put('/courses/{course_id}', response_model=schemas.CourseOut)
def update_course(course_id: int, payload: schemas.CourseIn, db: Session = Depends(get_session)):
    return services.CourseService(db).update(course_id, payload.title, payload.description, payload.teacher_id)


@app.put('/courses/{course_id}/teacher/{teacher_id}', response_model=schemas.CourseOut)
def assign_course_teacher(course_id: int, teacher_id: int, db: Session = Depends(get_session)):
    """Reassign a course; the current teacher cannot be assigned again."""
    return services.CourseService(db).assign_teacher(course_id, teacher_id)


@app.delete('/courses/{course_id}', status_code=204)
def delete_course(course_id: int, db: Session = Depends(get_session)):
    services.CourseService(db).delete(course_id)
    return Response(status_code=204)


@app.post('/lessons', response_model=schemas.LessonOut, status_code=201)
def create_lesson(payload: schemas.LessonIn, db: Session = Depends(get_session)):
    """Add a lesson to a course; titles are unique per course."""
    return services.LessonService(db).create(payload.title, payload.content, payload.course_id)


@app.get('/lessons', response_model=schemas.Page[schemas.LessonOut])
def list_lessons(page: int = 0, size: Optional[int] = None, db: Session = Depends(get_session)):
    return services.LessonService(db).list_page(page, size)


@app.get('/lessons/course/{course_id}', response_model=List[schemas.LessonOut])
def list_lessons_by_course(course_id: int, db: Session = Depends(get_session)):
    return services.LessonService(db).list_by_course(course_id)


@app.get('/lessons/{lesson_id}', response_model=schemas.LessonOut)
def get_lesson(lesson_id: int, db: Session = Depends(get_session)):
    return services.LessonService(db).get(lesson_id)


@app.put('/lessons/{lesson_id}', response_model=schemas.LessonOut)
def update_lesson(lesson_id: int, payload: schemas.LessonIn, db: Session = Depends(get_session)):
    return services.LessonService(db).update(lesson_id, payload.title, payload.content, payload.course_id)


@app.delete('/lessons/{lesson_id}', status_code=204)
def delete_lesson(lesson_id: int, db: Session = Depends(get_session)):
    services.LessonService(db).delete(lesson_id)
    return Response(status_code=204)


@app.post('/enrollments', response_model=schemas.EnrollmentOut, status_code=201)
def enroll(payload: schemas.EnrollmentIn, db: Session = Depends(get_session)):
    """Enroll a student in a course.

    Answers 409 when the student is already enrolled, 400 when the
    user is not a student and 404 when either side does not exist.
    """
    return services.EnrollmentService(db).enroll(payload.user_id, payload.course_id)


@app.get('/enrollments', response_model=schemas.Page[schemas.EnrollmentOut])
def list_enrollments(page: int = 0, size: Optional[int] = None, db: Session = Depends(get_session)):
    return services.EnrollmentService(db).list_page(page, size)


@app.get('/enrollments/student/{student_id}', response_model=List[schemas.EnrollmentOut])
def list_enrollments_by_student(student_id: int, db: Session = Depends(get_session)):
    return services.EnrollmentService(db).get_by_student(student_id)


@app.get('/enrollments/course/{course_id}', response_model=List[schemas.EnrollmentOut])
def list_enrollments_by_course(course_id: int, db: Session = Depends(get_session)):
    return services.EnrollmentService(db).get_by_course(course_id)


@app.get('/enrollments/student/{student_id}/course/{course_id}', response_model=schemas.EnrollmentOut)
def get_enrollment_by_student_and_course(student_id: int, course_id: int, db: Session = Depends(get_session)):
    return services.EnrollmentService(db).get_by_student_and_course(student_id, course_id)


@app.get('/enrollments/{enrollment_id}', response_model=schemas.EnrollmentOut)
def get_enrollment(enrollment_id: int, db: Session = Depends(get_session)):
    return services.EnrollmentService(db).get(enrollment_id)


@app.put('/enrollments/{enrollment_id}', response_model=schemas.EnrollmentOut)
def update_enrollment(enrollment_id: int, payload: schemas.EnrollmentIn, db: Session = Depends(get_session)):
    """Re-point an enrollment; its enrollment date is kept."""
    return services.EnrollmentService(db).update(enrollment_id, payload.user_id, payload.course_id)


@app.delete('/enrollments/{enrollment_id}', status_code=204)
def unenroll(enrollment_id: int, db: Session = Depends(get_session)):
    services.EnrollmentService(db).unenroll(enrollment_id)
    return Response(status_code=204)
