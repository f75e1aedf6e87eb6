"""Domain errors raised by validators, repositories and services.

Every error carries a stable machine-readable `kind` and the HTTP
status the API answers with. The FastAPI exception handlers in
`main.py` turn them into JSON error bodies.
"""


class DomainError(Exception):
    """Base class for expected, caller-facing failures."""
    kind = "domain_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DomainError):
    """A referenced user, course, lesson or enrollment does not exist."""
    kind = "not_found"
    status_code = 404


class RoleMismatchError(DomainError):
    """The user exists but holds the wrong role for the operation."""
    kind = "role_mismatch"
    status_code = 400


class InvalidArgumentError(DomainError):
    """A malformed, missing or non-positive identifier or field."""
    kind = "invalid_argument"
    status_code = 400


class ConflictError(DomainError):
    """A uniqueness rule would be violated."""
    kind = "conflict"
    status_code = 409
