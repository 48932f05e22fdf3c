from typing import Any


class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Raised when a required input field is missing or invalid."""

    status_code = 400


class NotFound(DomainError):
    """Raised when an id does not resolve to a stored record."""

    status_code = 404


class StudentNotFound(NotFound):
    """Raised when a scanned code matches no student."""

    def __init__(self, code: str, message: str = "Student not found"):
        super().__init__(message)
        self.code = code


class AlreadyCheckedIn(DomainError):
    """Raised on a second check-in for the same student on the same day."""

    status_code = 409

    def __init__(self, student: dict[str, Any]):
        super().__init__(f"{student.get('name')} has already checked in today")
        self.student = student


class StorageError(DomainError):
    """Raised when the backing key-value store fails."""

    status_code = 500
