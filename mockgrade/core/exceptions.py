"""Errors raised while entering scores and processing results."""

from mockgrade.models import Subject


class ResultProcessingError(Exception):
    """Base exception for result processing errors."""

    pass


class ConfigurationError(ResultProcessingError, ValueError):
    """Grading configuration is inconsistent; no grades are produced from it."""

    pass


class ScoreEntryError(Exception):
    """A score edit was rejected (locked series, locked SBA, out of range)."""

    pass


class StudentNotFoundError(LookupError):
    pass


class DegradedComputationWarning(UserWarning):
    """Non-fatal: the pipeline proceeded with a documented fallback."""

    def __init__(
        self,
        code: str,
        message: str,
        subject: Subject | None = None,
        student_id: int | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.subject = subject
        self.student_id = student_id
