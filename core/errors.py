"""
core/errors.py — Error taxonomy
UBS Manager v1.0
"""


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(AppError):
    pass


class ConstraintError(AppError):
    """Unique or foreign-key violation raised by a storage backend."""


class AuthorizationError(AppError):
    pass


class ValidationFailed(AppError):
    """Structural payload violation; issues are models.clinical.FieldIssue."""

    def __init__(self, issues, message: str = "Dados inválidos"):
        super().__init__(message)
        self.issues = list(issues)
