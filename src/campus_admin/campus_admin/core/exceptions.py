from __future__ import annotations


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when an explicitly requested record does not exist."""


class SaveInProgressError(DomainError):
    """Raised when save() is called while another save is still running."""


class StoreError(Exception):
    """A row store operation failed.

    Carries the attempted operation and the key it touched so the caller can
    report it and offer a retry.
    """

    def __init__(self, operation: str, context: str, cause: Exception | None = None):
        self.operation = operation
        self.context = context
        self.cause = cause
        message = f"{operation} failed ({context})"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
