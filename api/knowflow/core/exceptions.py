"""
Custom exceptions for the application.
"""


class KnowflowException(Exception):
    """Base exception for all KnowFlow application exceptions."""
    pass


class ValidationError(KnowflowException):
    """Raised when validation fails."""
    pass


class NotFoundError(KnowflowException):
    """Raised when a requested resource is not found."""
    pass


class ConflictError(ValidationError):
    """Raised when a concurrent writer already moved the resource to another state."""
    pass


class StorageError(KnowflowException):
    """Raised when the underlying store fails during a unit of work."""
    pass


class InternalError(KnowflowException):
    """Raised when stored payloads cannot be serialized or deserialized."""
    pass
