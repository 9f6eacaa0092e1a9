from abc import ABC


class UserError(ABC, Exception):
    """Base class for user-related errors.

    All errors that inherit from UserError will have their messages
    displayed to the reader. These errors should not contain any
    sensitive information.
    """


class NotFoundError(UserError):
    """Raised when a requested document, version or comment is not found."""

    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class ValidationError(UserError):
    """Raised when user input fails validation."""


class RateLimitedError(UserError):
    """Raised when a client exceeds the comment posting rate."""

    def __init__(self, message: str = "Rate limit exceeded") -> None:
        super().__init__(message)


class TransientError(UserError):
    """Base class for errors the caller may retry later.

    The failed operation is never left partially applied.
    """


class ConflictError(TransientError):
    """Raised when concurrent edits keep colliding on the same document version."""

    def __init__(self, message: str = "Document was modified concurrently, please retry") -> None:
        super().__init__(message)


class StorageUnavailableError(TransientError):
    """Raised when the metadata or blob store times out or fails."""

    def __init__(self, message: str = "Storage is temporarily unavailable") -> None:
        super().__init__(message)
