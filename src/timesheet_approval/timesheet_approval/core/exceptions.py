class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or a mandatory reason is missing."""


class AuthenticationError(DomainError):
    """Raised when the acting user cannot be identified."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when an entry id does not resolve to a stored entry."""


class LockedError(DomainError):
    """Raised when the owner's day is locked against any mutation."""

    def __init__(self, message: str, *, user_id: str | None = None, locked_date=None):
        super().__init__(message)
        self.user_id = user_id
        self.locked_date = locked_date
