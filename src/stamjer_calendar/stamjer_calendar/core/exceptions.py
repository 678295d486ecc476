class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class MissingRequiredFieldError(ValidationError):
    """Raised when a mandatory field (title, start, ...) is absent."""


class WindowClosedError(ValidationError):
    """Raised when an RSVP change is attempted on or after the event date."""


class AuthenticationError(DomainError):
    """Raised when there is no (valid) current user."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when an event or user does not exist."""


class ConflictError(DomainError):
    """Raised when a write carries a stale revision."""
