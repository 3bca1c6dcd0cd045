"""Domain-specific exceptions for the EV ledger core services."""

class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class RecordNotFoundError(LookupError):
    """Raised when a transaction or service record cannot be located."""


class PersistenceError(IOError):
    """Raised when the persistence layer encounters unrecoverable issues."""


class CalendarConversionError(ValueError):
    """Raised when an instant cannot be expressed in the Bikram Sambat calendar."""


class AuthenticationError(PermissionError):
    """Raised when credentials are rejected or a username is already taken."""
