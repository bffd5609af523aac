"""Exceptions raised by the finance tracker handlers and store."""


class FinanceTrackerError(Exception):
    """Base class for errors the HTTP layer knows how to report."""


class ValidationError(FinanceTrackerError, ValueError):
    """Raised when a request payload does not meet structural requirements."""


class NotFoundError(FinanceTrackerError, LookupError):
    """Raised when a transaction, budget or savings goal cannot be located."""


class NotAuthorizedError(FinanceTrackerError):
    """Raised when a credential is missing or a record belongs to someone else."""
