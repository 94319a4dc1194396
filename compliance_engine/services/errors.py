"""Error taxonomy for the compliance document engine."""


class ComplianceError(Exception):
    """Base exception for compliance engine errors."""

    pass


class ValidationError(ComplianceError):
    """A request broke a specific constraint (missing issue date, bad format, ...)."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ConflictError(ComplianceError):
    """The targeted record is no longer the subject's current record."""

    pass


class NotFoundError(ComplianceError):
    """A document type, record or notification no longer exists."""

    pass


class TransientError(ComplianceError):
    """The backend could not be reached or failed; the action may be retried by the user."""

    pass
