"""
Error taxonomy shared by the service layer.

Services raise these exceptions; endpoint handlers translate them into
``HTTPException`` using the ``status_code`` carried by each class.
Nothing in the service layer retries on these errors.
"""

from fastapi import HTTPException, status


class AppError(Exception):
    """Base class for all expected business errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_http(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.message)


class NotFoundError(AppError):
    """Missing event, user, response or finalized record."""

    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(AppError):
    """The caller is not the owner of the event."""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(AppError):
    """Already finalized, closed for responses, or update retries exhausted."""

    status_code = status.HTTP_409_CONFLICT


class RateLimitedError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class ValidationError(AppError):
    """A submission or finalization broke a business rule."""

    status_code = 422


class ReadonlyViolation(ValidationError):
    pass


class SuggestionNotAllowed(ValidationError):
    pass


class TooManyVotes(ValidationError):
    pass


class DuplicateOption(ValidationError):
    pass


class MaxEntriesExceeded(ValidationError):
    pass


class RequiredFieldMissing(ValidationError):
    pass


class InvalidSelection(ValidationError):
    """A selected name does not exist among the available options."""
