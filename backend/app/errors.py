"""Account service error taxonomy."""
from fastapi import status


class AccountError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(AccountError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Please fill all details!"


class Unauthenticated(AccountError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized request"


class InvalidCredentials(Unauthenticated):
    default_message = "Invalid user credentials"


class InvalidToken(AccountError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid refresh token"


class NotFound(AccountError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class Conflict(AccountError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Username or email has already been used"


class InternalError(AccountError):
    default_message = "Something went wrong while generating refresh and access token"


class InvalidOrExpiredCode(AccountError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired OTP"


class ResetTimeout(AccountError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Reset password timeout"


class IssuanceError(Exception):
    """Raised by the token issuer when a token pair cannot be produced.

    Never rendered to clients directly; controllers convert it to
    ``InternalError``.
    """
