from typing import Optional

from fastapi import HTTPException, status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(ServiceError):
    """Unknown tenant code, missing profile or other tenant-scoped document."""

    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(ServiceError):
    """Missing required fields, due date in the past, bad option index and similar."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT


class PermissionDeniedError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class AuthError(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidCredentialError(AuthError):
    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class AccountDisabledError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, account_status: str, user_id: Optional[str] = None) -> None:
        super().__init__(f"Your account has been {account_status.lower()}.")
        self.account_status = account_status
        self.user_id = user_id


class DeviceMismatchError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "You are logged in on another device. Contact Admin.") -> None:
        super().__init__(message)


class InvalidTransitionError(ConflictError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot change status from {current} to {target}")
        self.current = current
        self.target = target


class AttendanceLockedError(ServiceError):
    status_code = status.HTTP_423_LOCKED


class FutureDateError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class DuplicateVoteError(ConflictError):
    def __init__(self, message: str = "You have already voted in this poll") -> None:
        super().__init__(message)


class PollClosedError(ConflictError):
    def __init__(self, message: str = "This poll has ended") -> None:
        super().__init__(message)


def http_error(e: ServiceError) -> HTTPException:
    """Map a service error to an HTTP response; internal failures keep their details out of the body."""
    if e.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return HTTPException(status_code=e.status_code, detail="Internal server error")
    return HTTPException(status_code=e.status_code, detail=e.message)
