"""Domain errors raised by the service layer.

Route handlers do not translate these by hand; ``app.main`` registers a
handler that renders any :class:`FamilyAppError` as
``{"code": ..., "message": ...}`` with the error's status code.
"""

from fastapi import status


class FamilyAppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_server_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(FamilyAppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class NoFamily(ValidationError):
    code = "family_required"

    def __init__(self, message: str = "User must belong to a family"):
        super().__init__(message)


class NoMedia(ValidationError):
    code = "media_required"

    def __init__(self, message: str = "At least one media file is required"):
        super().__init__(message)


class NotFound(FamilyAppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class AccessDenied(FamilyAppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "access_denied"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class Conflict(FamilyAppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "conflict"


class AlreadyMember(Conflict):
    code = "family_already_member"

    def __init__(self, message: str = "Already part of this family"):
        super().__init__(message)


class UpstreamFailure(FamilyAppError):
    """The object store could not complete a request."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "upstream_failure"
