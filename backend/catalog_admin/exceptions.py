"""Error taxonomy shared by the store, the HTTP collaborator and the sandbox.

Only ``CollaboratorAPIError`` carries a message that is safe to show an
admin; anything else is reported with a generic message.
"""

from typing import Any

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


class CatalogAdminException(Exception):
    """Base exception for catalog admin errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class CollaboratorAPIError(CatalogAdminException):
    """A failed call to the remote catalog API.

    ``status_code`` is ``None`` when no HTTP response was received.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        data: Any = None,
        error_code: str = "COLLABORATOR_ERROR",
    ):
        super().__init__(message, status_code=status_code, error_code=error_code)
        self.data = data

    def __repr__(self) -> str:
        return f"CollaboratorAPIError({self.message!r}, status_code={self.status_code})"


class RecordNotFoundError(CollaboratorAPIError):
    def __init__(self, kind: str, identifier: str):
        super().__init__(
            message=f"{kind} not found: {identifier}",
            status_code=404,
            error_code="RESOURCE_NOT_FOUND",
        )


class ModerationConflictError(CollaboratorAPIError):
    """The record is in a state that does not allow the requested change."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=409,
            error_code="MODERATION_CONFLICT",
        )


def describe_error(exc: BaseException) -> str:
    """Message to surface in ``ActionState.error`` for ``exc``."""
    if isinstance(exc, CollaboratorAPIError):
        return exc.message
    return UNEXPECTED_ERROR_MESSAGE


def is_unauthenticated(exc: BaseException) -> bool:
    return isinstance(exc, CollaboratorAPIError) and exc.status_code == 401
