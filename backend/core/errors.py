from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for errors raised by the service layer.

    Handlers in ``main.create_app`` turn these into JSON responses of the
    form ``{"code": ..., "message": ..., "details": ...}``.
    """

    status_code: int = 400
    default_code: str = "ERROR"

    def __init__(self, message: str, *, code: str | None = None, details: Any | None = None) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details
        super().__init__(message)

    def to_content(self) -> dict[str, Any]:
        content: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            content["details"] = self.details
        return content


class ValidationError(DomainError):
    """Malformed input: bad enum, bad time, bad capacity, missing field."""

    default_code = "VALIDATION_ERROR"


class ReferenceNotFoundError(DomainError):
    """A foreign key in a create/update payload points at nothing."""

    default_code = "REFERENCE_NOT_FOUND"


class NotFoundError(DomainError):
    """The primary resource of a by-id request does not exist."""

    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(DomainError):
    """Duplicate active enrollment, full class, duplicate name, resource in use.

    Reported as 400 with a human-readable message, not 409.
    """

    default_code = "CONFLICT"
