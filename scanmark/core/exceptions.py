"""Custom exception classes and error handling.

Every error carries a ``retryable`` flag so the import worker can tell
"the document was bad" (terminal) from "we failed to persist it" (eligible
for the queue's retry policy).
"""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    retryable: bool = False

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": code,
                    "message": message,
                    "details": details or {},
                },
            },
        )

    def __str__(self) -> str:
        return self.message


class UnsupportedFormatError(AppException):
    """No document parser is registered for the declared format tag."""

    def __init__(self, format_tag: str | None):
        super().__init__(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            code="UNSUPPORTED_FORMAT",
            message=f"Unsupported content type: {format_tag}",
            details={"format": format_tag},
        )


class MalformedDocumentError(AppException):
    """Structural problem with a document: bad syntax, wrong root, missing field."""

    def __init__(
        self,
        message: str = "Malformed document",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="MALFORMED_DOCUMENT",
            message=message,
            details=details,
        )


class InvalidRecordError(AppException):
    """A structurally valid record failed business rules."""

    def __init__(
        self,
        message: str = "Invalid test result",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="INVALID_RECORD",
            message=message,
            details=details,
        )


class StoreError(AppException):
    """Transactional failure against the relational backend."""

    retryable = True

    def __init__(
        self,
        message: str = "Database error",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="STORE_ERROR",
            message=message,
            details=details,
        )


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(
        self,
        resource: str = "Resource",
        identifier: str | None = None,
    ):
        details = {}
        if identifier:
            details["identifier"] = identifier
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="NOT_FOUND",
            message=f"{resource} not found",
            details=details,
        )


class InternalError(AppException):
    """Internal server error."""

    retryable = True

    def __init__(
        self,
        message: str = "Internal server error",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="INTERNAL_ERROR",
            message=message,
            details=details,
        )
