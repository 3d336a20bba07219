from __future__ import annotations

from typing import Any


class ApiError(Exception):
    def __init__(
        self,
        *,
        code: str,
        message: str,
        error_class: str,
        retryable: bool,
        http_status: int,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.error_class = error_class
        self.retryable = retryable
        self.http_status = http_status

    @property
    def details(self) -> dict[str, Any] | None:
        return None


class ValidationError(ApiError):
    """A draft field failed repository validation; the caller can fix and resubmit."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(
            code="REPORT_VALIDATION_FAILED",
            message=message or f"invalid value for field: {field}",
            error_class="validation",
            retryable=False,
            http_status=400,
        )
        self.field = field

    @property
    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class IllegalTransitionError(ApiError):
    def __init__(self, from_status: str, to_status: str) -> None:
        super().__init__(
            code="REPORT_TRANSITION_INVALID",
            message=f"invalid transition: {from_status} -> {to_status}",
            error_class="business_rule",
            retryable=False,
            http_status=409,
        )
        self.from_status = from_status
        self.to_status = to_status

    @property
    def details(self) -> dict[str, Any]:
        return {"from": self.from_status, "to": self.to_status}


class NotFoundError(ApiError):
    def __init__(self, resource_id: str) -> None:
        super().__init__(
            code="REPORT_NOT_FOUND",
            message="report not found",
            error_class="validation",
            retryable=False,
            http_status=404,
        )
        self.resource_id = resource_id

    @property
    def details(self) -> dict[str, Any]:
        return {"id": self.resource_id}


class UnauthenticatedError(ApiError):
    def __init__(self, message: str = "caller identity is required") -> None:
        super().__init__(
            code="AUTH_UNAUTHORIZED",
            message=message,
            error_class="security_sensitive",
            retryable=False,
            http_status=401,
        )


class UnauthorizedError(ApiError):
    def __init__(self, message: str = "caller role is not permitted") -> None:
        super().__init__(
            code="AUTH_FORBIDDEN",
            message=message,
            error_class="security_sensitive",
            retryable=False,
            http_status=403,
        )


class StorageError(ApiError):
    """Record store I/O or decode failure. Fatal for the current operation."""

    def __init__(self, key: str, message: str, *, decode: bool = False) -> None:
        super().__init__(
            code="STORAGE_DECODE_FAILED" if decode else "STORAGE_IO_FAILED",
            message=message,
            error_class="storage",
            retryable=not decode,
            http_status=500,
        )
        self.key = key
        self.decode = decode

    @property
    def details(self) -> dict[str, Any]:
        return {"key": self.key}
