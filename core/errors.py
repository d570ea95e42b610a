from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class BridgeError(Exception):
    """Base class for errors raised by the bridge services."""


class ConfigurationError(BridgeError):
    """A required request input is missing or invalid."""


class DocumentNotFound(BridgeError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Document {key!r} does not exist")
        self.key = key


class StoreUnavailable(BridgeError):
    def __init__(self, reason: str = "Object store is not configured") -> None:
        super().__init__(reason)
        self.reason = reason


class DownloadFailed(BridgeError):
    def __init__(self, url: str, status_code: int, reason: str | None = None) -> None:
        message = f"Download of {url} failed: HTTP {status_code}"
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class TooManyRedirects(DownloadFailed):
    def __init__(self, url: str, status_code: int, max_redirects: int) -> None:
        super().__init__(url, status_code, f"(more than {max_redirects} redirects)")
        self.max_redirects = max_redirects


class SignatureError(BridgeError):
    """Signing an editor token failed."""


class AppException(HTTPException):
    def __init__(
        self,
        *,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        detail = {
            "message": message,
            "code": code.value,
            "details": details,
        }
        super().__init__(status_code=status_code, detail=detail, headers=headers)


def configuration_error(message: str, details: Any | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_400_BAD_REQUEST,
        code=ErrorCode.CONFIGURATION_ERROR,
        message=message,
        details=details,
    )


def resource_not_found(resource: str, resource_id: str | None = None, tip: str | None = None) -> AppException:
    details = {"resource": resource}
    if resource_id:
        details["resource_id"] = resource_id
    if tip:
        details["tip"] = tip
    return AppException(
        status_code=status.HTTP_404_NOT_FOUND,
        code=ErrorCode.RESOURCE_NOT_FOUND,
        message=f"{resource} not found",
        details=details,
    )


def store_unavailable(reason: str | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code=ErrorCode.STORE_UNAVAILABLE,
        message="Object store is unavailable",
        details={"reason": reason} if reason else None,
    )


def to_http_exception(exc: BridgeError) -> AppException:
    """Translate a service error into the HTTP error the routes return."""
    if isinstance(exc, ConfigurationError):
        return configuration_error(str(exc))
    if isinstance(exc, DocumentNotFound):
        return resource_not_found("Document", exc.key, tip="Upload the file to the storage bucket first")
    if isinstance(exc, StoreUnavailable):
        return store_unavailable(exc.reason)
    return AppException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code=ErrorCode.INTERNAL_ERROR,
        message=str(exc) or "Internal Server Error",
    )
