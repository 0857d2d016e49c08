"""
Structured error handling for app_publish.

This module provides the normalized error type every adapter operation fails
with, the error-code catalog that maps codes to user-facing messages and
actionable suggestions, and utilities for converting aiohttp exceptions and
HTTP status codes into normalized errors with the right retry classification.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import aiohttp


class ErrorCode(str, Enum):
    """Error codes surfaced to calling code."""

    STORE_NOT_CONNECTED = "STORE_NOT_CONNECTED"
    AUTH_EXPIRED = "AUTH_EXPIRED"
    AUTH_INSUFFICIENT_PERMISSIONS = "AUTH_INSUFFICIENT_PERMISSIONS"
    ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"
    ARTIFACT_INVALID_FORMAT = "ARTIFACT_INVALID_FORMAT"
    VERSION_CONFLICT = "VERSION_CONFLICT"
    LISTING_INCOMPLETE = "LISTING_INCOMPLETE"
    LISTING_FIELD_TOO_LONG = "LISTING_FIELD_TOO_LONG"
    COMPLIANCE_FAILED = "COMPLIANCE_FAILED"
    REVIEW_IN_PROGRESS = "REVIEW_IN_PROGRESS"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    STORE_API_ERROR = "STORE_API_ERROR"
    UPLOAD_SIZE_EXCEEDED = "UPLOAD_SIZE_EXCEEDED"
    TRACK_NOT_AVAILABLE = "TRACK_NOT_AVAILABLE"
    IDEMPOTENCY_CONFLICT = "IDEMPOTENCY_CONFLICT"
    ADAPTER_ERROR = "ADAPTER_ERROR"


class Severity(str, Enum):
    """How strongly an error blocks the caller's workflow."""

    BLOCKING = "blocking"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class CatalogEntry:
    """User-facing text for an error code."""

    user_message: str
    suggestion: str


ERROR_CATALOG: Dict[ErrorCode, CatalogEntry] = {
    ErrorCode.STORE_NOT_CONNECTED: CatalogEntry(
        "Store is not configured.",
        "Run store.connect to set up credentials for this store.",
    ),
    ErrorCode.AUTH_EXPIRED: CatalogEntry(
        "Store authentication has expired.",
        "Re-run store.connect to refresh your credentials.",
    ),
    ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS: CatalogEntry(
        "Your credentials lack the required permissions.",
        "Check that your API key or service account has the necessary roles "
        "for this operation.",
    ),
    ErrorCode.ARTIFACT_NOT_FOUND: CatalogEntry(
        "Build artifact was not found.",
        "Verify the file path exists and the artifact has been uploaded.",
    ),
    ErrorCode.ARTIFACT_INVALID_FORMAT: CatalogEntry(
        "Build artifact format is not supported.",
        "Ensure the file is a valid APK, AAB, IPA, or HAP for the target store.",
    ),
    ErrorCode.VERSION_CONFLICT: CatalogEntry(
        "Version code conflicts with an existing release.",
        "Increment the version code and try again.",
    ),
    ErrorCode.LISTING_INCOMPLETE: CatalogEntry(
        "Store listing is missing required fields.",
        "Fill in all required listing fields (title, description, screenshots) "
        "before submitting.",
    ),
    ErrorCode.LISTING_FIELD_TOO_LONG: CatalogEntry(
        "A store listing field exceeds the maximum length.",
        "Shorten the field value to fit within the store character limit.",
    ),
    ErrorCode.COMPLIANCE_FAILED: CatalogEntry(
        "Release does not meet store compliance requirements.",
        "Review the rejection reasons and update your app metadata or binary "
        "accordingly.",
    ),
    ErrorCode.REVIEW_IN_PROGRESS: CatalogEntry(
        "A review is already in progress for this release.",
        "Wait for the current review to complete before submitting changes.",
    ),
    ErrorCode.RATE_LIMIT_EXCEEDED: CatalogEntry(
        "Too many requests to the store API.",
        "Wait a few minutes and try again.",
    ),
    ErrorCode.STORE_API_ERROR: CatalogEntry(
        "The store API returned an unexpected error.",
        "Check the error details and the store developer console for more "
        "information.",
    ),
    ErrorCode.UPLOAD_SIZE_EXCEEDED: CatalogEntry(
        "Build artifact exceeds the maximum upload size.",
        "Reduce the file size or check the store size limits for your app type.",
    ),
    ErrorCode.TRACK_NOT_AVAILABLE: CatalogEntry(
        "The requested release track is not available.",
        "Verify the track name is valid for this store (e.g., internal, alpha, "
        "beta, production).",
    ),
    ErrorCode.IDEMPOTENCY_CONFLICT: CatalogEntry(
        "A duplicate operation was detected.",
        "This operation was already submitted. Check the release status before "
        "retrying.",
    ),
    ErrorCode.ADAPTER_ERROR: CatalogEntry(
        "The store operation failed.",
        "Check your network connection and the store status page, then retry "
        "the operation.",
    ),
}


def get_catalog_entry(code: ErrorCode) -> Optional[CatalogEntry]:
    """Look up the catalog entry for an error code."""
    return ERROR_CATALOG.get(ErrorCode(code))


class PublishError(Exception):
    """
    Base exception for all app_publish operations.

    All other custom exceptions inherit from this class.
    """

    pass


class NormalizedError(PublishError):
    """
    Structured error raised by every adapter operation.

    Calling code never needs to branch on the exception raised by the
    underlying HTTP client or signing library: every failure that leaves the
    dispatch layer is one of these.

    Attributes:
        code: Error code from the catalog
        message: Human-readable error message
        suggestion: Actionable suggestion for the user
        severity: How strongly this error blocks the workflow
        backend_id: Backend the error originated from (if applicable)
        status_code: HTTP status code (if applicable)
        retryable: Whether the dispatch layer may retry the operation
        retry_after: Server-requested delay in seconds (if any)
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.STORE_API_ERROR,
        *,
        backend_id: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: bool = False,
        suggestion: Optional[str] = None,
        severity: Severity = Severity.BLOCKING,
        retry_after: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = ErrorCode(code)
        self.backend_id = backend_id
        self.status_code = status_code
        self.retryable = retryable
        self.severity = Severity(severity)
        self.retry_after = retry_after
        self.details = details or {}

        if suggestion is None:
            entry = get_catalog_entry(self.code)
            suggestion = entry.suggestion if entry else ""
        self.suggestion = suggestion

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Render the user-visible structured payload."""
        return {
            "error_code": self.code.value,
            "message": self.message,
            "suggestion": self.suggestion,
            "severity": self.severity.value,
            "backend_id": self.backend_id,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "details": self.details,
        }


class CredentialError(NormalizedError):
    """
    Raised for missing, unreadable or malformed credentials.

    These are configuration errors rather than transient backend failures,
    so they are never retried.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.STORE_NOT_CONNECTED,
        *,
        backend_id: Optional[str] = None,
        suggestion: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            code,
            backend_id=backend_id,
            retryable=False,
            suggestion=suggestion,
            details=details,
        )


class ErrorHandler:
    """
    Utility class for converting failures into normalized errors.

    Provides methods to convert aiohttp exceptions and HTTP status codes to
    NormalizedError instances and to determine retry behavior.
    """

    @staticmethod
    def from_exception(
        error: BaseException,
        backend_id: Optional[str] = None,
        url: Optional[str] = None,
    ) -> NormalizedError:
        """
        Convert a transport-level exception to a NormalizedError.

        Args:
            error: The original exception
            backend_id: Backend the request was sent to
            url: The URL that caused the error

        Returns:
            NormalizedError classified for retry
        """
        if isinstance(error, NormalizedError):
            return error

        details: Dict[str, Any] = {"url": url} if url else {}

        if isinstance(error, aiohttp.ClientResponseError):
            return ErrorHandler.from_http_status(
                error.status,
                error.message or str(error),
                backend_id=backend_id,
                headers=error.headers,
                url=url,
            )

        if isinstance(error, asyncio.TimeoutError):
            return NormalizedError(
                f"Request timed out: {error}",
                ErrorCode.STORE_API_ERROR,
                backend_id=backend_id,
                retryable=True,
                details=details,
            )

        if isinstance(error, aiohttp.ClientError):
            return NormalizedError(
                f"Connection error: {error}",
                ErrorCode.STORE_API_ERROR,
                backend_id=backend_id,
                retryable=True,
                details=details,
            )

        return NormalizedError(
            f"Unexpected error: {error}",
            ErrorCode.ADAPTER_ERROR,
            backend_id=backend_id,
            retryable=True,
            details=details,
        )

    @staticmethod
    def from_http_status(
        status_code: int,
        message: str,
        *,
        backend_id: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        response_text: Optional[str] = None,
        url: Optional[str] = None,
    ) -> NormalizedError:
        """
        Create a NormalizedError based on an HTTP status code.

        Args:
            status_code: HTTP status code
            message: Error message
            backend_id: Backend the request was sent to
            headers: Response headers
            response_text: Response body text
            url: The URL that caused the error

        Returns:
            NormalizedError with code and retryability set from the status
        """
        details: Dict[str, Any] = {}
        if url:
            details["url"] = url
        if response_text:
            details["response"] = response_text[:500]

        def build(code: ErrorCode, text: str, retryable: bool, **kwargs: Any) -> NormalizedError:
            return NormalizedError(
                text,
                code,
                backend_id=backend_id,
                status_code=status_code,
                retryable=retryable,
                details=details,
                **kwargs,
            )

        if status_code == 401:
            return build(ErrorCode.AUTH_EXPIRED, f"Authentication required: {message}", False)

        elif status_code == 403:
            return build(
                ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS, f"Access forbidden: {message}", False
            )

        elif status_code == 404:
            return build(ErrorCode.STORE_API_ERROR, f"Resource not found: {message}", False)

        elif status_code == 409:
            return build(ErrorCode.VERSION_CONFLICT, f"Conflict: {message}", False)

        elif status_code == 413:
            return build(ErrorCode.UPLOAD_SIZE_EXCEEDED, f"Payload too large: {message}", False)

        elif status_code == 429:
            retry_after = None
            if headers:
                retry_after_header = headers.get("Retry-After") or headers.get("retry-after")
                if retry_after_header:
                    try:
                        retry_after = float(retry_after_header)
                    except ValueError:
                        pass

            return build(
                ErrorCode.RATE_LIMIT_EXCEEDED,
                f"Rate limit exceeded: {message}",
                True,
                retry_after=retry_after,
            )

        elif status_code == 408 or 500 <= status_code < 600:
            return build(ErrorCode.STORE_API_ERROR, f"Server error: {message}", True)

        else:
            return build(ErrorCode.STORE_API_ERROR, message, False)

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        """
        Determine if an error may be retried by the dispatch layer.

        Plain exceptions are treated as transient; normalized errors carry
        their own classification.
        """
        if isinstance(error, NormalizedError):
            return error.retryable
        return isinstance(error, Exception)

    @staticmethod
    def get_retry_delay(error: BaseException, attempt: int, base_delay: float = 1.0) -> float:
        """
        Calculate the backoff delay before the next attempt.

        Args:
            error: The exception that occurred
            attempt: Current attempt number (0-based)
            base_delay: Base delay in seconds

        Returns:
            Delay in seconds before next retry
        """
        if isinstance(error, NormalizedError) and error.retry_after:
            return max(error.retry_after, base_delay * (2**attempt))

        return base_delay * (2**attempt)
