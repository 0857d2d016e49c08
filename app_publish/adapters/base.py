"""
Resilient dispatch base for store adapters.

This module provides the abstract adapter contract together with the retry,
error normalization, rate limiting and HTTP plumbing every concrete adapter
composes with.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Awaitable, Callable, ClassVar, Dict, List, Mapping, Optional, TypeVar, Union

import aiofiles
import aiofiles.os
import aiohttp

from ..auth.manager import AuthManager
from ..config.models import RetryPolicy
from ..exceptions import ErrorCode, ErrorHandler, NormalizedError
from ..utils.rate_limit import RateLimiter, create_rate_limiter
from .models import (
    AnalyticsParams,
    AnalyticsResult,
    GetListingParams,
    GetListingResult,
    ListingParams,
    ListingResult,
    PromoteReleaseParams,
    ReleaseManagementResult,
    ReleaseParams,
    ReleaseResult,
    ResumeReleaseParams,
    ReviewItem,
    ReviewListParams,
    RollbackParams,
    RollbackResult,
    SetRolloutParams,
    StatusResult,
    StoreCapabilities,
    SubmitParams,
    SubmitResult,
    Unsupported,
    UploadParams,
    UploadResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REQUEST_TIMEOUT = 60.0


class StoreAdapter(ABC):
    """
    Base class for all store adapters.

    Subclasses set ``backend_id``, ``base_url`` and ``capabilities`` and
    implement every publishing operation. Operations a backend does not
    offer return :class:`Unsupported` instead of raising.
    """

    backend_id: ClassVar[str]
    base_url: ClassVar[str]
    capabilities: ClassVar[StoreCapabilities]

    def __init__(
        self,
        auth_manager: AuthManager,
        retry_policy: Optional[RetryPolicy] = None,
        rate_limiter: Optional[RateLimiter] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        """
        Initialize the adapter.

        Args:
            auth_manager: Shared authentication manager
            retry_policy: Retry settings (3 retries, 1s base delay if omitted)
            rate_limiter: Token bucket for this backend (defaults per backend)
            timeout: Total timeout for each backend request in seconds
        """
        policy = retry_policy or RetryPolicy()
        self.auth = auth_manager
        self.max_retries = policy.max_retries
        self.base_delay = policy.base_delay
        self.rate_limiter = rate_limiter or create_rate_limiter(self.backend_id)
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def get_capabilities(self) -> StoreCapabilities:
        return self.capabilities

    async def authenticate(self) -> None:
        """Acquire (or reuse) a valid token for this backend."""
        await self.auth.get_token(self.backend_id)

    async def auth_headers(self) -> Dict[str, str]:
        token = await self.auth.get_token(self.backend_id)
        return {"Authorization": f"Bearer {token}"}

    # Publishing operations

    @abstractmethod
    async def upload_build(self, params: UploadParams) -> Union[UploadResult, Unsupported]:
        ...

    @abstractmethod
    async def create_release(self, params: ReleaseParams) -> Union[ReleaseResult, Unsupported]:
        ...

    @abstractmethod
    async def update_listing(self, params: ListingParams) -> Union[ListingResult, Unsupported]:
        ...

    @abstractmethod
    async def get_listing(
        self, params: GetListingParams
    ) -> Union[GetListingResult, Unsupported]:
        ...

    @abstractmethod
    async def promote_release(
        self, params: PromoteReleaseParams
    ) -> Union[ReleaseManagementResult, Unsupported]:
        ...

    @abstractmethod
    async def set_rollout(
        self, params: SetRolloutParams
    ) -> Union[ReleaseManagementResult, Unsupported]:
        ...

    @abstractmethod
    async def resume_release(
        self, params: ResumeReleaseParams
    ) -> Union[ReleaseManagementResult, Unsupported]:
        ...

    @abstractmethod
    async def submit_for_review(self, params: SubmitParams) -> Union[SubmitResult, Unsupported]:
        ...

    @abstractmethod
    async def get_status(self, app_id: str) -> StatusResult:
        ...

    @abstractmethod
    async def get_analytics(
        self, params: AnalyticsParams
    ) -> Union[AnalyticsResult, Unsupported]:
        ...

    @abstractmethod
    async def get_reviews(
        self, params: ReviewListParams
    ) -> Union[List[ReviewItem], Unsupported]:
        ...

    @abstractmethod
    async def rollback(self, params: RollbackParams) -> Union[RollbackResult, Unsupported]:
        ...

    def unsupported(self, operation: str, message: Optional[str] = None) -> Unsupported:
        """Build the result for an operation this backend does not offer."""
        name = self.capabilities.store_name
        return Unsupported(
            operation=operation,
            backend_id=self.backend_id,
            message=message or f"{name} does not support {operation}.",
        )

    # Retry and error normalization

    async def with_retry(self, operation: Callable[[], Awaitable[T]], context: str) -> T:
        """
        Execute an operation with exponential backoff.

        The operation runs up to ``max_retries + 1`` times. A NormalizedError
        marked non-retryable is re-raised as is on the spot; anything else is
        retried after ``base_delay * 2**attempt`` seconds (longer if the
        backend sent Retry-After).

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            context: Label used in logs and in the final error message

        Returns:
            The operation's result

        Raises:
            NormalizedError: The non-retryable error, or the last error
                normalized once retries are exhausted
        """
        attempts = self.max_retries + 1
        attempt = 0

        while True:
            log_fields = {"backend_id": self.backend_id, "context": context, "attempt": attempt + 1}
            try:
                result = await operation()
                if attempt > 0:
                    logger.info(
                        "%s succeeded on attempt %d", context, attempt + 1, extra=log_fields
                    )
                return result
            except Exception as e:
                if isinstance(e, NormalizedError) and not e.retryable:
                    raise
                if attempt >= self.max_retries:
                    logger.error(
                        "%s failed after %d attempts", context, attempts, extra=log_fields
                    )
                    raise self.wrap_error(e, context) from e
                delay = ErrorHandler.get_retry_delay(e, attempt, self.base_delay)
                logger.warning(
                    "%s failed on attempt %d/%d, retrying in %.2fs: %s",
                    context,
                    attempt + 1,
                    attempts,
                    delay,
                    e,
                    extra=log_fields,
                )
            await asyncio.sleep(delay)
            attempt += 1

    def wrap_error(self, error: BaseException, context: str) -> NormalizedError:
        """
        Convert a failure into a non-retryable NormalizedError for this backend.

        A NormalizedError keeps its code, status and suggestion; anything else
        becomes ADAPTER_ERROR.
        """
        message = f"[{self.backend_id}] {context}: {getattr(error, 'message', None) or error}"
        if isinstance(error, NormalizedError):
            return NormalizedError(
                message,
                error.code,
                backend_id=self.backend_id,
                status_code=error.status_code,
                retryable=False,
                suggestion=error.suggestion,
                severity=error.severity,
                details={**error.details, "context": context},
            )
        return NormalizedError(
            message,
            ErrorCode.ADAPTER_ERROR,
            backend_id=self.backend_id,
            retryable=False,
            details={"context": context, "error_type": type(error).__name__},
        )

    # HTTP plumbing

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        data: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """
        Send one request to the backend.

        Waits for a rate-limiter token first. A 401 drops the cached token so
        the next operation authorizes afresh.

        Args:
            method: HTTP method
            path: Path relative to ``base_url``, or an absolute URL
            params: Query parameters
            json: JSON body
            data: Form or raw body
            headers: Request headers

        Returns:
            Decoded JSON body, ``{}`` for an empty body, or ``{"raw": text}``
            when the body is not JSON

        Raises:
            NormalizedError: For non-2xx responses and transport failures
        """
        await self.rate_limiter.consume()
        url = self._url(path)
        session = self._get_session()
        logger.debug("%s %s %s", self.backend_id, method, url)

        try:
            async with session.request(
                method, url, params=params, json=json, data=data, headers=headers
            ) as response:
                text = await response.text()
                if response.status >= 400:
                    if response.status == 401:
                        self.auth.invalidate_token(self.backend_id)
                    raise ErrorHandler.from_http_status(
                        response.status,
                        response.reason or f"HTTP {response.status}",
                        backend_id=self.backend_id,
                        headers=response.headers,
                        response_text=text,
                        url=url,
                    )
                if not text.strip():
                    return {}
                try:
                    return await response.json(content_type=None)
                except ValueError:
                    return {"raw": text}
        except NormalizedError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ErrorHandler.from_exception(e, backend_id=self.backend_id, url=url) from e

    async def _read_artifact(self, file_path: Union[str, Path]) -> bytes:
        async with aiofiles.open(Path(file_path).expanduser(), "rb") as f:
            return await f.read()

    async def _multipart(
        self,
        file_path: Union[str, Path],
        file_field: str = "file",
        fields: Optional[Mapping[str, Any]] = None,
    ) -> aiohttp.FormData:
        """Build a multipart body with the artifact and extra string fields."""
        path = Path(file_path).expanduser()
        form = aiohttp.FormData()
        for key, value in (fields or {}).items():
            form.add_field(key, str(value))
        form.add_field(
            file_field,
            await self._read_artifact(path),
            filename=path.name,
            content_type="application/octet-stream",
        )
        return form

    async def validate_artifact(self, params: UploadParams) -> Path:
        """
        Check a build artifact against this backend's limits before upload.

        Returns:
            The resolved artifact path

        Raises:
            NormalizedError: ARTIFACT_NOT_FOUND, ARTIFACT_INVALID_FORMAT or
                UPLOAD_SIZE_EXCEEDED (never retryable)
        """
        path = Path(params.file_path).expanduser()
        caps = self.capabilities

        try:
            stat = await aiofiles.os.stat(path)
        except FileNotFoundError as e:
            raise NormalizedError(
                f"Artifact not found: {path}",
                ErrorCode.ARTIFACT_NOT_FOUND,
                backend_id=self.backend_id,
            ) from e

        if not caps.supports_file_type(params.file_type):
            raise NormalizedError(
                f"{caps.store_name} does not accept .{params.file_type} files "
                f"(supported: {', '.join(caps.supported_file_types)})",
                ErrorCode.ARTIFACT_INVALID_FORMAT,
                backend_id=self.backend_id,
            )

        limit = caps.max_file_size_mb * 1024 * 1024
        if stat.st_size > limit:
            raise NormalizedError(
                f"Artifact is {stat.st_size / (1024 * 1024):.1f} MB, "
                f"{caps.store_name} accepts at most {caps.max_file_size_mb} MB",
                ErrorCode.UPLOAD_SIZE_EXCEEDED,
                backend_id=self.backend_id,
                details={"file_size": stat.st_size, "limit": limit},
            )

        return path

    async def close(self) -> None:
        """Close the adapter's HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "StoreAdapter":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
