"""
Pgyer adapter.

Pgyer is a test distribution platform: builds are uploaded and shared, but
there are no formal releases, listings or reviews. Requests carry the API key
as the ``_api_key`` form field.
"""

from __future__ import annotations

from typing import Any, Mapping

from ..auth.base import AuthType
from ..exceptions import ErrorCode, NormalizedError
from .base import StoreAdapter
from .models import (
    AnalyticsParams,
    GetListingParams,
    ListingParams,
    PromoteReleaseParams,
    ReleaseParams,
    ResumeReleaseParams,
    ReviewListParams,
    RollbackParams,
    SetRolloutParams,
    StatusResult,
    StoreCapabilities,
    SubmitParams,
    Unsupported,
    UploadParams,
    UploadResult,
)


class PgyerAdapter(StoreAdapter):
    """Adapter for Pgyer."""

    backend_id = "pgyer"
    base_url = "https://www.pgyer.com/apiv2"
    capabilities = StoreCapabilities(
        store_id="pgyer",
        store_name="Pgyer",
        auth_method=AuthType.API_KEY,
        supported_file_types=("apk", "ipa"),
        supports_upload=True,
        max_file_size_mb=4096,
        requires_icp=False,
    )

    def _check(self, data: Mapping[str, Any], what: str, retryable: bool = False) -> None:
        if data.get("code", 0) != 0:
            raise NormalizedError(
                f"{what}: {data.get('message', 'unknown error')}",
                ErrorCode.STORE_API_ERROR,
                backend_id=self.backend_id,
                retryable=retryable,
            )

    async def upload_build(self, params: UploadParams) -> UploadResult:
        path = await self.validate_artifact(params)

        async def operation() -> UploadResult:
            fields = {"_api_key": await self.auth.get_token(self.backend_id)}
            data = await self._request(
                "POST", "/app/upload", data=await self._multipart(path, fields=fields)
            )
            self._check(data, "Pgyer upload failed", retryable=True)

            build = data.get("data") or {}
            return UploadResult(
                success=True,
                build_id=build.get("buildKey"),
                store_ref=build.get("buildShortcutUrl"),
                message=f"Build uploaded to Pgyer (v{build.get('buildVersion')})",
            )

        return await self.with_retry(operation, "upload_build")

    async def create_release(self, params: ReleaseParams) -> Unsupported:
        return self.unsupported(
            "create_release",
            "Pgyer is a test distribution platform and does not support formal releases.",
        )

    async def update_listing(self, params: ListingParams) -> Unsupported:
        return self.unsupported("update_listing", "Pgyer does not support listing management.")

    async def get_listing(self, params: GetListingParams) -> Unsupported:
        return self.unsupported("get_listing", "Pgyer does not support listing management.")

    async def promote_release(self, params: PromoteReleaseParams) -> Unsupported:
        return self.unsupported("promote_release")

    async def set_rollout(self, params: SetRolloutParams) -> Unsupported:
        return self.unsupported("set_rollout")

    async def resume_release(self, params: ResumeReleaseParams) -> Unsupported:
        return self.unsupported("resume_release")

    async def submit_for_review(self, params: SubmitParams) -> Unsupported:
        return self.unsupported(
            "submit_for_review", "Pgyer does not require review submission."
        )

    async def get_status(self, app_id: str) -> StatusResult:
        async def operation() -> StatusResult:
            data = await self._request(
                "POST",
                "/app/view",
                data={"_api_key": await self.auth.get_token(self.backend_id), "appKey": app_id},
            )
            self._check(data, "Pgyer status query failed")
            build = data.get("data") or {}
            return StatusResult(
                app_id=app_id,
                store_name=self.capabilities.store_name,
                current_version=build.get("buildVersion"),
                review_status="not_applicable",
                live_status="distributed",
                last_updated=build.get("buildUpdated"),
            )

        return await self.with_retry(operation, "get_status")

    async def get_analytics(self, params: AnalyticsParams) -> Unsupported:
        return self.unsupported("get_analytics", "Pgyer does not provide analytics API.")

    async def get_reviews(self, params: ReviewListParams) -> Unsupported:
        return self.unsupported("get_reviews")

    async def rollback(self, params: RollbackParams) -> Unsupported:
        return self.unsupported("rollback", "Pgyer does not support rollback.")
