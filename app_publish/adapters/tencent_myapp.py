"""
Tencent MyApp adapter.

Requests are signed with the app secret (HMAC-SHA256 over the sorted
parameters, sent as ``sig``). MyApp only accepts hardened APKs; an unhardened
build uploads fine but is rejected in review.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Mapping

from ..auth.base import AuthType
from ..auth.signing import canonicalize_params
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
    SubmitResult,
    Unsupported,
    UploadParams,
    UploadResult,
)

AUDIT_STATUS = {
    0: "draft",
    1: "in_review",
    2: "live",
    3: "rejected",
    4: "removed",
}


class TencentMyAppAdapter(StoreAdapter):
    """Adapter for Tencent MyApp."""

    backend_id = "tencent_myapp"
    base_url = "https://api.open.qq.com"
    capabilities = StoreCapabilities(
        store_id="tencent_myapp",
        store_name="Tencent MyApp",
        auth_method=AuthType.HMAC,
        supported_file_types=("apk",),
        supports_upload=True,
        max_file_size_mb=500,
        requires_icp=True,
    )

    def _signed(self, package_name: str) -> Dict[str, str]:
        params = {
            "app_key": self.auth.get_config(self.backend_id).get("app_key", ""),
            "timestamp": str(int(time.time())),
            "pkg_name": package_name,
        }
        message = canonicalize_params(params)
        return {**params, "sig": self.auth.generate_hmac_signature(self.backend_id, message)}

    def _check(self, data: Mapping[str, Any], what: str, retryable: bool = False) -> None:
        if data.get("ret", 0) != 0:
            raise NormalizedError(
                f"{what}: {data.get('msg', 'unknown error')}",
                ErrorCode.STORE_API_ERROR,
                backend_id=self.backend_id,
                retryable=retryable,
            )

    async def upload_build(self, params: UploadParams) -> UploadResult:
        path = await self.validate_artifact(params)

        async def operation() -> UploadResult:
            await self.authenticate()
            data = await self._request(
                "POST",
                "/app/upload",
                data=await self._multipart(
                    path, file_field="apk_file", fields=self._signed(params.app_id)
                ),
            )
            self._check(data, "Tencent MyApp upload failed", retryable=True)
            return UploadResult(
                success=True,
                build_id=(data.get("data") or {}).get("apk_id"),
                store_ref=f"tencent-myapp-{params.app_id}",
                message=(
                    "Build uploaded to Tencent MyApp. The APK must be hardened "
                    "or it will be rejected during review."
                ),
            )

        return await self.with_retry(operation, "upload_build")

    async def create_release(self, params: ReleaseParams) -> Unsupported:
        return self.unsupported(
            "create_release",
            "Tencent MyApp does not have a separate release step; upload the APK "
            "and call submit_for_review.",
        )

    async def update_listing(self, params: ListingParams) -> Unsupported:
        return self.unsupported(
            "update_listing",
            "Tencent MyApp does not support programmatic listing updates via API. "
            "Please manage the store listing through the Tencent Open Platform console.",
        )

    async def get_listing(self, params: GetListingParams) -> Unsupported:
        return self.unsupported("get_listing")

    async def promote_release(self, params: PromoteReleaseParams) -> Unsupported:
        return self.unsupported("promote_release")

    async def set_rollout(self, params: SetRolloutParams) -> Unsupported:
        return self.unsupported("set_rollout")

    async def resume_release(self, params: ResumeReleaseParams) -> Unsupported:
        return self.unsupported("resume_release")

    async def submit_for_review(self, params: SubmitParams) -> SubmitResult:
        async def operation() -> SubmitResult:
            await self.authenticate()
            data = await self._request("POST", "/app/submit", data=self._signed(params.app_id))
            self._check(data, "Tencent MyApp submit failed")
            return SubmitResult(
                success=True,
                submission_id=f"tencent-myapp-submit-{params.app_id}",
                message="Submitted for Tencent MyApp review",
            )

        return await self.with_retry(operation, "submit_for_review")

    async def get_status(self, app_id: str) -> StatusResult:
        async def operation() -> StatusResult:
            await self.authenticate()
            data = await self._request("POST", "/app/info", data=self._signed(app_id))
            info = data.get("data") or {}
            status = info.get("audit_status", 0)
            return StatusResult(
                app_id=app_id,
                store_name=self.capabilities.store_name,
                current_version=info.get("version_name"),
                review_status=AUDIT_STATUS.get(status, "unknown"),
                live_status="live" if status == 2 else "not_live",
                last_updated=info.get("update_time"),
            )

        return await self.with_retry(operation, "get_status")

    async def get_analytics(self, params: AnalyticsParams) -> Unsupported:
        return self.unsupported("get_analytics", "Tencent MyApp analytics API is not supported.")

    async def get_reviews(self, params: ReviewListParams) -> Unsupported:
        return self.unsupported("get_reviews")

    async def rollback(self, params: RollbackParams) -> Unsupported:
        return self.unsupported(
            "rollback", "Tencent MyApp does not support automated rollback via API."
        )
