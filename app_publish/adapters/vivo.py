"""vivo App Store adapter (HMAC-signed requests)."""

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

# 2 means approved and on sale
APP_STATUS = {
    0: "draft",
    1: "in_review",
    2: "live",
    3: "rejected",
    4: "removed",
}


class VivoAdapter(StoreAdapter):
    """
    Adapter for the vivo App Store.

    All calls go to a single router endpoint and are told apart by the
    ``method`` parameter. Each parameter set is signed with HMAC-SHA256 and
    sent with the signature in ``sign``.
    """

    backend_id = "vivo"
    base_url = "https://developer-api.vivo.com.cn/router/rest"
    capabilities = StoreCapabilities(
        store_id="vivo",
        store_name="vivo App Store",
        auth_method=AuthType.HMAC,
        supported_file_types=("apk",),
        supports_upload=True,
        max_file_size_mb=4096,
        requires_icp=True,
    )

    def _signed(self, method: str, package_name: str) -> Dict[str, str]:
        params = {
            "method": method,
            "access_key": self.auth.get_config(self.backend_id).get("access_key", ""),
            "timestamp": str(int(time.time() * 1000)),
            "packageName": package_name,
        }
        message = canonicalize_params(params)
        return {**params, "sign": self.auth.generate_hmac_signature(self.backend_id, message)}

    def _check(self, data: Mapping[str, Any], what: str, retryable: bool = False) -> None:
        if data.get("code", 0) != 0:
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
            fields = self._signed("app.upload.apk.app", params.app_id)
            data = await self._request(
                "POST", "", data=await self._multipart(path, fields=fields)
            )
            self._check(data, "vivo upload failed", retryable=True)
            return UploadResult(
                success=True,
                build_id=(data.get("data") or {}).get("serialnumber"),
                store_ref=f"vivo-{params.app_id}",
                message="Build uploaded to vivo App Store",
            )

        return await self.with_retry(operation, "upload_build")

    async def create_release(self, params: ReleaseParams) -> Unsupported:
        return self.unsupported(
            "create_release",
            "vivo does not have a separate release step; uploading the APK via "
            "upload_build triggers the review process automatically.",
        )

    async def update_listing(self, params: ListingParams) -> Unsupported:
        return self.unsupported(
            "update_listing",
            "vivo does not support programmatic listing updates via API. Please manage "
            "the store listing through the vivo Developer Console at https://dev.vivo.com.cn.",
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
            data = await self._request(
                "POST", "", data=self._signed("app.sync.update.app", params.app_id)
            )
            self._check(data, "vivo submit for review failed")
            return SubmitResult(
                success=True,
                submission_id=f"vivo-submit-{params.app_id}",
                message="Submitted for vivo review",
            )

        return await self.with_retry(operation, "submit_for_review")

    async def get_status(self, app_id: str) -> StatusResult:
        async def operation() -> StatusResult:
            await self.authenticate()
            data = await self._request(
                "POST", "", data=self._signed("app.query.task.status", app_id)
            )
            info = data.get("data") or {}
            status = info.get("status", 0)
            return StatusResult(
                app_id=app_id,
                store_name=self.capabilities.store_name,
                current_version=info.get("versionName"),
                review_status=APP_STATUS.get(status, "unknown"),
                live_status="live" if status == 2 else "not_live",
                last_updated=info.get("updateTime"),
            )

        return await self.with_retry(operation, "get_status")

    async def get_analytics(self, params: AnalyticsParams) -> Unsupported:
        return self.unsupported("get_analytics", "vivo analytics API is not supported.")

    async def get_reviews(self, params: ReviewListParams) -> Unsupported:
        return self.unsupported("get_reviews")

    async def rollback(self, params: RollbackParams) -> Unsupported:
        return self.unsupported("rollback", "vivo does not support automated rollback via API.")
