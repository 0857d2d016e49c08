"""Xiaomi App Store adapter (RSA-signed requests)."""

from __future__ import annotations

from typing import Any, Dict, Mapping

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

AUDIT_STATUS = {
    0: "draft",
    1: "in_review",
    2: "approved",
    3: "rejected",
}


class XiaomiAdapter(StoreAdapter):
    """
    Adapter for the Xiaomi App Store.

    There is no bearer token: every request carries a ``sig`` parameter, the
    RSA-SHA256 signature of its other parameters.
    """

    backend_id = "xiaomi"
    base_url = "https://api.developer.xiaomi.com/devupload"
    capabilities = StoreCapabilities(
        store_id="xiaomi",
        store_name="Xiaomi App Store",
        auth_method=AuthType.RSA,
        supported_file_types=("apk",),
        supports_upload=True,
        max_file_size_mb=4096,
        requires_icp=True,
    )

    def _signed(self, method: str, uri: str, params: Mapping[str, str]) -> Dict[str, str]:
        signature = self.auth.sign_request(self.backend_id, method, uri, params)
        return {**params, "sig": signature}

    async def upload_build(self, params: UploadParams) -> UploadResult:
        path = await self.validate_artifact(params)

        async def operation() -> UploadResult:
            await self.authenticate()
            fields = self._signed(
                "POST", "/dev/push", {"appId": params.app_id, "fileName": path.name}
            )
            data: Mapping[str, Any] = await self._request(
                "POST",
                "/dev/push",
                data=await self._multipart(path, file_field="apk", fields=fields),
            )
            if data.get("result", 0) != 0:
                raise NormalizedError(
                    f"Xiaomi upload failed: {data.get('message', 'unknown error')}",
                    ErrorCode.STORE_API_ERROR,
                    backend_id=self.backend_id,
                    retryable=True,
                )
            return UploadResult(
                success=True,
                build_id=params.app_id,
                store_ref=f"xiaomi-{params.app_id}",
                message="Build uploaded to Xiaomi App Store",
            )

        return await self.with_retry(operation, "upload_build")

    async def create_release(self, params: ReleaseParams) -> Unsupported:
        return self.unsupported(
            "create_release",
            "Xiaomi does not have a separate release step. Upload triggers the process.",
        )

    async def update_listing(self, params: ListingParams) -> Unsupported:
        return self.unsupported(
            "update_listing", "Xiaomi listing is managed via the developer console."
        )

    async def get_listing(self, params: GetListingParams) -> Unsupported:
        return self.unsupported(
            "get_listing", "Xiaomi listing is managed via the developer console."
        )

    async def promote_release(self, params: PromoteReleaseParams) -> Unsupported:
        return self.unsupported("promote_release")

    async def set_rollout(self, params: SetRolloutParams) -> Unsupported:
        return self.unsupported("set_rollout")

    async def resume_release(self, params: ResumeReleaseParams) -> Unsupported:
        return self.unsupported("resume_release")

    async def submit_for_review(self, params: SubmitParams) -> Unsupported:
        return self.unsupported(
            "submit_for_review", "Xiaomi submission is triggered automatically on upload."
        )

    async def get_status(self, app_id: str) -> StatusResult:
        async def operation() -> StatusResult:
            await self.authenticate()
            data = await self._request(
                "GET", "/dev/query", params=self._signed("GET", "/dev/query", {"appId": app_id})
            )
            info = data.get("data") or {}
            return StatusResult(
                app_id=app_id,
                store_name=self.capabilities.store_name,
                current_version=info.get("versionName"),
                review_status=AUDIT_STATUS.get(info.get("auditStatus", 0), "unknown"),
                live_status="live" if info.get("onlineStatus") == 1 else "not_live",
                last_updated=info.get("updateTime"),
            )

        return await self.with_retry(operation, "get_status")

    async def get_analytics(self, params: AnalyticsParams) -> Unsupported:
        return self.unsupported("get_analytics", "Xiaomi analytics API is not supported.")

    async def get_reviews(self, params: ReviewListParams) -> Unsupported:
        return self.unsupported("get_reviews")

    async def rollback(self, params: RollbackParams) -> Unsupported:
        return self.unsupported(
            "rollback", "Xiaomi does not support automated rollback via API."
        )
