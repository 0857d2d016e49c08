"""OPPO App Market adapter."""

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
    ReleaseResult,
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

APP_STATUS = {
    0: "draft",
    1: "in_review",
    2: "approved",
    3: "rejected",
    4: "live",
}


class OppoAdapter(StoreAdapter):
    """Adapter for the OPPO App Market. Responses carry ``errno`` (0 on success)."""

    backend_id = "oppo"
    base_url = "https://oop-openapi-cn.heytapmobi.com/developer/v1"
    capabilities = StoreCapabilities(
        store_id="oppo",
        store_name="OPPO App Market",
        auth_method=AuthType.OAUTH2,
        supported_file_types=("apk",),
        supports_upload=True,
        max_file_size_mb=4096,
        requires_icp=True,
    )

    def _check(self, data: Mapping[str, Any], what: str, retryable: bool = False) -> None:
        if data.get("errno", 0) != 0:
            raise NormalizedError(
                f"{what} (errno {data.get('errno')})",
                ErrorCode.STORE_API_ERROR,
                backend_id=self.backend_id,
                retryable=retryable,
            )

    async def upload_build(self, params: UploadParams) -> UploadResult:
        path = await self.validate_artifact(params)

        async def operation() -> UploadResult:
            url_info = await self._request(
                "GET", "/upload/upload-url", headers=await self.auth_headers()
            )
            self._check(url_info, "Failed to get OPPO upload URL", retryable=True)
            sign = url_info["data"]["sign"]

            uploaded = await self._request(
                "PUT",
                url_info["data"]["upload_url"],
                data=await self._multipart(path, fields={"sign": sign}),
            )
            self._check(uploaded, "OPPO file upload failed", retryable=True)

            return UploadResult(
                success=True,
                build_id=sign,
                store_ref=(uploaded.get("data") or {}).get("url"),
                message="Build uploaded to OPPO",
            )

        return await self.with_retry(operation, "upload_build")

    async def create_release(self, params: ReleaseParams) -> ReleaseResult:
        notes = params.release_notes

        async def operation() -> ReleaseResult:
            data = await self._request(
                "POST",
                "/app/update-app-info",
                json={
                    "pkg_name": params.app_id,
                    "version_name": params.version_name,
                    "update_desc": notes.get("zh-CN") or notes.get("en-US") or "",
                },
                headers=await self.auth_headers(),
            )
            self._check(data, "Failed to update OPPO app info")
            return ReleaseResult(
                success=True,
                release_id=f"oppo-{params.app_id}-{params.version_name}",
                status="prepared",
                message="Release info updated on OPPO. Call submit_for_review to submit.",
            )

        return await self.with_retry(operation, "create_release")

    async def update_listing(self, params: ListingParams) -> Unsupported:
        return self.unsupported(
            "update_listing", "OPPO listing updates are done via create_release."
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
            data = await self._request(
                "POST",
                "/app/submit-audit",
                json={"pkg_name": params.app_id},
                headers=await self.auth_headers(),
            )
            self._check(data, "Failed to submit OPPO app for review")
            return SubmitResult(
                success=True,
                submission_id=f"oppo-submit-{params.app_id}",
                message="Submitted for OPPO review",
            )

        return await self.with_retry(operation, "submit_for_review")

    async def get_status(self, app_id: str) -> StatusResult:
        async def operation() -> StatusResult:
            data = await self._request(
                "GET",
                "/app/info",
                params={"pkg_name": app_id},
                headers=await self.auth_headers(),
            )
            info = data.get("data") or {}
            status = info.get("app_status")
            return StatusResult(
                app_id=app_id,
                store_name=self.capabilities.store_name,
                current_version=info.get("version_name"),
                review_status=APP_STATUS.get(status, "unknown"),
                live_status="live" if status == 4 else "not_live",
                last_updated=info.get("update_time"),
            )

        return await self.with_retry(operation, "get_status")

    async def get_analytics(self, params: AnalyticsParams) -> Unsupported:
        return self.unsupported("get_analytics", "OPPO analytics API is not supported.")

    async def get_reviews(self, params: ReviewListParams) -> Unsupported:
        return self.unsupported("get_reviews")

    async def rollback(self, params: RollbackParams) -> Unsupported:
        return self.unsupported("rollback", "OPPO does not support automated rollback via API.")
