"""
Shared publishing workflow for AppGallery Connect style APIs.

Huawei AppGallery and Honor App Market expose the same ``/publish/v2``
endpoints: request an upload URL, push the file to storage, attach it to the
draft version, update the language info, then submit. Every JSON response
carries ``ret.code`` (0 on success).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Dict, Mapping, Optional

from ..exceptions import ErrorCode, NormalizedError
from .base import StoreAdapter
from .models import (
    ListingParams,
    ListingResult,
    PromoteReleaseParams,
    ReleaseParams,
    ReleaseResult,
    ResumeReleaseParams,
    SetRolloutParams,
    StatusResult,
    SubmitParams,
    SubmitResult,
    Unsupported,
    UploadParams,
    UploadResult,
)

# releaseType=1 is a full (non-phased) release.
FULL_RELEASE = 1

AUDIT_STATUS = {
    0: "draft",
    1: "in_review",
    2: "approved",
    3: "rejected",
    4: "revoked",
}

FILE_TYPE_CODES = {"apk": 1, "aab": 3, "hap": 5}


class ConnectApiAdapter(StoreAdapter):
    """Base for backends speaking the ``/publish/v2`` API."""

    # Prefix for generated release and submission ids
    id_prefix: ClassVar[str]

    def _check(
        self,
        data: Mapping[str, Any],
        what: str,
        retryable: bool = False,
        code: ErrorCode = ErrorCode.STORE_API_ERROR,
    ) -> None:
        ret = data.get("ret") or {}
        if ret.get("code", 0) != 0:
            raise NormalizedError(
                f"{what}: {ret.get('msg', 'unknown error')}",
                code,
                backend_id=self.backend_id,
                retryable=retryable,
                details={"ret_code": ret.get("code")},
            )

    def _app_params(self, app_id: str) -> Dict[str, Any]:
        return {"appId": app_id, "releaseType": FULL_RELEASE}

    async def upload_build(self, params: UploadParams) -> UploadResult:
        path = await self.validate_artifact(params)
        suffix = params.file_type.lower() or "apk"

        async def operation() -> UploadResult:
            headers = await self.auth_headers()
            url_info = await self._request(
                "GET",
                "/publish/v2/upload-url",
                params={**self._app_params(params.app_id), "suffix": suffix},
                headers=headers,
            )
            self._check(url_info, "Failed to get upload URL", retryable=True)
            auth_code = url_info["authCode"]

            uploaded = await self._request(
                "POST",
                url_info["uploadUrl"],
                data=await self._multipart(
                    path, fields={"authCode": auth_code, "fileCount": 1}
                ),
            )
            dest_uri = self._uploaded_file_uri(uploaded)
            if dest_uri is None:
                raise NormalizedError(
                    f"File upload to {self.capabilities.store_name} storage failed",
                    ErrorCode.STORE_API_ERROR,
                    backend_id=self.backend_id,
                    retryable=True,
                )

            file_info = await self._request(
                "PUT",
                "/publish/v2/app-file-info",
                params=self._app_params(params.app_id),
                json={
                    "fileType": FILE_TYPE_CODES.get(suffix, 1),
                    "files": [{"fileName": Path(path).name, "fileDestUrl": dest_uri}],
                },
                headers=headers,
            )
            self._check(file_info, "Failed to update file info", retryable=True)

            return UploadResult(
                success=True,
                build_id=auth_code,
                store_ref=f"{self.id_prefix}-{params.app_id}",
                message=f"Build uploaded to {self.capabilities.store_name}",
            )

        return await self.with_retry(operation, "upload_build")

    @staticmethod
    def _uploaded_file_uri(response: Mapping[str, Any]) -> Optional[str]:
        result = (response.get("result") or {}).get("UploadFileRsp") or {}
        files = result.get("fileInfoList") or []
        if result.get("ifSuccess") != 0 or not files:
            return None
        return files[0].get("fileDestURI") or None

    async def create_release(self, params: ReleaseParams) -> ReleaseResult:
        notes = params.release_notes
        body = {
            "lang": "zh-CN",
            "appName": params.version_name,
            "newFeatures": notes.get("zh-CN") or notes.get("en-US") or "",
        }

        async def operation() -> ReleaseResult:
            data = await self._request(
                "PUT",
                "/publish/v2/app-language-info",
                params=self._app_params(params.app_id),
                json=body,
                headers=await self.auth_headers(),
            )
            self._check(data, "Failed to update release info")
            return ReleaseResult(
                success=True,
                release_id=f"{self.id_prefix}-{params.app_id}-{params.version_name}",
                status="prepared",
                message="Release info updated. Call submit_for_review to submit.",
            )

        return await self.with_retry(operation, "create_release")

    async def update_listing(self, params: ListingParams) -> ListingResult:
        body = {"lang": params.locale}
        if params.title:
            body["appName"] = params.title
        if params.short_description:
            body["briefInfo"] = params.short_description
        if params.full_description:
            body["appDesc"] = params.full_description

        async def operation() -> ListingResult:
            data = await self._request(
                "PUT",
                "/publish/v2/app-language-info",
                params=self._app_params(params.app_id),
                json=body,
                headers=await self.auth_headers(),
            )
            self._check(data, "Failed to update listing")
            return ListingResult(
                success=True, message=f"Listing updated for locale {params.locale}"
            )

        return await self.with_retry(operation, "update_listing")

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
                "/publish/v2/app-submit",
                params=self._app_params(params.app_id),
                json={},
                headers=await self.auth_headers(),
            )
            self._check(data, "Failed to submit for review")
            return SubmitResult(
                success=True,
                submission_id=f"{self.id_prefix}-submit-{params.app_id}",
                message=f"Submitted for {self.capabilities.store_name} review",
            )

        return await self.with_retry(operation, "submit_for_review")

    async def get_status(self, app_id: str) -> StatusResult:
        async def operation() -> StatusResult:
            data = await self._request(
                "GET",
                "/publish/v2/app-info",
                params={"appId": app_id},
                headers=await self.auth_headers(),
            )
            self._check(data, "Failed to query app info")
            info = data.get("appInfo") or {}
            return StatusResult(
                app_id=app_id,
                store_name=self.capabilities.store_name,
                current_version=info.get("versionNumber"),
                review_status=AUDIT_STATUS.get(info.get("auditStatus"), "unknown"),
                live_status="live" if info.get("releaseState") == 1 else "not_live",
                last_updated=info.get("updateTime"),
            )

        return await self.with_retry(operation, "get_status")
