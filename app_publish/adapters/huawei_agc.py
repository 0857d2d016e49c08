"""Huawei AppGallery Connect adapter."""

from __future__ import annotations

from typing import Any, Dict, List

from ..auth.base import AuthType
from .connect_api import ConnectApiAdapter
from .models import (
    AnalyticsParams,
    AnalyticsResult,
    GetListingParams,
    GetListingResult,
    Listing,
    ReviewItem,
    ReviewListParams,
    RollbackParams,
    StoreCapabilities,
    Unsupported,
)


class HuaweiAgcAdapter(ConnectApiAdapter):
    """
    Adapter for Huawei AppGallery.

    Requests carry the OAuth client id in a ``client_id`` header next to the
    bearer token.
    """

    backend_id = "huawei_agc"
    base_url = "https://connect-api.cloud.huawei.com/api"
    id_prefix = "agc"
    capabilities = StoreCapabilities(
        store_id="huawei_agc",
        store_name="Huawei AppGallery",
        auth_method=AuthType.OAUTH2,
        supported_file_types=("apk", "aab", "hap"),
        supports_upload=True,
        supports_listing=True,
        supports_review=True,
        supports_analytics=True,
        supports_rollback=False,
        supports_staged_rollout=False,
        max_file_size_mb=4096,
        requires_icp=True,
    )

    async def auth_headers(self) -> Dict[str, str]:
        headers = await super().auth_headers()
        headers["client_id"] = self.auth.get_config(self.backend_id).get("client_id", "")
        return headers

    async def get_listing(self, params: GetListingParams) -> GetListingResult:
        locale = params.locale or "zh-CN"

        async def operation() -> GetListingResult:
            data = await self._request(
                "GET",
                "/publish/v2/app-language-info",
                params={"appId": params.app_id},
                headers=await self.auth_headers(),
            )
            ret = data.get("ret") or {}
            if ret.get("code", 0) != 0:
                return GetListingResult(
                    success=False, message=f"Failed to get listing: {ret.get('msg')}"
                )

            languages = data.get("languages") or []
            info = next((lang for lang in languages if lang.get("lang") == locale), None)
            if info is None and languages:
                info = languages[0]
            if info is None:
                return GetListingResult(
                    success=False, message=f"No listing found for locale '{locale}'"
                )

            return GetListingResult(
                success=True,
                listing=Listing(
                    title=info.get("appName"),
                    description=info.get("appDesc"),
                    short_description=info.get("briefInfo"),
                    locale=info.get("lang"),
                ),
            )

        return await self.with_retry(operation, "get_listing")

    async def get_analytics(self, params: AnalyticsParams) -> AnalyticsResult:
        async def operation() -> AnalyticsResult:
            data = await self._request(
                "POST",
                "/report/distribution-operation-quality/v1/appDownloadExport",
                json={
                    "startTime": params.start_date,
                    "endTime": params.end_date,
                    "appId": params.app_id,
                },
                headers=await self.auth_headers(),
            )
            ret = data.get("ret") or {}
            if ret.get("code", 0) != 0:
                return AnalyticsResult(
                    success=False, message=f"Analytics query failed: {ret.get('msg')}"
                )
            return AnalyticsResult(success=True, data=data.get("data") or {})

        return await self.with_retry(operation, "get_analytics")

    async def get_reviews(self, params: ReviewListParams) -> List[ReviewItem]:
        query: Dict[str, Any] = {
            "appId": params.app_id,
            "pageSize": params.page_size,
            "pageNum": int(params.page_token or 1),
            "orderType": 2,  # latest first
        }

        async def operation() -> List[ReviewItem]:
            data = await self._request(
                "GET", "/publish/v2/comments", params=query, headers=await self.auth_headers()
            )
            return [
                ReviewItem(
                    review_id=str(comment["commentId"]),
                    author=comment.get("nickName", ""),
                    rating=int(comment.get("rating", 0)),
                    title=comment.get("commentTitle"),
                    body=comment.get("commentBody", ""),
                    date=comment.get("commentTime", ""),
                    locale=comment.get("langName"),
                )
                for comment in data.get("comments") or []
            ]

        return await self.with_retry(operation, "get_reviews")

    async def rollback(self, params: RollbackParams) -> Unsupported:
        return self.unsupported(
            "rollback",
            "Huawei AGC does not support automated rollback via API. "
            "Please use the AGC Console manually.",
        )
