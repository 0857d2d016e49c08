"""Honor App Market adapter."""

from __future__ import annotations

from ..auth.base import AuthType
from .connect_api import ConnectApiAdapter
from .models import (
    AnalyticsParams,
    GetListingParams,
    ReviewListParams,
    RollbackParams,
    StoreCapabilities,
    Unsupported,
)


class HonorAdapter(ConnectApiAdapter):
    """Adapter for the Honor App Market."""

    backend_id = "honor"
    base_url = "https://connect-api.cloud.honor.com/api"
    id_prefix = "honor"
    capabilities = StoreCapabilities(
        store_id="honor",
        store_name="Honor App Market",
        auth_method=AuthType.OAUTH2,
        supported_file_types=("apk", "aab"),
        supports_upload=True,
        supports_listing=True,
        supports_review=False,
        supports_analytics=False,
        supports_rollback=False,
        supports_staged_rollout=False,
        max_file_size_mb=4096,
        requires_icp=True,
    )

    async def get_listing(self, params: GetListingParams) -> Unsupported:
        return self.unsupported("get_listing", "Reading listings is not supported via the Honor API.")

    async def get_analytics(self, params: AnalyticsParams) -> Unsupported:
        return self.unsupported("get_analytics", "Honor analytics API is not supported.")

    async def get_reviews(self, params: ReviewListParams) -> Unsupported:
        return self.unsupported("get_reviews", "Honor user reviews are not available via API.")

    async def rollback(self, params: RollbackParams) -> Unsupported:
        return self.unsupported(
            "rollback", "Honor does not support automated rollback via API."
        )
