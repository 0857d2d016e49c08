"""
Apple App Store Connect API adapter.

Authorization is an ES256 JWT signed with an API key. Builds cannot be
uploaded over REST; they go through Transporter or ``altool``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..auth.base import AuthType
from .base import StoreAdapter
from .models import (
    AnalyticsParams,
    GetListingParams,
    GetListingResult,
    Listing,
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
)

EDITABLE_STATES = "PREPARE_FOR_SUBMISSION,DEVELOPER_ACTION_NEEDED"
ACTIVE_STATES = "WAITING_FOR_REVIEW,IN_REVIEW,PENDING_DEVELOPER_RELEASE,READY_FOR_DISTRIBUTION"
RELEASED_STATES = "PENDING_DEVELOPER_RELEASE,READY_FOR_DISTRIBUTION"


class AppStoreAdapter(StoreAdapter):
    """Adapter for the Apple App Store."""

    backend_id = "app_store"
    base_url = "https://api.appstoreconnect.apple.com/v1"
    capabilities = StoreCapabilities(
        store_id="app_store",
        store_name="Apple App Store",
        auth_method=AuthType.JWT,
        supported_file_types=("ipa",),
        supports_upload=False,
        supports_listing=True,
        supports_review=True,
        supports_analytics=True,
        supports_rollback=True,
        supports_staged_rollout=True,
        max_file_size_mb=4000,
        requires_icp=False,
    )

    async def auth_headers(self) -> Dict[str, str]:
        headers = await super().auth_headers()
        headers["Content-Type"] = "application/json"
        return headers

    async def _versions(
        self, app_id: str, states: str, limit: Optional[int] = None, include: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"filter[appStoreState]": states}
        if limit:
            query["limit"] = limit
        if include:
            query["include"] = include
        data = await self._request(
            "GET",
            f"/apps/{app_id}/appStoreVersions",
            params=query,
            headers=await self.auth_headers(),
        )
        return data.get("data") or []

    async def _localizations(self, version_id: str) -> List[Dict[str, Any]]:
        data = await self._request(
            "GET",
            f"/appStoreVersions/{version_id}/appStoreVersionLocalizations",
            headers=await self.auth_headers(),
        )
        return data.get("data") or []

    async def _released_versions(self, app_id: str) -> List[Dict[str, Any]]:
        return await self._versions(
            app_id, RELEASED_STATES, include="appStoreVersionPhasedRelease"
        )

    @staticmethod
    def _phased_release_id(versions: List[Dict[str, Any]]) -> Optional[str]:
        if not versions:
            return None
        relationship = (versions[0].get("relationships") or {}).get(
            "appStoreVersionPhasedRelease"
        ) or {}
        phased = relationship.get("data")
        return phased["id"] if phased else None

    async def _set_phased_state(self, phased_id: str, state: str) -> None:
        await self._request(
            "PATCH",
            f"/appStoreVersionPhasedReleases/{phased_id}",
            json={
                "data": {
                    "type": "appStoreVersionPhasedReleases",
                    "id": phased_id,
                    "attributes": {"phasedReleaseState": state},
                }
            },
            headers=await self.auth_headers(),
        )

    async def upload_build(self, params: UploadParams) -> Unsupported:
        return self.unsupported(
            "upload_build",
            "IPA upload requires Transporter CLI. Run: xcrun altool --upload-app "
            "-f app.ipa -t ios -u USER -p @keychain:AC_PASSWORD",
        )

    async def create_release(self, params: ReleaseParams) -> ReleaseResult:
        scheduled = params.rollout_percentage is not None and params.rollout_percentage < 100

        async def operation() -> ReleaseResult:
            data = await self._request(
                "POST",
                "/appStoreVersions",
                json={
                    "data": {
                        "type": "appStoreVersions",
                        "attributes": {
                            "platform": "IOS",
                            "versionString": params.version_name,
                            "releaseType": "SCHEDULED" if scheduled else "AFTER_APPROVAL",
                        },
                        "relationships": {
                            "app": {"data": {"type": "apps", "id": params.app_id}}
                        },
                    }
                },
                headers=await self.auth_headers(),
            )
            version = data["data"]
            return ReleaseResult(
                success=True,
                release_id=version["id"],
                status=(version.get("attributes") or {}).get("appStoreState"),
            )

        return await self.with_retry(operation, "create_release")

    async def update_listing(self, params: ListingParams) -> ListingResult:
        async def operation() -> ListingResult:
            versions = await self._versions(params.app_id, EDITABLE_STATES)
            if not versions:
                return ListingResult(success=False, message="No editable app store version found")
            version_id = versions[0]["id"]

            localization = next(
                (
                    loc
                    for loc in await self._localizations(version_id)
                    if (loc.get("attributes") or {}).get("locale") == params.locale
                ),
                None,
            )

            if localization is not None:
                attributes: Dict[str, str] = {}
                if params.full_description:
                    attributes["description"] = params.full_description
                if params.short_description:
                    attributes["promotionalText"] = params.short_description
                await self._request(
                    "PATCH",
                    f"/appStoreVersionLocalizations/{localization['id']}",
                    json={
                        "data": {
                            "type": "appStoreVersionLocalizations",
                            "id": localization["id"],
                            "attributes": attributes,
                        }
                    },
                    headers=await self.auth_headers(),
                )
            else:
                await self._request(
                    "POST",
                    "/appStoreVersionLocalizations",
                    json={
                        "data": {
                            "type": "appStoreVersionLocalizations",
                            "attributes": {
                                "locale": params.locale,
                                "description": params.full_description or "",
                                "promotionalText": params.short_description or "",
                            },
                            "relationships": {
                                "appStoreVersion": {
                                    "data": {"type": "appStoreVersions", "id": version_id}
                                }
                            },
                        }
                    },
                    headers=await self.auth_headers(),
                )

            return ListingResult(
                success=True, message=f"Listing updated for locale {params.locale}"
            )

        return await self.with_retry(operation, "update_listing")

    async def get_listing(self, params: GetListingParams) -> GetListingResult:
        async def operation() -> GetListingResult:
            versions = await self._versions(params.app_id, f"{EDITABLE_STATES},{ACTIVE_STATES}", limit=1)
            if not versions:
                return GetListingResult(success=False, message="No app store version found")

            localizations = await self._localizations(versions[0]["id"])
            match = next(
                (
                    loc
                    for loc in localizations
                    if params.locale is None
                    or (loc.get("attributes") or {}).get("locale") == params.locale
                ),
                None,
            )
            if match is None:
                return GetListingResult(
                    success=False, message=f"No localization for locale {params.locale}"
                )

            attributes = match.get("attributes") or {}
            return GetListingResult(
                success=True,
                listing=Listing(
                    description=attributes.get("description"),
                    short_description=attributes.get("promotionalText"),
                    locale=attributes.get("locale"),
                ),
            )

        return await self.with_retry(operation, "get_listing")

    async def promote_release(self, params: PromoteReleaseParams) -> Unsupported:
        return self.unsupported(
            "promote_release", "App Store Connect has no release tracks to promote between."
        )

    async def set_rollout(self, params: SetRolloutParams) -> Unsupported:
        return self.unsupported(
            "set_rollout",
            "Apple phased release follows a fixed 7-day schedule; only pause and resume "
            "are available.",
        )

    async def resume_release(self, params: ResumeReleaseParams) -> ReleaseManagementResult:
        async def operation() -> ReleaseManagementResult:
            phased_id = self._phased_release_id(await self._released_versions(params.app_id))
            if phased_id is None:
                return ReleaseManagementResult(
                    success=False, message="No phased release found to resume"
                )
            await self._set_phased_state(phased_id, "ACTIVE")
            return ReleaseManagementResult(success=True, message="Phased release resumed")

        return await self.with_retry(operation, "resume_release")

    async def submit_for_review(self, params: SubmitParams) -> SubmitResult:
        async def operation() -> SubmitResult:
            versions = await self._versions(params.app_id, "PREPARE_FOR_SUBMISSION")
            if not versions:
                return SubmitResult(
                    success=False, message="No version in PREPARE_FOR_SUBMISSION state found"
                )

            data = await self._request(
                "POST",
                "/appStoreVersionSubmissions",
                json={
                    "data": {
                        "type": "appStoreVersionSubmissions",
                        "relationships": {
                            "appStoreVersion": {
                                "data": {"type": "appStoreVersions", "id": versions[0]["id"]}
                            }
                        },
                    }
                },
                headers=await self.auth_headers(),
            )
            return SubmitResult(
                success=True,
                submission_id=data["data"]["id"],
                message="Submitted for App Review",
            )

        return await self.with_retry(operation, "submit_for_review")

    async def get_status(self, app_id: str) -> StatusResult:
        async def operation() -> StatusResult:
            versions = await self._versions(app_id, ACTIVE_STATES, limit=1)
            attributes = (versions[0].get("attributes") or {}) if versions else {}
            state = attributes.get("appStoreState")
            return StatusResult(
                app_id=app_id,
                store_name=self.capabilities.store_name,
                current_version=attributes.get("versionString"),
                review_status=state or "no_active_version",
                live_status="live" if state == "READY_FOR_DISTRIBUTION" else "pending",
                last_updated=attributes.get("createdDate"),
            )

        return await self.with_retry(operation, "get_status")

    async def get_analytics(self, params: AnalyticsParams) -> Unsupported:
        return self.unsupported(
            "get_analytics",
            "Apple analytics require the App Store Connect Analytics Reports API.",
        )

    async def get_reviews(self, params: ReviewListParams) -> List[ReviewItem]:
        async def operation() -> List[ReviewItem]:
            query: Dict[str, Any] = {"limit": params.page_size, "sort": "-createdDate"}
            if params.page_token:
                query["cursor"] = params.page_token
            data = await self._request(
                "GET",
                f"/apps/{params.app_id}/customerReviews",
                params=query,
                headers=await self.auth_headers(),
            )
            items = []
            for review in data.get("data") or []:
                attributes = review.get("attributes") or {}
                items.append(
                    ReviewItem(
                        review_id=review["id"],
                        author=attributes.get("reviewerNickname", ""),
                        rating=int(attributes.get("rating", 0)),
                        title=attributes.get("title"),
                        body=attributes.get("body", ""),
                        date=attributes.get("createdDate", ""),
                        locale=attributes.get("territory"),
                    )
                )
            return items

        return await self.with_retry(operation, "get_reviews")

    async def rollback(self, params: RollbackParams) -> RollbackResult:
        async def operation() -> RollbackResult:
            versions = await self._released_versions(params.app_id)
            if not versions:
                return RollbackResult(success=False, message="No active release found to rollback")

            phased_id = self._phased_release_id(versions)
            if phased_id is None:
                return RollbackResult(
                    success=False,
                    message="No phased release in progress. Full rollback requires "
                    "removing from sale.",
                )
            await self._set_phased_state(phased_id, "PAUSED")
            return RollbackResult(success=True, message="Phased release paused")

        return await self.with_retry(operation, "rollback")
