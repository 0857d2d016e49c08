"""
Google Play Developer API v3 adapter.

Publishing goes through an edit: ``edits.insert``, upload the bundle or APK,
update the track, then ``edits.commit``. Authorization is an OAuth 2.0
service account.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

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
    UploadResult,
)

logger = logging.getLogger(__name__)

API_PATH = "/androidpublisher/v3/applications"
UPLOAD_PATH = "/upload/androidpublisher/v3/applications"


class GooglePlayAdapter(StoreAdapter):
    """Adapter for Google Play."""

    backend_id = "google_play"
    base_url = "https://androidpublisher.googleapis.com"
    capabilities = StoreCapabilities(
        store_id="google_play",
        store_name="Google Play",
        auth_method=AuthType.OAUTH2,
        supported_file_types=("apk", "aab"),
        supports_upload=True,
        supports_listing=True,
        supports_review=True,
        supports_analytics=True,
        supports_rollback=True,
        supports_staged_rollout=True,
        max_file_size_mb=150,
        requires_icp=False,
    )

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        # Edit opened by upload_build and committed by create_release, per package
        self._open_edits: Dict[str, str] = {}

    # Edit helpers

    async def _insert_edit(self, package: str) -> str:
        data = await self._request(
            "POST", f"{API_PATH}/{package}/edits", json={}, headers=await self.auth_headers()
        )
        return data["id"]

    async def _commit_edit(self, package: str, edit_id: str) -> None:
        await self._request(
            "POST",
            f"{API_PATH}/{package}/edits/{edit_id}:commit",
            headers=await self.auth_headers(),
        )

    async def _delete_edit(self, package: str, edit_id: str) -> None:
        await self._request(
            "DELETE", f"{API_PATH}/{package}/edits/{edit_id}", headers=await self.auth_headers()
        )

    async def _edit_for(self, package: str) -> str:
        edit_id = self._open_edits.get(package)
        if edit_id is None:
            edit_id = await self._insert_edit(package)
        return edit_id

    async def _get_track(self, package: str, edit_id: str, track: str) -> Dict[str, Any]:
        return await self._request(
            "GET",
            f"{API_PATH}/{package}/edits/{edit_id}/tracks/{track}",
            headers=await self.auth_headers(),
        )

    async def _put_track(
        self, package: str, edit_id: str, track: str, releases: List[Dict[str, Any]]
    ) -> None:
        await self._request(
            "PUT",
            f"{API_PATH}/{package}/edits/{edit_id}/tracks/{track}",
            json={"track": track, "releases": releases},
            headers=await self.auth_headers(),
        )

    # Upload and release

    async def upload_build(self, params: UploadParams) -> UploadResult:
        path = await self.validate_artifact(params)
        endpoint = "bundles" if params.file_type.lower() == "aab" else "apks"

        async def operation() -> UploadResult:
            edit_id = await self._insert_edit(params.app_id)
            self._open_edits[params.app_id] = edit_id
            headers = await self.auth_headers()
            headers["Content-Type"] = "application/octet-stream"
            data = await self._request(
                "POST",
                f"{UPLOAD_PATH}/{params.app_id}/edits/{edit_id}/{endpoint}",
                params={"uploadType": "media"},
                data=await self._read_artifact(path),
                headers=headers,
            )
            return UploadResult(
                success=True,
                build_id=edit_id,
                store_ref=str(data.get("versionCode", "")),
            )

        return await self.with_retry(operation, "upload_build")

    async def create_release(self, params: ReleaseParams) -> ReleaseResult:
        async def operation() -> ReleaseResult:
            edit_id = await self._edit_for(params.app_id)
            staged = params.rollout_percentage is not None and params.rollout_percentage < 1.0

            release: Dict[str, Any] = {
                "name": params.version_name,
                "status": "inProgress" if staged else "completed",
            }
            if staged:
                release["userFraction"] = params.rollout_percentage
            if params.release_notes:
                release["releaseNotes"] = [
                    {"language": language, "text": text}
                    for language, text in params.release_notes.items()
                ]

            await self._put_track(params.app_id, edit_id, params.track, [release])
            await self._commit_edit(params.app_id, edit_id)
            self._open_edits.pop(params.app_id, None)
            return ReleaseResult(success=True, release_id=params.build_id, status="committed")

        return await self.with_retry(operation, "create_release")

    # Listing

    async def update_listing(self, params: ListingParams) -> ListingResult:
        async def operation() -> ListingResult:
            edit_id = await self._edit_for(params.app_id)
            body: Dict[str, str] = {}
            if params.title:
                body["title"] = params.title
            if params.short_description:
                body["shortDescription"] = params.short_description
            if params.full_description:
                body["fullDescription"] = params.full_description

            await self._request(
                "PUT",
                f"{API_PATH}/{params.app_id}/edits/{edit_id}/listings/{params.locale}",
                json=body,
                headers=await self.auth_headers(),
            )
            await self._commit_edit(params.app_id, edit_id)
            self._open_edits.pop(params.app_id, None)
            return ListingResult(
                success=True, message=f"Listing updated for locale {params.locale}"
            )

        return await self.with_retry(operation, "update_listing")

    async def get_listing(self, params: GetListingParams) -> GetListingResult:
        locale = params.locale or "en-US"

        async def operation() -> GetListingResult:
            edit_id = await self._insert_edit(params.app_id)
            data = await self._request(
                "GET",
                f"{API_PATH}/{params.app_id}/edits/{edit_id}/listings/{locale}",
                headers=await self.auth_headers(),
            )
            await self._delete_edit(params.app_id, edit_id)
            return GetListingResult(
                success=True,
                listing=Listing(
                    title=data.get("title"),
                    description=data.get("fullDescription"),
                    short_description=data.get("shortDescription"),
                    locale=data.get("language", locale),
                ),
            )

        return await self.with_retry(operation, "get_listing")

    # Release management

    async def promote_release(self, params: PromoteReleaseParams) -> ReleaseManagementResult:
        async def operation() -> ReleaseManagementResult:
            edit_id = await self._insert_edit(params.app_id)
            source = await self._get_track(params.app_id, edit_id, params.source_track)
            releases = source.get("releases") or []
            release = next(
                (r for r in releases if params.release_id in (r.get("versionCodes") or [])),
                releases[0] if releases else None,
            )
            if release is None:
                await self._delete_edit(params.app_id, edit_id)
                return ReleaseManagementResult(
                    success=False, message=f"No release found on track {params.source_track}"
                )

            promoted = {k: v for k, v in release.items() if k != "userFraction"}
            promoted["status"] = "completed"
            await self._put_track(params.app_id, edit_id, params.target_track, [promoted])
            await self._commit_edit(params.app_id, edit_id)
            return ReleaseManagementResult(
                success=True,
                message=f"Promoted {params.release_id} from {params.source_track} "
                f"to {params.target_track}",
            )

        return await self.with_retry(operation, "promote_release")

    async def _update_rollout(
        self, app_id: str, track: str, status: str, fraction: Optional[float], context: str
    ) -> ReleaseManagementResult:
        async def operation() -> ReleaseManagementResult:
            edit_id = await self._insert_edit(app_id)
            current = await self._get_track(app_id, edit_id, track)
            releases = current.get("releases") or []
            if not releases:
                await self._delete_edit(app_id, edit_id)
                return ReleaseManagementResult(
                    success=False, message=f"No release found on track {track}"
                )

            release = dict(releases[0])
            release["status"] = status
            if fraction is not None:
                release["userFraction"] = fraction
            elif status == "completed":
                release.pop("userFraction", None)

            await self._put_track(app_id, edit_id, track, [release])
            await self._commit_edit(app_id, edit_id)
            return ReleaseManagementResult(
                success=True, message=f"Track {track} set to {release['status']}"
            )

        return await self.with_retry(operation, context)

    async def set_rollout(self, params: SetRolloutParams) -> ReleaseManagementResult:
        # Accept both 0.25 and 25 for a quarter of users
        fraction = params.rollout_percentage
        if fraction > 1.0:
            fraction = fraction / 100.0
        if fraction >= 1.0:
            return await self._update_rollout(
                params.app_id, params.track, "completed", None, "set_rollout"
            )
        return await self._update_rollout(
            params.app_id, params.track, "inProgress", fraction, "set_rollout"
        )

    async def resume_release(self, params: ResumeReleaseParams) -> ReleaseManagementResult:
        return await self._update_rollout(
            params.app_id, params.track, "inProgress", None, "resume_release"
        )

    # Review and status

    async def submit_for_review(self, params: SubmitParams) -> SubmitResult:
        return SubmitResult(
            success=True,
            message="Google Play auto-reviews upon edit commit. No separate submission needed.",
        )

    async def get_status(self, app_id: str) -> StatusResult:
        async def operation() -> StatusResult:
            edit_id = await self._insert_edit(app_id)
            data = await self._get_track(app_id, edit_id, "production")
            await self._delete_edit(app_id, edit_id)

            releases = data.get("releases") or []
            latest = releases[0] if releases else {}
            status = latest.get("status")
            return StatusResult(
                app_id=app_id,
                store_name=self.capabilities.store_name,
                current_version=latest.get("name"),
                review_status=status or "unknown",
                live_status="live" if status == "completed" else "pending",
            )

        return await self.with_retry(operation, "get_status")

    async def get_analytics(self, params: AnalyticsParams) -> Unsupported:
        return self.unsupported(
            "get_analytics",
            "Google Play analytics require the Play Console reporting API or a "
            "BigQuery export. Not available via the androidpublisher API.",
        )

    async def get_reviews(self, params: ReviewListParams) -> List[ReviewItem]:
        async def operation() -> List[ReviewItem]:
            query: Dict[str, Union[str, int]] = {"maxResults": params.page_size}
            if params.page_token:
                query["token"] = params.page_token
            data = await self._request(
                "GET",
                f"{API_PATH}/{params.app_id}/reviews",
                params=query,
                headers=await self.auth_headers(),
            )

            items = []
            for review in data.get("reviews") or []:
                comments = review.get("comments") or [{}]
                comment = comments[0].get("userComment") or {}
                seconds = (comment.get("lastModified") or {}).get("seconds")
                date = (
                    datetime.fromtimestamp(int(seconds), tz=timezone.utc)
                    if seconds
                    else datetime.now(timezone.utc)
                )
                items.append(
                    ReviewItem(
                        review_id=review["reviewId"],
                        author=review.get("authorName", ""),
                        rating=int(comment.get("starRating", 0)),
                        body=comment.get("text", ""),
                        date=date.isoformat(),
                        locale=comment.get("reviewerLanguage"),
                    )
                )
            return items

        return await self.with_retry(operation, "get_reviews")

    async def rollback(self, params: RollbackParams) -> RollbackResult:
        track = params.track or "production"

        async def operation() -> RollbackResult:
            edit_id = await self._insert_edit(params.app_id)
            version_codes = [params.target_version_code] if params.target_version_code else []
            await self._put_track(
                params.app_id,
                edit_id,
                track,
                [{"status": "halted", "versionCodes": version_codes}],
            )
            await self._commit_edit(params.app_id, edit_id)
            return RollbackResult(success=True, message=f"Rollout halted on track {track}")

        return await self.with_retry(operation, "rollback")
