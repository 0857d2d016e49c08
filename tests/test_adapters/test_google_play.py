"""
Tests for the Google Play adapter.
"""

import json

import pytest
from yarl import URL

from app_publish.adapters.google_play import GooglePlayAdapter
from app_publish.adapters.models import (
    AnalyticsParams,
    ReleaseParams,
    ReviewListParams,
    RollbackParams,
    SetRolloutParams,
    SubmitParams,
    Unsupported,
    UploadParams,
)
from app_publish.exceptions import ErrorCode, NormalizedError

TOKEN_URL = "https://oauth2.example.com/token"
API = "https://androidpublisher.googleapis.com/androidpublisher/v3/applications/com.example.app"
UPLOAD = "https://androidpublisher.googleapis.com/upload/androidpublisher/v3/applications/com.example.app"


@pytest.fixture
def adapter(auth_manager, fast_retry, mock_aiohttp):
    auth_manager.set_credentials(
        "google_play",
        {
            "type": "oauth2",
            "config": {"client_id": "cid", "client_secret": "secret", "token_url": TOKEN_URL},
        },
    )
    mock_aiohttp.post(TOKEN_URL, payload={"access_token": "play-token", "expires_in": 3600})
    return GooglePlayAdapter(auth_manager, retry_policy=fast_retry)


def sent_json(mock, method, url):
    return mock.requests[(method, URL(url))][-1].kwargs["json"]


class TestUploadAndRelease:
    """Test the edit-based publishing flow."""

    @pytest.mark.asyncio
    async def test_upload_bundle_then_release(self, adapter, mock_aiohttp, temp_dir):
        bundle = temp_dir / "app-release.aab"
        bundle.write_bytes(b"bundle")
        mock_aiohttp.post(f"{API}/edits", payload={"id": "edit-1"})
        mock_aiohttp.post(
            f"{UPLOAD}/edits/edit-1/bundles?uploadType=media", payload={"versionCode": 42}
        )
        mock_aiohttp.put(f"{API}/edits/edit-1/tracks/beta", payload={})
        mock_aiohttp.post(f"{API}/edits/edit-1:commit", payload={"id": "edit-1"})

        async with adapter:
            upload = await adapter.upload_build(
                UploadParams(app_id="com.example.app", file_path=str(bundle), file_type="aab")
            )
            release = await adapter.create_release(
                ReleaseParams(
                    app_id="com.example.app",
                    build_id="42",
                    track="beta",
                    version_name="1.2.0",
                    release_notes={"en-US": "Bug fixes"},
                    rollout_percentage=0.1,
                )
            )

        assert upload.success is True
        assert upload.build_id == "edit-1"
        assert upload.store_ref == "42"
        assert release.success is True
        assert release.status == "committed"

        body = sent_json(mock_aiohttp, "PUT", f"{API}/edits/edit-1/tracks/beta")
        assert body["track"] == "beta"
        assert body["releases"][0] == {
            "name": "1.2.0",
            "status": "inProgress",
            "userFraction": 0.1,
            "releaseNotes": [{"language": "en-US", "text": "Bug fixes"}],
        }

        call = mock_aiohttp.requests[("POST", URL(f"{API}/edits"))][0]
        assert call.kwargs["headers"]["Authorization"] == "Bearer play-token"

    @pytest.mark.asyncio
    async def test_full_release_without_rollout(self, adapter, mock_aiohttp):
        mock_aiohttp.post(f"{API}/edits", payload={"id": "edit-2"})
        mock_aiohttp.put(f"{API}/edits/edit-2/tracks/production", payload={})
        mock_aiohttp.post(f"{API}/edits/edit-2:commit", payload={})

        async with adapter:
            await adapter.create_release(
                ReleaseParams(
                    app_id="com.example.app", build_id="7", track="production", version_name="2.0"
                )
            )

        body = sent_json(mock_aiohttp, "PUT", f"{API}/edits/edit-2/tracks/production")
        assert body["releases"][0] == {"name": "2.0", "status": "completed"}

    @pytest.mark.asyncio
    async def test_rejects_ipa(self, adapter, temp_dir):
        ipa = temp_dir / "app.ipa"
        ipa.write_bytes(b"ipa")
        with pytest.raises(NormalizedError) as exc_info:
            await adapter.upload_build(
                UploadParams(app_id="com.example.app", file_path=str(ipa), file_type="ipa")
            )
        assert exc_info.value.code == ErrorCode.ARTIFACT_INVALID_FORMAT


class TestRolloutManagement:
    """Test staged rollout operations."""

    @pytest.mark.asyncio
    async def test_set_rollout_percentage(self, adapter, mock_aiohttp):
        mock_aiohttp.post(f"{API}/edits", payload={"id": "e3"})
        mock_aiohttp.get(
            f"{API}/edits/e3/tracks/production",
            payload={"releases": [{"name": "1.0", "status": "inProgress", "userFraction": 0.1}]},
        )
        mock_aiohttp.put(f"{API}/edits/e3/tracks/production", payload={})
        mock_aiohttp.post(f"{API}/edits/e3:commit", payload={})

        async with adapter:
            result = await adapter.set_rollout(
                SetRolloutParams(app_id="com.example.app", track="production", rollout_percentage=25)
            )

        assert result.success is True
        release = sent_json(mock_aiohttp, "PUT", f"{API}/edits/e3/tracks/production")["releases"][0]
        assert release["userFraction"] == 0.25
        assert release["status"] == "inProgress"

    @pytest.mark.asyncio
    async def test_full_rollout_completes(self, adapter, mock_aiohttp):
        mock_aiohttp.post(f"{API}/edits", payload={"id": "e4"})
        mock_aiohttp.get(
            f"{API}/edits/e4/tracks/production",
            payload={"releases": [{"name": "1.0", "status": "inProgress", "userFraction": 0.5}]},
        )
        mock_aiohttp.put(f"{API}/edits/e4/tracks/production", payload={})
        mock_aiohttp.post(f"{API}/edits/e4:commit", payload={})

        async with adapter:
            await adapter.set_rollout(
                SetRolloutParams(app_id="com.example.app", track="production", rollout_percentage=100)
            )

        release = sent_json(mock_aiohttp, "PUT", f"{API}/edits/e4/tracks/production")["releases"][0]
        assert release == {"name": "1.0", "status": "completed"}

    @pytest.mark.asyncio
    async def test_empty_track(self, adapter, mock_aiohttp):
        mock_aiohttp.post(f"{API}/edits", payload={"id": "e5"})
        mock_aiohttp.get(f"{API}/edits/e5/tracks/alpha", payload={"releases": []})
        mock_aiohttp.delete(f"{API}/edits/e5", body="")

        async with adapter:
            result = await adapter.set_rollout(
                SetRolloutParams(app_id="com.example.app", track="alpha", rollout_percentage=0.5)
            )

        assert result.success is False
        assert "No release found" in result.message

    @pytest.mark.asyncio
    async def test_rollback_halts_track(self, adapter, mock_aiohttp):
        mock_aiohttp.post(f"{API}/edits", payload={"id": "e6"})
        mock_aiohttp.put(f"{API}/edits/e6/tracks/production", payload={})
        mock_aiohttp.post(f"{API}/edits/e6:commit", payload={})

        async with adapter:
            result = await adapter.rollback(
                RollbackParams(app_id="com.example.app", target_version_code="41")
            )

        assert result.success is True
        release = sent_json(mock_aiohttp, "PUT", f"{API}/edits/e6/tracks/production")["releases"][0]
        assert release == {"status": "halted", "versionCodes": ["41"]}


class TestStatusAndReviews:
    """Test read operations."""

    @pytest.mark.asyncio
    async def test_status_retries_server_errors(self, adapter, mock_aiohttp):
        mock_aiohttp.post(f"{API}/edits", status=503)
        mock_aiohttp.post(f"{API}/edits", payload={"id": "e7"})
        mock_aiohttp.get(
            f"{API}/edits/e7/tracks/production",
            payload={"releases": [{"name": "3.1.0", "status": "completed"}]},
        )
        mock_aiohttp.delete(f"{API}/edits/e7", body="")

        async with adapter:
            status = await adapter.get_status("com.example.app")

        assert status.current_version == "3.1.0"
        assert status.review_status == "completed"
        assert status.live_status == "live"
        assert status.store_name == "Google Play"

    @pytest.mark.asyncio
    async def test_reviews(self, adapter, mock_aiohttp):
        mock_aiohttp.get(
            f"{API}/reviews?maxResults=20",
            body=json.dumps(
                {
                    "reviews": [
                        {
                            "reviewId": "r1",
                            "authorName": "Ada",
                            "comments": [
                                {
                                    "userComment": {
                                        "text": "Great",
                                        "starRating": 5,
                                        "lastModified": {"seconds": "1700000000"},
                                        "reviewerLanguage": "en",
                                    }
                                }
                            ],
                        }
                    ]
                }
            ),
            content_type="application/json",
        )

        async with adapter:
            reviews = await adapter.get_reviews(ReviewListParams(app_id="com.example.app"))

        assert len(reviews) == 1
        assert reviews[0].review_id == "r1"
        assert reviews[0].rating == 5
        assert reviews[0].date.startswith("2023-11-14")

    @pytest.mark.asyncio
    async def test_submit_is_implicit(self, adapter):
        result = await adapter.submit_for_review(SubmitParams(app_id="com.example.app"))
        assert result.success is True

    @pytest.mark.asyncio
    async def test_analytics_unsupported(self, adapter):
        result = await adapter.get_analytics(
            AnalyticsParams(app_id="com.example.app", start_date="2024-01-01", end_date="2024-01-31")
        )
        assert isinstance(result, Unsupported)
        assert result.success is False
