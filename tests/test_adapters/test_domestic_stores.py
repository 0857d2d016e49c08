"""
Tests for the OPPO, Pgyer, Xiaomi, vivo and Tencent MyApp adapters.
"""

import base64
import hashlib
import hmac
import re

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from yarl import URL

from app_publish.adapters.models import (
    ListingParams,
    ReleaseParams,
    SetRolloutParams,
    SubmitParams,
    Unsupported,
    UploadParams,
)
from app_publish.adapters.oppo import OppoAdapter
from app_publish.adapters.pgyer import PgyerAdapter
from app_publish.adapters.tencent_myapp import TencentMyAppAdapter
from app_publish.adapters.vivo import VivoAdapter
from app_publish.adapters.xiaomi import XiaomiAdapter
from app_publish.auth.signing import canonicalize_params
from app_publish.exceptions import NormalizedError

TOKEN_URL = "https://oauth.example.com/token"
OPPO = "https://oop-openapi-cn.heytapmobi.com/developer/v1"
PGYER = "https://www.pgyer.com/apiv2"
XIAOMI = "https://api.developer.xiaomi.com/devupload"
VIVO = "https://developer-api.vivo.com.cn/router/rest"
TENCENT = "https://api.open.qq.com"


def with_query(url):
    return re.compile(rf"^{re.escape(url)}(\?.*)?$")


def expected_hmac(secret, params):
    unsigned = {k: v for k, v in params.items() if k not in ("sign", "sig")}
    return hmac.new(
        secret.encode(), canonicalize_params(unsigned).encode(), hashlib.sha256
    ).hexdigest()


class TestOppo:
    """Test the OPPO adapter."""

    @pytest.fixture
    def adapter(self, auth_manager, fast_retry, mock_aiohttp):
        auth_manager.set_credentials(
            "oppo",
            {
                "type": "oauth2",
                "config": {"client_id": "oppo-id", "client_secret": "s", "token_url": TOKEN_URL},
            },
        )
        mock_aiohttp.post(TOKEN_URL, payload={"access_token": "oppo-token", "expires_in": 172800})
        return OppoAdapter(auth_manager, retry_policy=fast_retry)

    @pytest.mark.asyncio
    async def test_upload(self, adapter, mock_aiohttp, artifact):
        storage = "https://upload.oppo.example.com/file"
        mock_aiohttp.get(
            f"{OPPO}/upload/upload-url",
            payload={"errno": 0, "data": {"sign": "sign-1", "upload_url": storage}},
        )
        mock_aiohttp.put(storage, payload={"errno": 0, "data": {"url": "https://cdn.example.com/a.apk"}})

        async with adapter:
            result = await adapter.upload_build(
                UploadParams(app_id="com.example.app", file_path=str(artifact), file_type="apk")
            )

        assert result.success is True
        assert result.build_id == "sign-1"
        assert result.store_ref == "https://cdn.example.com/a.apk"

        call = mock_aiohttp.requests[("GET", URL(f"{OPPO}/upload/upload-url"))][0]
        assert call.kwargs["headers"]["Authorization"] == "Bearer oppo-token"

    @pytest.mark.asyncio
    async def test_create_release_and_submit(self, adapter, mock_aiohttp):
        mock_aiohttp.post(f"{OPPO}/app/update-app-info", payload={"errno": 0})
        mock_aiohttp.post(f"{OPPO}/app/submit-audit", payload={"errno": 0})

        async with adapter:
            release = await adapter.create_release(
                ReleaseParams(
                    app_id="com.example.app",
                    build_id="sign-1",
                    track="production",
                    version_name="1.4.0",
                    release_notes={"en-US": "Fixes"},
                )
            )
            submission = await adapter.submit_for_review(SubmitParams(app_id="com.example.app"))

        assert release.release_id == "oppo-com.example.app-1.4.0"
        body = mock_aiohttp.requests[("POST", URL(f"{OPPO}/app/update-app-info"))][0].kwargs["json"]
        assert body == {"pkg_name": "com.example.app", "version_name": "1.4.0", "update_desc": "Fixes"}
        assert submission.submission_id == "oppo-submit-com.example.app"

    @pytest.mark.asyncio
    async def test_errno_fails(self, adapter, mock_aiohttp):
        mock_aiohttp.post(f"{OPPO}/app/submit-audit", payload={"errno": 11001})
        async with adapter:
            with pytest.raises(NormalizedError) as exc_info:
                await adapter.submit_for_review(SubmitParams(app_id="com.example.app"))
        assert "errno 11001" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_status(self, adapter, mock_aiohttp):
        mock_aiohttp.get(
            with_query(f"{OPPO}/app/info"),
            payload={"errno": 0, "data": {"app_status": 4, "version_name": "1.4.0"}},
        )
        async with adapter:
            status = await adapter.get_status("com.example.app")
        assert status.review_status == "live"
        assert status.live_status == "live"

    @pytest.mark.asyncio
    async def test_listing_update_points_to_release(self, adapter):
        result = await adapter.update_listing(ListingParams(app_id="a", locale="zh-CN"))
        assert isinstance(result, Unsupported)
        assert "create_release" in result.message


class TestPgyer:
    """Test the Pgyer adapter."""

    @pytest.fixture
    def adapter(self, auth_manager, fast_retry):
        auth_manager.set_credentials("pgyer", {"type": "apikey", "config": {"apiKey": "pgyer-key"}})
        return PgyerAdapter(auth_manager, retry_policy=fast_retry)

    @pytest.mark.asyncio
    async def test_upload(self, adapter, mock_aiohttp, artifact):
        mock_aiohttp.post(
            f"{PGYER}/app/upload",
            payload={
                "code": 0,
                "data": {"buildKey": "bk-1", "buildShortcutUrl": "abcd", "buildVersion": "2.1"},
            },
        )

        async with adapter:
            result = await adapter.upload_build(
                UploadParams(app_id="pgy", file_path=str(artifact), file_type="apk")
            )

        assert result.build_id == "bk-1"
        assert result.store_ref == "abcd"
        assert "v2.1" in result.message

    @pytest.mark.asyncio
    async def test_upload_error_code_is_retried(self, adapter, mock_aiohttp, artifact):
        mock_aiohttp.post(
            f"{PGYER}/app/upload", payload={"code": 1021, "message": "busy"}, repeat=True
        )

        async with adapter:
            with pytest.raises(NormalizedError) as exc_info:
                await adapter.upload_build(
                    UploadParams(app_id="pgy", file_path=str(artifact), file_type="apk")
                )

        assert len(mock_aiohttp.requests[("POST", URL(f"{PGYER}/app/upload"))]) == 3
        assert exc_info.value.message == "[pgyer] upload_build: Pgyer upload failed: busy"

    @pytest.mark.asyncio
    async def test_status_sends_api_key(self, adapter, mock_aiohttp):
        mock_aiohttp.post(
            f"{PGYER}/app/view", payload={"code": 0, "data": {"buildVersion": "2.1"}}
        )

        async with adapter:
            status = await adapter.get_status("app-key-1")

        assert status.review_status == "not_applicable"
        assert status.live_status == "distributed"
        form = mock_aiohttp.requests[("POST", URL(f"{PGYER}/app/view"))][0].kwargs["data"]
        assert form == {"_api_key": "pgyer-key", "appKey": "app-key-1"}

    @pytest.mark.asyncio
    async def test_release_unsupported(self, adapter):
        result = await adapter.create_release(
            ReleaseParams(app_id="pgy", build_id="b", track="beta", version_name="1")
        )
        assert isinstance(result, Unsupported)
        assert "test distribution" in result.message


class TestXiaomi:
    """Test the RSA-signed Xiaomi adapter."""

    @pytest.fixture
    def adapter(self, auth_manager, fast_retry, rsa_private_pem):
        auth_manager.set_credentials(
            "xiaomi", {"type": "rsa", "config": {"private_key": rsa_private_pem}}
        )
        return XiaomiAdapter(auth_manager, retry_policy=fast_retry)

    @pytest.mark.asyncio
    async def test_status_request_is_signed(self, adapter, mock_aiohttp, rsa_key):
        mock_aiohttp.get(
            with_query(f"{XIAOMI}/dev/query"),
            payload={"data": {"versionName": "5.0", "auditStatus": 2, "onlineStatus": 1}},
        )

        async with adapter:
            status = await adapter.get_status("com.example.mi")

        assert status.review_status == "approved"
        assert status.live_status == "live"

        (_, calls), = mock_aiohttp.requests.items()
        sent = calls[0].kwargs["params"]
        assert sent["appId"] == "com.example.mi"
        rsa_key.public_key().verify(
            base64.b64decode(sent["sig"]),
            b"appId=com.example.mi",
            padding.PKCS1v15(),
            hashes.SHA256(),
        )

    @pytest.mark.asyncio
    async def test_upload(self, adapter, mock_aiohttp, artifact):
        mock_aiohttp.post(f"{XIAOMI}/dev/push", payload={"result": 0})
        async with adapter:
            result = await adapter.upload_build(
                UploadParams(app_id="com.example.mi", file_path=str(artifact), file_type="apk")
            )
        assert result.success is True
        assert result.store_ref == "xiaomi-com.example.mi"

    @pytest.mark.asyncio
    async def test_upload_failure_exhausts_retries(self, adapter, mock_aiohttp, artifact):
        mock_aiohttp.post(
            f"{XIAOMI}/dev/push", payload={"result": 1, "message": "bad apk"}, repeat=True
        )
        async with adapter:
            with pytest.raises(NormalizedError) as exc_info:
                await adapter.upload_build(
                    UploadParams(app_id="com.example.mi", file_path=str(artifact), file_type="apk")
                )
        assert "bad apk" in exc_info.value.message
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_submit_is_automatic(self, adapter):
        result = await adapter.submit_for_review(SubmitParams(app_id="com.example.mi"))
        assert isinstance(result, Unsupported)


class TestVivo:
    """Test the HMAC-signed vivo adapter."""

    @pytest.fixture
    def adapter(self, auth_manager, fast_retry):
        auth_manager.set_credentials(
            "vivo",
            {"type": "hmac", "config": {"accessKey": "vivo-ak", "accessSecret": "vivo-secret"}},
        )
        return VivoAdapter(auth_manager, retry_policy=fast_retry)

    @pytest.mark.asyncio
    async def test_status_signed_with_hmac(self, adapter, mock_aiohttp):
        mock_aiohttp.post(
            VIVO, payload={"code": 0, "data": {"status": 2, "versionName": "7.1"}}
        )

        async with adapter:
            status = await adapter.get_status("com.example.vivo")

        assert status.live_status == "live"
        form = mock_aiohttp.requests[("POST", URL(VIVO))][0].kwargs["data"]
        assert form["method"] == "app.query.task.status"
        assert form["access_key"] == "vivo-ak"
        assert form["packageName"] == "com.example.vivo"
        assert form["sign"] == expected_hmac("vivo-secret", form)

    @pytest.mark.asyncio
    async def test_submit(self, adapter, mock_aiohttp):
        mock_aiohttp.post(VIVO, payload={"code": 0})
        async with adapter:
            result = await adapter.submit_for_review(SubmitParams(app_id="com.example.vivo"))
        assert result.submission_id == "vivo-submit-com.example.vivo"
        form = mock_aiohttp.requests[("POST", URL(VIVO))][0].kwargs["data"]
        assert form["method"] == "app.sync.update.app"

    @pytest.mark.asyncio
    async def test_error_code(self, adapter, mock_aiohttp):
        mock_aiohttp.post(VIVO, payload={"code": 10003, "msg": "sign error"})
        async with adapter:
            with pytest.raises(NormalizedError) as exc_info:
                await adapter.submit_for_review(SubmitParams(app_id="com.example.vivo"))
        assert "sign error" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_secret_is_credential_error(self, auth_manager, mock_aiohttp):
        auth_manager.set_credentials("vivo", {"type": "hmac", "config": {"accessKey": "ak"}})
        adapter = VivoAdapter(auth_manager)
        with pytest.raises(NormalizedError) as exc_info:
            await adapter.submit_for_review(SubmitParams(app_id="com.example.vivo"))
        assert "access secret not configured" in exc_info.value.message
        assert len(mock_aiohttp.requests) == 0


class TestTencentMyApp:
    """Test the Tencent MyApp adapter."""

    @pytest.fixture
    def adapter(self, auth_manager, fast_retry):
        auth_manager.set_credentials(
            "tencent_myapp",
            {"type": "hmac", "config": {"app_key": "tx-key", "app_secret": "tx-secret"}},
        )
        return TencentMyAppAdapter(auth_manager, retry_policy=fast_retry)

    @pytest.mark.asyncio
    async def test_upload_mentions_hardening(self, adapter, mock_aiohttp, artifact):
        mock_aiohttp.post(f"{TENCENT}/app/upload", payload={"ret": 0, "data": {"apk_id": "apk-9"}})
        async with adapter:
            result = await adapter.upload_build(
                UploadParams(app_id="com.example.qq", file_path=str(artifact), file_type="apk")
            )
        assert result.build_id == "apk-9"
        assert "hardened" in result.message

    @pytest.mark.asyncio
    async def test_status(self, adapter, mock_aiohttp):
        mock_aiohttp.post(
            f"{TENCENT}/app/info", payload={"ret": 0, "data": {"audit_status": 3}}
        )
        async with adapter:
            status = await adapter.get_status("com.example.qq")

        assert status.review_status == "rejected"
        assert status.live_status == "not_live"
        form = mock_aiohttp.requests[("POST", URL(f"{TENCENT}/app/info"))][0].kwargs["data"]
        assert form["app_key"] == "tx-key"
        assert form["sig"] == expected_hmac("tx-secret", form)

    @pytest.mark.asyncio
    async def test_submit_error(self, adapter, mock_aiohttp):
        mock_aiohttp.post(f"{TENCENT}/app/submit", payload={"ret": -1, "msg": "not hardened"})
        async with adapter:
            with pytest.raises(NormalizedError) as exc_info:
                await adapter.submit_for_review(SubmitParams(app_id="com.example.qq"))
        assert "not hardened" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_rollout_unsupported(self, adapter):
        result = await adapter.set_rollout(
            SetRolloutParams(app_id="com.example.qq", track="production", rollout_percentage=10)
        )
        assert isinstance(result, Unsupported)
        assert result.message == "Tencent MyApp does not support set_rollout."
