"""
Tests for PublishContext.
"""

import json

import pytest

from app_publish import PublishContext
from app_publish.config.models import LoggingConfig, PublishConfig, RetryPolicy
from app_publish.exceptions import CredentialError


def write_credentials(directory, backend_id, payload):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / f"{backend_id}.json").write_text(json.dumps(payload))


class TestPublishContext:
    """Test building and tearing down the publishing context."""

    @pytest.mark.asyncio
    async def test_defaults(self):
        ctx = await PublishContext.create()
        try:
            assert len(ctx.registry) == 9
            assert ctx.auth.configured_backends() == []
            assert ctx.get_adapter("google_play").auth is ctx.auth
            assert ctx.get_adapter("unregistered") is None
        finally:
            await ctx.aclose()

    @pytest.mark.asyncio
    async def test_loads_credentials_directory(self, temp_dir):
        creds_dir = temp_dir / "credentials"
        write_credentials(creds_dir, "pgyer", {"type": "apikey", "config": {"apiKey": "from-file"}})
        write_credentials(
            creds_dir,
            "vivo",
            {"type": "hmac", "config": {"accessKey": "ak", "accessSecret": "as"}},
        )

        async with await PublishContext.create(PublishConfig(credentials_dir=creds_dir)) as ctx:
            assert sorted(ctx.auth.configured_backends()) == ["pgyer", "vivo"]
            assert await ctx.auth.get_token("pgyer") == "from-file"

    @pytest.mark.asyncio
    async def test_inline_credentials_take_precedence(self, temp_dir):
        creds_dir = temp_dir / "credentials"
        write_credentials(creds_dir, "pgyer", {"type": "apikey", "config": {"api_key": "from-file"}})
        config = PublishConfig(
            credentials_dir=creds_dir,
            credentials={"pgyer": {"type": "apikey", "config": {"api_key": "inline"}}},
        )

        async with await PublishContext.create(config) as ctx:
            assert ctx.auth.get_config("pgyer")["api_key"] == "inline"

    @pytest.mark.asyncio
    async def test_missing_directory_is_ignored(self, temp_dir):
        config = PublishConfig(credentials_dir=temp_dir / "does-not-exist")
        async with await PublishContext.create(config) as ctx:
            assert ctx.auth.configured_backends() == []

    @pytest.mark.asyncio
    async def test_malformed_credentials_file(self, temp_dir):
        creds_dir = temp_dir / "credentials"
        creds_dir.mkdir()
        (creds_dir / "oppo.json").write_text("{not json")

        with pytest.raises(CredentialError):
            await PublishContext.create(PublishConfig(credentials_dir=creds_dir))

    @pytest.mark.asyncio
    async def test_config_reaches_adapters(self):
        config = PublishConfig(retry=RetryPolicy(max_retries=0), request_timeout=5)
        async with await PublishContext.create(config) as ctx:
            adapter = ctx.get_adapter("xiaomi")
            assert adapter.max_retries == 0
            assert adapter.timeout == 5

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        ctx = await PublishContext.create()
        ctx.get_adapter("honor")._get_session()

        await ctx.aclose()
        await ctx.aclose()

        assert ctx.closed is True
        assert ctx.get_adapter("honor")._session is None

    @pytest.mark.asyncio
    async def test_logging_installed_and_removed(self):
        config = PublishConfig(logging=LoggingConfig(enable_console=False))
        ctx = await PublishContext.create(config, configure_logging=True)

        assert ctx.logging_manager is not None
        assert ctx.logging_manager.is_configured()

        await ctx.aclose()
        assert not ctx.logging_manager.is_configured()
