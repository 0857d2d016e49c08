"""
Authentication manager for all store backends.

This module provides the single component adapters use to authorize
requests. It keeps the credentials registered for each backend, caches the
bearer token derived from them, and signs requests for backends that
authorize each call individually.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import aiofiles.os

from ..exceptions import CredentialError
from .base import (
    HMAC_TOKEN_MARKER,
    JWT_TOKEN_LIFETIME_S,
    PERMANENT_TOKEN_LIFETIME_MS,
    RSA_TOKEN_MARKER,
    AuthCredentials,
    AuthType,
    CachedToken,
)
from .credential_store import (
    DEFAULT_CREDENTIALS_DIR,
    CredentialStore,
    parse_credentials,
    read_secret_file,
)
from .jwt import ServiceAccountInfo, issue_es256_token
from .oauth import exchange_client_credentials, exchange_service_account
from .signing import canonicalize_params, hmac_sha256_hex, load_rsa_private_key, rsa_sha256_sign

logger = logging.getLogger(__name__)


class AuthManager:
    """
    Unified authentication layer for all store adapters.

    Supports OAuth 2.0 (service account and client credentials), ES256 JWT,
    RSA request signing, HMAC request signing and API keys. Tokens are cached
    per backend and refreshed once they come within 60 seconds of expiry.

    Examples:
        ```python
        manager = AuthManager()
        manager.set_credentials("pgyer", {"type": "apikey", "config": {"api_key": "k1"}})
        token = await manager.get_token("pgyer")

        await manager.load_credentials("google_play", "~/.app_publish/credentials/google_play.json")
        ```
    """

    def __init__(
        self,
        store: Optional[CredentialStore] = None,
        clock: Callable[[], float] = time.time,
        dedupe_refresh: bool = True,
        credentials_dir: Optional[Path] = None,
    ) -> None:
        """
        Initialize the authentication manager.

        Args:
            store: Credential store (a fresh in-memory store if omitted)
            clock: Returns the current time in epoch seconds
            dedupe_refresh: Share one in-flight refresh between concurrent
                callers for the same backend
            credentials_dir: Directory for credential files
        """
        self.store = store or CredentialStore()
        self.credentials_dir = Path(credentials_dir or DEFAULT_CREDENTIALS_DIR)
        self._clock = clock
        self._dedupe_refresh = dedupe_refresh
        self._token_cache: Dict[str, CachedToken] = {}
        self._inflight: Dict[str, "asyncio.Task[str]"] = {}
        self._rsa_keys: Dict[str, Any] = {}

    def _now_ms(self) -> float:
        return self._clock() * 1000

    # Credential registration

    async def load_credentials(self, backend_id: str, file_path: Union[str, Path]) -> None:
        """
        Load credentials from a JSON file for the given backend.

        Raises:
            CredentialError: If the file is missing or malformed
        """
        credentials = await self.store.load_file(backend_id, file_path)
        self._forget(backend_id)
        logger.info("Loaded %s credentials for %s", credentials.type.value, backend_id)

    def set_credentials(
        self, backend_id: str, credentials: Union[AuthCredentials, Mapping[str, Any]]
    ) -> None:
        """Register credentials programmatically, replacing earlier ones."""
        self.store.set(backend_id, parse_credentials(credentials))
        self._forget(backend_id)

    def has_credentials(self, backend_id: str) -> bool:
        """Check whether credentials are registered for a backend."""
        return backend_id in self.store

    def configured_backends(self) -> List[str]:
        """List backends with registered credentials."""
        return self.store.list_backends()

    def get_config(self, backend_id: str) -> Dict[str, str]:
        """Get config values for a backend (read-only copy, empty if unregistered)."""
        credentials = self.store.get(backend_id)
        return dict(credentials.config) if credentials else {}

    def _require(self, backend_id: str) -> AuthCredentials:
        credentials = self.store.get(backend_id)
        if credentials is None:
            raise CredentialError(
                f"No credentials configured for store: {backend_id}",
                backend_id=backend_id,
            )
        return credentials

    def _forget(self, backend_id: str) -> None:
        self._token_cache.pop(backend_id, None)
        self._inflight.pop(backend_id, None)
        self._rsa_keys.pop(backend_id, None)

    # Tokens

    async def get_token(self, backend_id: str) -> str:
        """Get a valid token for the given backend, refreshing if needed."""
        cached = self._token_cache.get(backend_id)
        if cached is not None and cached.is_valid(self._now_ms()):
            return cached.token
        return await self.refresh_token(backend_id)

    def is_token_valid(self, backend_id: str) -> bool:
        """Check if the cached token is still valid (with 60s buffer)."""
        cached = self._token_cache.get(backend_id)
        if cached is None:
            return False
        return cached.is_valid(self._now_ms())

    def invalidate_token(self, backend_id: str) -> None:
        """Drop the cached token so the next get_token refreshes."""
        if self._token_cache.pop(backend_id, None) is not None:
            logger.debug("Invalidated cached token for %s", backend_id)

    async def refresh_token(self, backend_id: str) -> str:
        """
        Force-refresh the token for the given backend.

        A refresh already in flight for the same backend is joined rather
        than duplicated.
        """
        if not self._dedupe_refresh:
            return await self._acquire_token(backend_id)

        task = self._inflight.get(backend_id)
        if task is None:
            task = asyncio.ensure_future(self._acquire_token(backend_id))
            self._inflight[backend_id] = task
            task.add_done_callback(lambda t: self._clear_inflight(backend_id, t))
        return await asyncio.shield(task)

    def _clear_inflight(self, backend_id: str, task: "asyncio.Task[str]") -> None:
        if self._inflight.get(backend_id) is task:
            del self._inflight[backend_id]

    async def _acquire_token(self, backend_id: str) -> str:
        # Credentials replaced while a token was being fetched invalidate it
        while True:
            credentials = self._require(backend_id)
            cached = await self._issue_token(backend_id, credentials)
            if self.store.get(backend_id) is credentials:
                break
            logger.debug("Credentials for %s changed during refresh, starting over", backend_id)

        self._token_cache[backend_id] = cached
        logger.debug(
            "Refreshed %s token for %s (expires in %.0fs)",
            credentials.type.value,
            backend_id,
            (cached.expires_at - self._now_ms()) / 1000,
        )
        return cached.token

    async def _issue_token(self, backend_id: str, credentials: AuthCredentials) -> CachedToken:
        if credentials.type == AuthType.OAUTH2:
            return await self._oauth2_flow(backend_id, credentials)
        if credentials.type == AuthType.JWT:
            return await self._jwt_flow(backend_id, credentials)
        if credentials.type == AuthType.API_KEY:
            return CachedToken(
                token=credentials.get("api_key"),
                expires_at=self._now_ms() + PERMANENT_TOKEN_LIFETIME_MS,
            )
        if credentials.type == AuthType.RSA:
            # Each request is signed individually via sign_request().
            await self._preload_rsa_key(backend_id, credentials)
            return CachedToken(RSA_TOKEN_MARKER, self._now_ms() + PERMANENT_TOKEN_LIFETIME_MS)
        return CachedToken(HMAC_TOKEN_MARKER, self._now_ms() + PERMANENT_TOKEN_LIFETIME_MS)

    async def _preload_rsa_key(self, backend_id: str, credentials: AuthCredentials) -> None:
        """Read a key file off the event loop so sign_request never blocks on disk."""
        key_path = credentials.get("private_key_path")
        if credentials.get("private_key") or not key_path or backend_id in self._rsa_keys:
            return
        pem = await read_secret_file(key_path, "private key file")
        if self.store.get(backend_id) is credentials:
            self._rsa_keys[backend_id] = load_rsa_private_key(pem)

    async def _oauth2_flow(self, backend_id: str, credentials: AuthCredentials) -> CachedToken:
        service_account_path = credentials.get("service_account_json")
        if service_account_path:
            raw = await read_secret_file(service_account_path, "service account file")
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise CredentialError(
                    f"Service account file {service_account_path} is not valid JSON: {e}",
                    backend_id=backend_id,
                ) from e
            account = ServiceAccountInfo.from_dict(data, source=service_account_path)
            response = await exchange_service_account(account, int(self._clock()))
            return CachedToken(response.access_token, response.expires_at(self._now_ms()))

        client_id = credentials.get("client_id")
        client_secret = credentials.get("client_secret")
        token_url = credentials.get("token_url")
        if client_id and client_secret and token_url:
            response = await exchange_client_credentials(token_url, client_id, client_secret)
            return CachedToken(response.access_token, response.expires_at(self._now_ms()))

        raise CredentialError(
            "OAuth2 credentials missing required fields "
            "(service_account_json or client_id+client_secret+token_url)",
            backend_id=backend_id,
        )

    async def _jwt_flow(self, backend_id: str, credentials: AuthCredentials) -> CachedToken:
        key_id = credentials.get("key_id")
        issuer_id = credentials.get("issuer_id")
        private_key = credentials.get("private_key")
        private_key_path = credentials.get("private_key_path")

        if not key_id or not issuer_id or not (private_key or private_key_path):
            raise CredentialError(
                "JWT credentials require key_id, issuer_id, and private_key_path",
                backend_id=backend_id,
            )

        if not private_key:
            private_key = await read_secret_file(private_key_path, "private key file")

        issued_at = int(self._clock())
        token = issue_es256_token(key_id, issuer_id, private_key, issued_at)
        return CachedToken(token, self._now_ms() + JWT_TOKEN_LIFETIME_S * 1000)

    # Per-request signing

    def sign_request(
        self,
        backend_id: str,
        method: str,
        uri: str,
        params: Mapping[str, object],
    ) -> str:
        """
        Sign request parameters with the backend's RSA private key.

        Args:
            backend_id: Backend whose key signs the request
            method: HTTP method (not part of the signed string)
            uri: Request URI (not part of the signed string)
            params: Request parameters

        Returns:
            Base64 RSA-SHA256 signature over the canonicalized parameters
        """
        key = self._rsa_key(backend_id)
        message = canonicalize_params(params)
        logger.debug("Signing %s %s for %s", method, uri, backend_id)
        return rsa_sha256_sign(key, message)

    def _rsa_key(self, backend_id: str) -> Any:
        key = self._rsa_keys.get(backend_id)
        if key is not None:
            return key

        credentials = self._require(backend_id)
        pem = credentials.get("private_key")
        if not pem:
            key_path = credentials.get("private_key_path")
            if not key_path:
                raise CredentialError(
                    f"RSA private key not configured for store: {backend_id}",
                    backend_id=backend_id,
                )
            # Normally already loaded by get_token
            try:
                pem = Path(key_path).expanduser().read_text(encoding="utf-8")
            except FileNotFoundError as e:
                raise CredentialError(
                    f"Private key file not found: {key_path}",
                    backend_id=backend_id,
                ) from e
            except OSError as e:
                raise CredentialError(
                    f"Cannot read private key file {key_path}: {e}",
                    backend_id=backend_id,
                ) from e

        key = load_rsa_private_key(pem)
        self._rsa_keys[backend_id] = key
        return key

    def generate_hmac_signature(self, backend_id: str, message: str) -> str:
        """
        HMAC-SHA256 of an already-canonicalized message, as lowercase hex.

        Raises:
            CredentialError: If no secret is registered for the backend
        """
        credentials = self._require(backend_id)
        secret = credentials.get("access_secret", "app_secret")
        if not secret:
            raise CredentialError(
                f"HMAC access secret not configured for store: {backend_id}",
                backend_id=backend_id,
            )
        return hmac_sha256_hex(secret, message)

    # Helpers

    async def ensure_credentials_dir(self) -> Path:
        """Ensure the credentials directory exists."""
        await aiofiles.os.makedirs(self.credentials_dir, exist_ok=True)
        return self.credentials_dir
