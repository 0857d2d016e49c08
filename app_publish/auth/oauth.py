"""
OAuth 2.0 token exchange.

This module implements the two grants the authentication layer uses:
the JWT-bearer grant for service accounts and the client-credentials grant.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from ..exceptions import ErrorCode, ErrorHandler, NormalizedError
from .jwt import ServiceAccountInfo, build_service_account_assertion

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
CLIENT_CREDENTIALS_GRANT = "client_credentials"

DEFAULT_TIMEOUT = 30.0


@dataclass
class OAuthTokenResponse:
    """OAuth token response data."""

    access_token: str
    expires_in: int
    token_type: str = "Bearer"

    def expires_at(self, now_ms: float) -> float:
        """Expiry in epoch milliseconds, relative to ``now_ms``."""
        return now_ms + self.expires_in * 1000


async def exchange_service_account(
    account: ServiceAccountInfo,
    issued_at: int,
    timeout: float = DEFAULT_TIMEOUT,
) -> OAuthTokenResponse:
    """
    Exchange a signed service-account assertion for an access token.

    Args:
        account: Service account key
        issued_at: Assertion ``iat`` in epoch seconds
        timeout: Request timeout in seconds

    Returns:
        Parsed token response
    """
    assertion = build_service_account_assertion(account, issued_at)
    data = {"grant_type": JWT_BEARER_GRANT, "assertion": assertion}
    return await _request_token(
        account.token_uri,
        timeout,
        data=data,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


async def exchange_client_credentials(
    token_url: str,
    client_id: str,
    client_secret: str,
    timeout: float = DEFAULT_TIMEOUT,
) -> OAuthTokenResponse:
    """
    Perform the client-credentials grant.

    Args:
        token_url: Token endpoint URL
        client_id: OAuth client ID
        client_secret: OAuth client secret
        timeout: Request timeout in seconds

    Returns:
        Parsed token response
    """
    body = {
        "grant_type": CLIENT_CREDENTIALS_GRANT,
        "client_id": client_id,
        "client_secret": client_secret,
    }
    return await _request_token(token_url, timeout, json=body)


async def _request_token(
    url: str,
    timeout: float,
    data: Optional[Dict[str, str]] = None,
    json: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> OAuthTokenResponse:
    """Make token request to OAuth server."""
    logger.debug("Requesting access token from %s", url)
    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                url,
                data=data,
                json=json,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    # 400 from a token endpoint means the grant itself was rejected.
                    if response.status == 400:
                        raise NormalizedError(
                            f"Token request rejected: {error_text[:200]}",
                            ErrorCode.AUTH_EXPIRED,
                            status_code=400,
                            details={"url": url},
                        )
                    raise ErrorHandler.from_http_status(
                        response.status,
                        f"Token request failed: {response.status}",
                        headers=response.headers,
                        response_text=error_text,
                        url=url,
                    )

                response_data: Dict[str, Any] = await response.json(content_type=None)
    except NormalizedError:
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ErrorHandler.from_exception(e, url=url) from e

    if "access_token" not in response_data:
        raise NormalizedError(
            "Access token not found in token response",
            ErrorCode.AUTH_EXPIRED,
            details={"url": url},
        )

    return OAuthTokenResponse(
        access_token=response_data["access_token"],
        expires_in=int(response_data.get("expires_in", 3600)),
        token_type=response_data.get("token_type", "Bearer"),
    )
