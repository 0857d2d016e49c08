"""
JWT (JSON Web Token) issuance.

This module builds the two kinds of signed JWTs the authentication layer
needs: short-lived ES256 API tokens sent directly as bearer tokens, and
RS256 service-account assertions exchanged for OAuth 2.0 access tokens.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt

from ..exceptions import CredentialError
from .base import JWT_TOKEN_LIFETIME_S, SERVICE_ACCOUNT_TOKEN_LIFETIME_S

APP_STORE_CONNECT_AUDIENCE = "appstoreconnect-v1"
ANDROID_PUBLISHER_SCOPE = "https://www.googleapis.com/auth/androidpublisher"


@dataclass(frozen=True)
class ServiceAccountInfo:
    """Fields of a service-account key file used for the JWT-bearer grant."""

    client_email: str
    private_key: str
    token_uri: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> "ServiceAccountInfo":
        """
        Build from a parsed service-account JSON document.

        Raises:
            CredentialError: If a required field is missing
        """
        missing = [f for f in ("client_email", "private_key", "token_uri") if not data.get(f)]
        if missing:
            where = f" in {source}" if source else ""
            raise CredentialError(
                f"Service account key is missing {', '.join(missing)}{where}",
                suggestion="Download a fresh JSON key for the service account.",
            )
        return cls(
            client_email=data["client_email"],
            private_key=data["private_key"],
            token_uri=data["token_uri"],
        )


def issue_es256_token(
    key_id: str,
    issuer_id: str,
    private_key: str,
    issued_at: int,
    expires_in: int = JWT_TOKEN_LIFETIME_S,
    audience: str = APP_STORE_CONNECT_AUDIENCE,
) -> str:
    """
    Issue an ES256-signed API token.

    Args:
        key_id: API key identifier (``kid`` header)
        issuer_id: Issuer identifier (``iss`` claim)
        private_key: PEM-encoded EC P-256 private key
        issued_at: ``iat`` claim in epoch seconds
        expires_in: Token lifetime in seconds
        audience: ``aud`` claim

    Returns:
        Encoded JWT

    Raises:
        CredentialError: If the key material cannot sign ES256
    """
    payload = {
        "iss": issuer_id,
        "iat": issued_at,
        "exp": issued_at + expires_in,
        "aud": audience,
    }
    headers = {"alg": "ES256", "kid": key_id, "typ": "JWT"}
    return _encode(payload, private_key, "ES256", headers)


def build_service_account_assertion(
    account: ServiceAccountInfo,
    issued_at: int,
    scope: str = ANDROID_PUBLISHER_SCOPE,
    expires_in: int = SERVICE_ACCOUNT_TOKEN_LIFETIME_S,
) -> str:
    """
    Build the RS256 assertion for the OAuth 2.0 JWT-bearer grant.

    Args:
        account: Service account key
        issued_at: ``iat`` claim in epoch seconds
        scope: OAuth scope requested
        expires_in: Assertion lifetime in seconds

    Returns:
        Encoded JWT
    """
    payload = {
        "iss": account.client_email,
        "scope": scope,
        "aud": account.token_uri,
        "iat": issued_at,
        "exp": issued_at + expires_in,
    }
    return _encode(payload, account.private_key, "RS256")


def get_token_claims(token: str) -> Dict[str, Any]:
    """
    Get claims from a JWT without verifying its signature.

    Returns an empty dict if the token cannot be decoded.
    """
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return {}


def _encode(
    payload: Dict[str, Any],
    key: str,
    algorithm: str,
    headers: Optional[Dict[str, Any]] = None,
) -> str:
    try:
        return jwt.encode(payload, key, algorithm=algorithm, headers=headers)
    except (jwt.PyJWTError, ValueError, TypeError) as e:
        raise CredentialError(
            f"Cannot sign {algorithm} token: {e}",
            suggestion="Check that the private key file contains a valid PEM key "
            f"for {algorithm}.",
        ) from e
