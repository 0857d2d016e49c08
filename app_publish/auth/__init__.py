"""
Authentication for app_publish.

This package holds credential storage, token acquisition for the OAuth 2.0
and JWT backends, and per-request RSA and HMAC signing.
"""

from .base import AuthCredentials, AuthType, CachedToken
from .credential_store import DEFAULT_CREDENTIALS_DIR, CredentialStore, parse_credentials
from .jwt import ServiceAccountInfo, get_token_claims, issue_es256_token
from .manager import AuthManager
from .signing import canonicalize_params, hmac_sha256_hex, rsa_sha256_sign

__all__ = [
    "AuthManager",
    "AuthCredentials",
    "AuthType",
    "CachedToken",
    "CredentialStore",
    "DEFAULT_CREDENTIALS_DIR",
    "parse_credentials",
    "ServiceAccountInfo",
    "issue_es256_token",
    "get_token_claims",
    "canonicalize_params",
    "rsa_sha256_sign",
    "hmac_sha256_hex",
]
