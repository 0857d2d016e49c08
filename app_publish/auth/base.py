"""
Base authentication types.

This module defines the credential descriptor registered per backend, the
cached token entry and the token lifetime constants shared by the
authentication manager and the signing primitives.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Tokens are treated as expired this long before their real expiry.
TOKEN_EXPIRY_BUFFER_MS = 60_000

SERVICE_ACCOUNT_TOKEN_LIFETIME_S = 3600
JWT_TOKEN_LIFETIME_S = 1200
PERMANENT_TOKEN_LIFETIME_MS = 365 * 24 * 60 * 60 * 1000

RSA_TOKEN_MARKER = "rsa-sign-per-request"
HMAC_TOKEN_MARKER = "hmac-sign-per-request"

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


class AuthType(str, Enum):
    """Supported authentication protocol families."""

    OAUTH2 = "oauth2"
    JWT = "jwt"
    RSA = "rsa"
    HMAC = "hmac"
    API_KEY = "apikey"


def normalize_config_key(key: str) -> str:
    """Convert a camelCase credential key to snake_case."""
    return _CAMEL_BOUNDARY.sub(r"_\1", key).lower()


class AuthCredentials(BaseModel):
    """
    Credential descriptor registered for one backend.

    Credential files written for other tooling often use camelCase keys
    (``clientId``, ``privateKeyPath``); they are normalized to snake_case so
    lookups only need one spelling.
    """

    type: AuthType = Field(description="Authentication protocol family")
    file_path: Optional[Path] = Field(
        default=None, description="File the credentials were loaded from"
    )
    config: Dict[str, str] = Field(
        default_factory=dict, description="Protocol-specific settings"
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("config", mode="before")
    @classmethod
    def normalize_keys(cls, value: Any) -> Any:
        """Normalize config keys and stringify values, dropping nulls."""
        if value is None:
            return {}
        if isinstance(value, dict):
            return {
                normalize_config_key(str(k)): str(v) for k, v in value.items() if v is not None
            }
        return value

    def get(self, *names: str, default: str = "") -> str:
        """Return the first non-empty config value among ``names``."""
        for name in names:
            value = self.config.get(name)
            if value:
                return value
        return default


@dataclass
class CachedToken:
    """Token cached for one backend."""

    token: str
    expires_at: float  # epoch milliseconds

    def is_valid(self, now_ms: float) -> bool:
        """Check the token against the expiry buffer."""
        return self.expires_at > now_ms + TOKEN_EXPIRY_BUFFER_MS
