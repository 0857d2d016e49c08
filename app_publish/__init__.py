"""
Authentication and resilient dispatch for app-store publishing backends.

This package lets one program talk to many app stores through a single
adapter contract. It provides:

- Credential storage and token caching for OAuth 2.0, ES256 JWT, RSA and
  HMAC request signing, and API keys
- A StoreAdapter base with exponential-backoff retry, error normalization
  and per-backend token-bucket rate limiting
- Adapters for Google Play, the App Store, Huawei AppGallery, Honor, OPPO,
  Pgyer, Xiaomi, vivo and Tencent MyApp
- Configuration from YAML/JSON files and environment variables
"""

from .adapters import (
    AdapterRegistry,
    BackendKind,
    StoreAdapter,
    StoreCapabilities,
    Unsupported,
)
from .auth import AuthCredentials, AuthManager, AuthType, CredentialStore
from .config import ConfigLoader, PublishConfig, RetryPolicy
from .context import PublishContext
from .exceptions import (
    CredentialError,
    ErrorCode,
    ErrorHandler,
    NormalizedError,
    PublishError,
    Severity,
)
from .logging import setup_logging
from .utils import RateLimiter, create_rate_limiter

__version__ = "0.1.0"

__all__ = [
    # Context
    "PublishContext",
    # Auth
    "AuthManager",
    "AuthCredentials",
    "AuthType",
    "CredentialStore",
    # Adapters
    "StoreAdapter",
    "AdapterRegistry",
    "BackendKind",
    "StoreCapabilities",
    "Unsupported",
    # Dispatch utilities
    "RateLimiter",
    "create_rate_limiter",
    # Config
    "ConfigLoader",
    "PublishConfig",
    "RetryPolicy",
    "setup_logging",
    # Errors
    "PublishError",
    "NormalizedError",
    "CredentialError",
    "ErrorCode",
    "ErrorHandler",
    "Severity",
]
