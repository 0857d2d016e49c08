"""
Adapter registry.

Maps backend ids to adapter instances. ``AdapterRegistry.create_default`` is
the one place adapters are constructed: it wires every known backend against
a single shared AuthManager.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Optional, Type

from ..auth.manager import AuthManager
from ..config.models import PublishConfig
from ..utils.rate_limit import create_rate_limiter
from .app_store import AppStoreAdapter
from .base import DEFAULT_REQUEST_TIMEOUT, StoreAdapter
from .google_play import GooglePlayAdapter
from .honor import HonorAdapter
from .huawei_agc import HuaweiAgcAdapter
from .models import StoreCapabilities
from .oppo import OppoAdapter
from .pgyer import PgyerAdapter
from .tencent_myapp import TencentMyAppAdapter
from .vivo import VivoAdapter
from .xiaomi import XiaomiAdapter

logger = logging.getLogger(__name__)


class BackendKind(str, Enum):
    """Known store backends."""

    GOOGLE_PLAY = "google_play"
    APP_STORE = "app_store"
    HUAWEI_AGC = "huawei_agc"
    PGYER = "pgyer"
    OPPO = "oppo"
    HONOR = "honor"
    XIAOMI = "xiaomi"
    VIVO = "vivo"
    TENCENT_MYAPP = "tencent_myapp"


ADAPTER_CLASSES: Dict[BackendKind, Type[StoreAdapter]] = {
    BackendKind.GOOGLE_PLAY: GooglePlayAdapter,
    BackendKind.APP_STORE: AppStoreAdapter,
    BackendKind.HUAWEI_AGC: HuaweiAgcAdapter,
    BackendKind.PGYER: PgyerAdapter,
    BackendKind.OPPO: OppoAdapter,
    BackendKind.HONOR: HonorAdapter,
    BackendKind.XIAOMI: XiaomiAdapter,
    BackendKind.VIVO: VivoAdapter,
    BackendKind.TENCENT_MYAPP: TencentMyAppAdapter,
}


class AdapterRegistry:
    """Registry of store adapters keyed by backend id."""

    def __init__(self) -> None:
        self._adapters: Dict[str, StoreAdapter] = {}

    def register(self, backend_id: str, adapter: StoreAdapter) -> None:
        """Register an adapter, replacing any earlier one for the same id."""
        self._adapters[str(getattr(backend_id, "value", backend_id))] = adapter

    def get_adapter(self, backend_id: str) -> Optional[StoreAdapter]:
        """Look up an adapter; unknown ids give ``None``."""
        return self._adapters.get(str(getattr(backend_id, "value", backend_id)))

    def get_capabilities(self, backend_id: str) -> Optional[StoreCapabilities]:
        """Capabilities of a backend, without authenticating."""
        adapter = self.get_adapter(backend_id)
        return adapter.get_capabilities() if adapter else None

    def get_all_capabilities(self) -> List[StoreCapabilities]:
        return [adapter.get_capabilities() for adapter in self._adapters.values()]

    def get_supported_stores(self) -> List[str]:
        return list(self._adapters)

    def __contains__(self, backend_id: object) -> bool:
        return str(getattr(backend_id, "value", backend_id)) in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    @classmethod
    def create_default(
        cls, auth_manager: AuthManager, config: Optional[PublishConfig] = None
    ) -> "AdapterRegistry":
        """
        Build a registry with an adapter for every known backend.

        Args:
            auth_manager: Authentication manager shared by all adapters
            config: Retry policy, rate limit overrides and request timeout
                (defaults when omitted)

        Returns:
            The populated registry
        """
        registry = cls()
        retry_policy = config.retry if config else None
        overrides = config.rate_limits if config else None
        timeout = config.request_timeout if config else DEFAULT_REQUEST_TIMEOUT

        for kind, adapter_cls in ADAPTER_CLASSES.items():
            registry.register(
                kind.value,
                adapter_cls(
                    auth_manager,
                    retry_policy=retry_policy,
                    rate_limiter=create_rate_limiter(kind.value, overrides),
                    timeout=timeout,
                ),
            )

        logger.debug("Registered %d store adapters", len(registry))
        return registry

    async def close(self) -> None:
        """Close every adapter's HTTP session."""
        for adapter in self._adapters.values():
            await adapter.close()


__all__ = ["ADAPTER_CLASSES", "AdapterRegistry", "BackendKind"]
