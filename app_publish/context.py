"""
Process-wide publishing context.

A PublishContext is built once per process from a PublishConfig. It owns the
AuthManager and the AdapterRegistry, so there are no module-level singletons
to reset between runs or tests.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .adapters.base import StoreAdapter
from .adapters.registry import AdapterRegistry
from .auth.credential_store import CredentialStore
from .auth.manager import AuthManager
from .config.models import PublishConfig
from .logging.manager import LoggingManager, setup_logging

logger = logging.getLogger(__name__)


class PublishContext:
    """
    Owns the shared authentication manager and adapter registry.

    Examples:
        ```python
        config = ConfigLoader().load_config()
        async with await PublishContext.create(config) as ctx:
            adapter = ctx.get_adapter("google_play")
            status = await adapter.get_status("com.example.app")
        ```
    """

    def __init__(
        self,
        config: PublishConfig,
        auth: AuthManager,
        registry: AdapterRegistry,
        logging_manager: Optional[LoggingManager] = None,
    ) -> None:
        self.config = config
        self.auth = auth
        self.registry = registry
        self.logging_manager = logging_manager
        self._closed = False

    @classmethod
    async def create(
        cls,
        config: Optional[PublishConfig] = None,
        configure_logging: bool = False,
    ) -> "PublishContext":
        """
        Build a context from configuration.

        Credential files in ``config.credentials_dir`` are registered first;
        inline ``config.credentials`` then take precedence for the same backend.

        Args:
            config: Configuration (defaults if omitted)
            configure_logging: Install the package log handlers from
                ``config.logging``

        Returns:
            A ready context

        Raises:
            CredentialError: If a credential file is malformed
        """
        config = config or PublishConfig()
        logging_manager = setup_logging(config.logging) if configure_logging else None

        auth = AuthManager(store=CredentialStore(), credentials_dir=config.credentials_dir)
        if config.credentials_dir is not None:
            await auth.store.load_directory(config.credentials_dir)
        for backend_id, credentials in config.credentials.items():
            auth.set_credentials(backend_id, credentials)

        registry = AdapterRegistry.create_default(auth, config)
        logger.info(
            "Publish context ready: %d adapters, credentials for %s",
            len(registry),
            ", ".join(auth.configured_backends()) or "no backends",
        )
        return cls(config, auth, registry, logging_manager)

    def get_adapter(self, backend_id: str) -> Optional[StoreAdapter]:
        return self.registry.get_adapter(backend_id)

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        """Close adapter sessions and remove installed log handlers."""
        if self._closed:
            return
        await self.registry.close()
        if self.logging_manager is not None:
            self.logging_manager.cleanup()
        self._closed = True

    async def __aenter__(self) -> "PublishContext":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
