"""
Transcoding provider adapters and the registry that selects between them.
"""
import logging
from typing import Dict, List, Optional

from tubehub.core.config import Settings
from tubehub.core.exceptions import NotFoundException
from tubehub.providers.base import ProviderAdapter, get_header
from tubehub.providers.bunny import BunnyAdapter
from tubehub.providers.mux import MuxAdapter

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Adapters keyed by provider name, plus the one used for new uploads."""

    def __init__(self, adapters: Optional[Dict[str, ProviderAdapter]] = None, default: Optional[str] = None):
        self._adapters: Dict[str, ProviderAdapter] = dict(adapters or {})
        self.default_name = default

    def register(self, adapter: ProviderAdapter) -> None:
        self._adapters[adapter.name] = adapter

    def get(self, name: str) -> ProviderAdapter:
        """
        Look up an adapter by provider name.

        Raises:
            NotFoundException: If no adapter with that name is configured
        """
        adapter = self._adapters.get(name)
        if adapter is None:
            raise NotFoundException("Provider", name)
        return adapter

    @property
    def default(self) -> ProviderAdapter:
        """Adapter that opens new upload sessions."""
        if self.default_name is None:
            raise NotFoundException("Provider", "<default>")
        return self.get(self.default_name)

    def names(self) -> List[str]:
        return sorted(self._adapters)


def build_provider_registry(settings: Settings) -> ProviderRegistry:
    """Build adapters for every provider that has credentials configured."""
    common = {
        "timeout": settings.provider_timeout_seconds,
        "max_retries": settings.provider_retry_count,
        "retry_base_delay": settings.provider_retry_base_delay,
    }
    registry = ProviderRegistry(default=settings.transcoding_provider)

    if settings.mux_configured():
        registry.register(MuxAdapter(
            token_id=settings.mux_token_id,
            token_secret=settings.mux_token_secret,
            webhook_secret=settings.mux_webhook_secret,
            api_base_url=settings.mux_api_base_url,
            cors_origin=settings.mux_cors_origin,
            signature_tolerance_seconds=settings.mux_signature_tolerance_seconds,
            **common
        ))

    if settings.bunny_configured():
        registry.register(BunnyAdapter(
            library_id=settings.bunny_library_id,
            api_key=settings.bunny_api_key,
            webhook_secret=settings.bunny_webhook_secret,
            cdn_hostname=settings.bunny_cdn_hostname,
            api_base_url=settings.bunny_api_base_url,
            tus_endpoint=settings.bunny_tus_endpoint,
            **common
        ))

    if settings.transcoding_provider not in registry.names():
        logger.warning(
            f"Transcoding provider '{settings.transcoding_provider}' is not configured; "
            f"uploads will fail until credentials are set (configured: {registry.names()})"
        )
    else:
        logger.info(f"Transcoding providers configured: {registry.names()} (default: {settings.transcoding_provider})")

    return registry


__all__ = [
    "ProviderAdapter",
    "MuxAdapter",
    "BunnyAdapter",
    "ProviderRegistry",
    "build_provider_registry",
    "get_header",
]
