from typing import Dict, Iterable, List, Optional

import httpx

from contentforge.config import Settings
from contentforge.errors import NotFoundError
from contentforge.schemas.publishing import PlatformCapabilities
from contentforge.services.platforms.base import PlatformAdapter
from contentforge.services.platforms.facebook import FacebookAdapter
from contentforge.services.platforms.instagram import InstagramAdapter
from contentforge.services.platforms.linkedin import LinkedInAdapter
from contentforge.services.platforms.twitter import TwitterAdapter

DEFAULT_ADAPTERS = (TwitterAdapter, LinkedInAdapter, InstagramAdapter, FacebookAdapter)


class AdapterRegistry:
    """Platform name -> adapter. New platforms are added here, not at call sites."""

    def __init__(self, adapters: Iterable[PlatformAdapter] = ()):
        self._adapters: Dict[str, PlatformAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: PlatformAdapter) -> None:
        self._adapters[adapter.platform] = adapter

    def get(self, platform: str) -> PlatformAdapter:
        adapter = self._adapters.get(platform)
        if adapter is None:
            raise NotFoundError("Platform adapter", platform)
        return adapter

    def supports(self, platform: str) -> bool:
        return platform in self._adapters

    def capabilities(self, platform: str) -> PlatformCapabilities:
        return self.get(platform).capabilities

    def char_limit(self, platform: str) -> Optional[int]:
        return self.capabilities(platform).char_limit

    def platforms(self) -> List[str]:
        return list(self._adapters)


def build_default_registry(settings: Settings, client: httpx.AsyncClient) -> AdapterRegistry:
    return AdapterRegistry(adapter_cls(client, settings) for adapter_cls in DEFAULT_ADAPTERS)
