from __future__ import annotations

from ...errors import UnimplementedPlatform, UnsupportedPlatform
from ...models import PlatformId
from .base import PlatformAdapter, UnimplementedAdapter
from .facebook import FacebookAdapter
from .instagram import InstagramAdapter
from .tiktok import TikTokAdapter
from .twitter import TwitterAdapter
from .youtube import YouTubeAdapter


class PlatformRegistry:
    """Maps platform ids to adapters.

    Unknown ids are reported as unsupported. Known platforms without an
    integration resolve to an ``UnimplementedAdapter`` so callers can tell
    the two cases apart.
    """

    def __init__(self, adapters: dict[PlatformId, PlatformAdapter]):
        self._adapters = dict(adapters)

    def resolve(self, platform: str) -> PlatformAdapter:
        platform_id = PlatformId.parse(platform)
        if platform_id is None or platform_id not in self._adapters:
            raise UnsupportedPlatform(platform)
        return self._adapters[platform_id]

    def require(self, platform: str) -> PlatformAdapter:
        """Resolve and reject placeholders."""
        adapter = self.resolve(platform)
        if not adapter.implemented:
            raise UnimplementedPlatform(adapter.name)
        return adapter

    def platforms(self) -> list[PlatformId]:
        return list(self._adapters)


def default_registry() -> PlatformRegistry:
    return PlatformRegistry(
        {
            PlatformId.YOUTUBE: YouTubeAdapter(),
            PlatformId.TIKTOK: TikTokAdapter(),
            PlatformId.FACEBOOK: FacebookAdapter(),
            PlatformId.INSTAGRAM: InstagramAdapter(),
            PlatformId.TWITTER: TwitterAdapter(),
            PlatformId.REDDIT: UnimplementedAdapter(PlatformId.REDDIT),
            PlatformId.SNAPCHAT: UnimplementedAdapter(PlatformId.SNAPCHAT),
        }
    )
