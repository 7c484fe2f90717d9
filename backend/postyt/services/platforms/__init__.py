from .base import PlatformAdapter, UnimplementedAdapter
from .facebook import FacebookAdapter
from .instagram import InstagramAdapter
from .registry import PlatformRegistry, default_registry
from .tiktok import TikTokAdapter
from .twitter import TwitterAdapter
from .youtube import YouTubeAdapter

__all__ = [
    "PlatformAdapter", "UnimplementedAdapter", "PlatformRegistry", "default_registry",
    "YouTubeAdapter", "TikTokAdapter", "FacebookAdapter", "InstagramAdapter", "TwitterAdapter",
]
