from .cache import PlayerLoader, ResultCachePort
from .source import SourceAdapterPort

__all__ = [
    "PlayerLoader",
    "ResultCachePort",
    "SourceAdapterPort",
]
