from .media import (
    ContentRef,
    ErrorKind,
    MediaType,
    PlayerResult,
    SearchHit,
    SearchResult,
    SeriesIndex,
    StreamKind,
    StreamVariant,
    build_cache_key,
)

__all__ = [
    "ContentRef",
    "ErrorKind",
    "MediaType",
    "PlayerResult",
    "SearchHit",
    "SearchResult",
    "SeriesIndex",
    "StreamKind",
    "StreamVariant",
    "build_cache_key",
]
