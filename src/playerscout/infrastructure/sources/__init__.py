from .base import HttpxSourceBase
from .collaps import CollapsSource
from .rezka import RezkaSource
from .videohub import VideoHubSource

__all__ = [
    "CollapsSource",
    "HttpxSourceBase",
    "RezkaSource",
    "VideoHubSource",
]
