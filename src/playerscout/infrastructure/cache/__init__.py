"""Cache Infrastructure - Backend-Implementations."""

from .memory_cache import MemoryResultCache

__all__ = ["MemoryResultCache"]
