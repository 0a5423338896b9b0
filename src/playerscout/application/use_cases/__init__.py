from .resolve_player import ALL_SOURCES_FAILED, ResolutionOrchestrator

__all__ = ["ALL_SOURCES_FAILED", "ResolutionOrchestrator"]
