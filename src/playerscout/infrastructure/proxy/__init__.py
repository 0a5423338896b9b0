from .rotator import ProxyRotator

__all__ = ["ProxyRotator"]
