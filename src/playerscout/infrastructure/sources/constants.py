"""Shared constants for source adapters."""

from __future__ import annotations

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_CLIENT_TIMEOUT = 15.0
DEFAULT_CACHE_TTL = 600.0

# Challenge pages served instead of the real response.
CHALLENGE_MARKERS: tuple[str, ...] = (
    "Just a moment",
    "challenge-platform",
    "cf-turnstile",
    "g-recaptcha",
    "h-captcha",
)
