"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "playerscout",
    "environment": "dev",
    "http": {
        "timeout_seconds": 15.0,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "cache": {
        "ttl_seconds": 600.0,
        "failure_ttl_seconds": None,
    },
    "search": {
        "timeout_seconds": 30.0,
    },
    "sources": {
        "priority": ["collaps", "videohub", "rezka"],
    },
}
