"""API routers module."""

from . import health, platform_analytics

__all__ = [
    "health",
    "platform_analytics",
]
