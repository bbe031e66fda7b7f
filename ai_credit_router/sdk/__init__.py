"""
SDK for AI Credit Router.

Provides the task router, the provider clients and the metered wrapper.
"""

from .metered import MeteredResult, MeteredRouter
from .router import AIRouter, RouteOptions, RouterResult, UsageStats

__all__ = [
    "AIRouter",
    "MeteredResult",
    "MeteredRouter",
    "RouteOptions",
    "RouterResult",
    "UsageStats",
]
