"""
Configuration management for the OwnDc realtime server.

This package provides:
- The RealtimeConfig data structure and its validation
- Environment variable loading (python-dotenv)
"""

from .settings import RealtimeConfig, RealtimeConfigManager

__all__ = [
    "RealtimeConfig",
    "RealtimeConfigManager",
]
