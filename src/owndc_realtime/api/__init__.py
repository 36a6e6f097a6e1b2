"""
REST status API for the OwnDc realtime server.
"""

from .app import create_app

__all__ = ["create_app"]
