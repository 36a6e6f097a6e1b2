"""
FastAPI status application for the realtime server.

Read-only views over the coordination layer: health, counters, whether a
user is reachable, and who is in a voice room. It shares the event router
with the WebSocket server running in the same process.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .. import __version__
from ..core import EventRouter

logger = logging.getLogger(__name__)


class PresenceResponse(BaseModel):
    """Response model for a presence lookup."""
    userId: str
    online: bool


class VoiceRoomResponse(BaseModel):
    """Response model for a voice room roster."""
    channelId: str
    users: List[str]


class StatsResponse(BaseModel):
    """Response model for coordination layer counters."""
    open_connections: int
    online_users: int
    authenticated_sessions: int
    text_rooms: int
    text_members: int
    voice_rooms: int
    voice_members: int


# Router shared with the WebSocket server
event_router: Optional[EventRouter] = None


def get_event_router() -> EventRouter:
    """Dependency to get the event router instance."""
    if event_router is None:
        raise HTTPException(status_code=503, detail="Event router not initialized")
    return event_router


def create_app(router: EventRouter) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        router: Event router whose state the endpoints expose

    Returns:
        Configured FastAPI application
    """
    global event_router
    event_router = router

    app = FastAPI(
        title="OwnDc Realtime API",
        description="Status endpoints for the OwnDc realtime server",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root() -> Dict[str, Any]:
        return {"message": "OwnDc Realtime API", "version": __version__}

    @app.get("/health")
    async def health_check() -> Dict[str, str]:
        return {"status": "healthy"}

    @app.get("/stats", response_model=StatsResponse)
    async def get_stats(router: EventRouter = Depends(get_event_router)):
        return StatsResponse(**router.get_stats())

    @app.get("/presence/{user_id}", response_model=PresenceResponse)
    async def get_presence(user_id: str, router: EventRouter = Depends(get_event_router)):
        """Whether ``user_id`` has a live connection on this process."""
        return PresenceResponse(userId=user_id, online=router.registry.is_online(user_id))

    @app.get("/voice/{channel_id}", response_model=VoiceRoomResponse)
    async def get_voice_room(
        channel_id: str, router: EventRouter = Depends(get_event_router)
    ):
        """Current participants of a voice room."""
        return VoiceRoomResponse(
            channelId=channel_id,
            users=sorted(router.voice_rooms.members_of(channel_id)),
        )

    return app
