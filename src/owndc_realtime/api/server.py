"""
Status API server runner.
"""

import logging

import uvicorn

from ..core import EventRouter
from .app import create_app

logger = logging.getLogger(__name__)


async def run_api_server(
    router: EventRouter,
    host: str = "0.0.0.0",
    port: int = 3002,
) -> None:
    """
    Serve the status API until cancelled.

    Args:
        router: Event router shared with the WebSocket server
        host: Host to bind to
        port: Port to bind to
    """
    app = create_app(router)

    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    logger.info(f"Starting status API server on {host}:{port}")
    await server.serve()
