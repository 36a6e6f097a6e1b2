#!/usr/bin/env python3
"""
Run the OwnDc realtime server.

Starts the WebSocket server and the status API in one process. Settings
come from the environment or a local .env file.
"""

import sys
from pathlib import Path

# Add src directory to Python path
src_path = Path(__file__).parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from owndc_realtime.websockets.server.chat_server import run

if __name__ == "__main__":
    run()
