"""
Server startup module for RelayChat application.
Provides the entry point for starting the relay and its HTTP status endpoints.
"""

import asyncio
import logging
import threading

from RelayChat.config import config
from RelayChat.core.logging import auto_configure
from RelayChat.core.server import RelayServer
from RelayChat.web.routes import create_app, run

logger = logging.getLogger(__name__)


def server(host=None, port=None, srv_only=False, env=None):
    """
    Start the relay on the specified port.

    Args:
        host (str): Address to bind (default: config.DEFAULT_HOST)
        port (int): Websocket port (default: config.DEFAULT_SERVER_PORT);
            the HTTP endpoints listen on port + 1
        srv_only (bool): If True, skip the HTTP endpoints
        env (str): Logging environment preset
    """
    auto_configure(env or config.ENVIRONMENT)

    host = host or config.DEFAULT_HOST
    port = port or config.DEFAULT_SERVER_PORT

    relay = RelayServer(outbound_queue_size=config.OUTBOUND_QUEUE_SIZE)

    async def start_relay_server():
        async with relay.run(host, port):
            await asyncio.Future()

    try:
        if not srv_only:
            http_thread = threading.Thread(
                target=run,
                args=(create_app(relay), host, port + 1),
                daemon=True
            )
            http_thread.start()
            logger.info("HTTP endpoints on http://%s:%s", host, port + 1)

        asyncio.run(start_relay_server())
    except KeyboardInterrupt:
        logger.info("Closed by user.")
