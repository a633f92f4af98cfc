import asyncio
import logging

from .ws_manager import ConnectionManager

logger = logging.getLogger(__name__)


class WsForwarder:
    """Hands messages produced on worker threads to the event loop owning the sockets."""

    def __init__(self, loop: asyncio.AbstractEventLoop, manager: ConnectionManager):
        self.loop = loop
        self.manager = manager

    def schedule(self, message: dict):
        if self.loop.is_closed():
            logger.warning("[WS] Event loop closed, dropping %s", message.get("event"))
            return None
        return asyncio.run_coroutine_threadsafe(self.manager.deliver(message), self.loop)
