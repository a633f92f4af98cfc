import json
import logging
import threading
import time
from typing import Iterable, Optional

import redis

from .config import Settings
from .ws_forwarder import WsForwarder

logger = logging.getLogger(__name__)


def connect_redis(settings: Settings) -> Optional[redis.Redis]:
    """Return a live Redis client, or None to fall back to in-process delivery."""
    if not (settings.redis_host and settings.redis_port):
        logger.info("[Notifier] Redis not configured, using direct WebSocket delivery")
        return None
    client = redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
        socket_connect_timeout=2,
    )
    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning("[Notifier] Redis not available: %s. Using direct WebSocket delivery only.", e)
        return None
    logger.info("[Notifier] Redis connected, fanning out on channel %s", settings.redis_channel)
    return client


class Notifier:
    """Publishes ride events to websocket clients.

    With Redis every gateway process receives the message through its
    listener thread and delivers it to its own sockets. Without Redis the
    message goes straight to this process's sockets. Either way clients that
    are not connected at publish time never see the event.
    """

    def __init__(
        self,
        forwarder: Optional[WsForwarder] = None,
        redis_client: Optional[redis.Redis] = None,
        channel: str = "ride_updates",
    ):
        self.forwarder = forwarder
        self.redis_client = redis_client
        self.channel = channel

    def publish(self, event: str, payload, rooms: Iterable[str] = (), broadcast: bool = False):
        message = {
            "event": event,
            "payload": payload,
            "rooms": [room for room in rooms if room],
            "broadcast": broadcast,
        }
        if self.redis_client is not None:
            try:
                self.redis_client.publish(self.channel, json.dumps(message))
                return
            except redis.RedisError as e:
                logger.warning("[Notifier] Failed to publish %s to Redis: %s", event, e)
        self.dispatch(message)

    def dispatch(self, message: dict):
        if self.forwarder is None:
            logger.warning("[Notifier] No event loop attached, dropping %s", message.get("event"))
            return None
        return self.forwarder.schedule(message)

    def handle_raw(self, raw) -> bool:
        """Dispatch one message read from the Redis channel."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("[Notifier] Ignoring malformed message on %s", self.channel)
            return False
        if not isinstance(message, dict) or not message.get("event"):
            logger.warning("[Notifier] Ignoring message without event on %s", self.channel)
            return False
        self.dispatch(message)
        return True


def redis_listener(notifier: Notifier, stop: threading.Event):
    """Threaded Redis listener pushing channel messages into the event loop."""
    if notifier.redis_client is None:
        logger.info("[Notifier] Redis not available, skipping Redis listener")
        return

    pubsub = notifier.redis_client.pubsub(ignore_subscribe_messages=True)
    pubsub.subscribe(notifier.channel)
    logger.info("[Notifier] Redis listener started, waiting for ride updates...")
    try:
        while not stop.is_set():
            try:
                message = pubsub.get_message(timeout=1.0)
                if message and message.get("type") == "message":
                    notifier.handle_raw(message.get("data"))
            except redis.RedisError as e:
                logger.error("[Notifier] Error in Redis listener: %s", e)
                time.sleep(2)
    finally:
        pubsub.close()


def start_redis_listener(notifier: Notifier) -> Optional[threading.Event]:
    if notifier.redis_client is None:
        return None
    stop = threading.Event()
    thread = threading.Thread(target=redis_listener, args=(notifier, stop), daemon=True)
    thread.start()
    return stop
