import json
import logging
from typing import Any, List, Optional

import nats
from nats.aio.client import Client as NATS
from nats.js.client import JetStreamContext
from nats.js.errors import NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def dumps(msg: Any) -> str:
    """Serialize message to JSON string"""
    return json.dumps(msg, default=str)


def loads(data: str) -> Any:
    """Deserialize JSON string to Python object"""
    return json.loads(data)


class NatsClient:
    """
    A simple NATS client for JSON-encoded messages.
    Methods starting with 'a' execute asynchronously.
    """

    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT):
        self.url = url
        self.timeout = timeout
        self.nc: Optional[NATS] = None

    @property
    def is_connected(self) -> bool:
        return self.nc is not None and self.nc.is_connected

    async def aconnect(self):
        """Asynchronously connect to NATS server"""
        logger.info(f"Connecting to NATS at {self.url}")
        self.nc = await nats.connect(servers=[self.url], connect_timeout=self.timeout)
        logger.info(f"Connected to NATS at {self.url}")

    async def aclose(self):
        """Asynchronously close connection to NATS server"""
        if self.nc:
            await self.nc.close()
            self.nc = None

    async def apublish(self, subject: str, msg: Any):
        """Asynchronously publish a message to a subject"""
        if not self.nc:
            raise ConnectionError("Not connected to NATS server")
        await self.nc.publish(subject, dumps(msg).encode())


class NatsClientJS(NatsClient):
    """
    A NATS client with JetStream support for persistent messaging.
    Extends NatsClient with stream management.
    """

    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT):
        super().__init__(url, timeout)
        self.js: Optional[JetStreamContext] = None
        self._streams = set()

    async def aconnect(self):
        """Connect to NATS and initialize JetStream context"""
        await super().aconnect()
        self.js = self.nc.jetstream()
        logger.debug("JetStream context initialized")

    async def _stream_exists(self, stream_name: str) -> bool:
        """Check if a JetStream stream exists"""
        try:
            await self.js.stream_info(stream_name)
            return True
        except NotFoundError:
            return False

    async def aregister_new_stream(self, stream_name: str, subjects: List[str]):
        """Register a new JetStream stream"""
        if not await self._stream_exists(stream_name):
            await self.js.add_stream(name=stream_name, subjects=subjects)
            logger.info(f"Registered stream: {stream_name} with subjects: {subjects}")
        self._streams.add(stream_name)

    async def apublish(self, subject: str, msg: Any):
        """Publish a message to JetStream"""
        if not self.js:
            raise ConnectionError("JetStream not initialized")
        await self.js.publish(subject, dumps(msg).encode(), timeout=self.timeout)
