"""WebSocket feed reader - turns a subscription into timestamped FeedMessages."""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import backoff
from websockets import connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from comparison.engine import utc_now
from comparison.errors import TransportError
from comparison.models import FeedMessage, Source

from .config import FeedConfig
from .subscriptions import Subscription

logger = logging.getLogger(__name__)


class FeedReader:
    """
    Reads one real-time feed and forwards every frame to the engine.

    Each frame is stamped with the shared clock the moment it is received,
    before any decoding. Decoding happens in the engine task. When the
    connection ends, a final FeedMessage carrying the error is pushed and
    the reader stops; reconnecting is left to the caller.
    """

    def __init__(
        self,
        source: Source,
        uri: str,
        subscription: Subscription,
        queue: "asyncio.Queue[FeedMessage]",
        config: Optional[FeedConfig] = None,
        headers: Optional[Dict[str, str]] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the reader.

        Args:
            source: Which side of the comparison this feed is
            uri: WebSocket endpoint
            subscription: Subscribe / unsubscribe requests for the feed
            queue: Engine arrival queue for this source
            config: Connection settings
            headers: Extra handshake headers (gateway authorization)
            clock: Time source shared with the engine
        """
        self.source = source
        self.uri = uri
        self.subscription = subscription
        self.queue = queue
        self.config = config or FeedConfig()
        self.headers = headers or {}
        self.clock = clock

        self._ws = None
        self.subscription_id: Optional[str] = None
        self._early: List[FeedMessage] = []
        self._message_count = 0

    async def connect(self) -> None:
        """
        Open the connection and subscribe, retrying with exponential backoff.

        Raises:
            TransportError: if every attempt failed
        """
        opener = backoff.on_exception(
            backoff.expo,
            TransportError,
            max_tries=self.config.connect_attempts,
            on_backoff=lambda details: logger.warning(
                f"Connecting to {self.source.value} feed {self.uri} failed, "
                f"attempt {details['tries']}"
            ),
        )(self._open)
        await opener()
        logger.info(
            f"Subscribed to {self.source.value} feed {self.subscription.name!r} "
            f"at {self.uri} (subscription {self.subscription_id})"
        )

    async def _open(self) -> None:
        try:
            self._ws = await connect(
                self.uri,
                additional_headers=self.headers or None,
                open_timeout=self.config.open_timeout,
                ping_interval=self.config.ping_interval,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportError(f"cannot connect to {self.uri}: {e}") from e

        try:
            await self._ws.send(json.dumps(self.subscription.request))
            self.subscription_id = await asyncio.wait_for(
                self._await_subscription(), timeout=self.config.open_timeout
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            await self._discard()
            raise TransportError(f"cannot subscribe to {self.subscription.name!r}: {e}") from e
        except TransportError:
            await self._discard()
            raise

    async def _await_subscription(self) -> str:
        while True:
            frame = await self._ws.recv()
            received_at = self.clock()
            reply = _decode(frame)
            if reply is None or reply.get("id") != self.subscription.request_id:
                # Notification that raced the subscribe reply
                self._early.append(FeedMessage(self.source, frame, received_at))
                continue
            if reply.get("error") is not None:
                raise TransportError(
                    f"subscription to {self.subscription.name!r} rejected: {reply['error']}"
                )
            return str(reply.get("result"))

    async def run(self) -> None:
        """Forward frames to the engine until the connection ends."""
        if self._ws is None:
            raise TransportError(f"{self.source.value} feed is not connected")

        try:
            for message in self._early:
                await self._forward(message)
            self._early = []

            async for frame in self._ws:
                await self._forward(FeedMessage(self.source, frame, self.clock()))

            logger.warning(f"{self.source.value} feed closed by peer")
            await self._forward(
                FeedMessage(self.source, None, self.clock(), error=TransportError("feed closed"))
            )
        except ConnectionClosed as e:
            logger.warning(f"{self.source.value} feed connection closed: {e}")
            await self._forward(
                FeedMessage(self.source, None, self.clock(), error=TransportError(str(e)))
            )
        finally:
            await self.close()

    async def _forward(self, message: FeedMessage) -> None:
        self._message_count += 1
        await self.queue.put(message)

    async def close(self) -> None:
        """Unsubscribe and close the connection. Safe to call more than once."""
        if self._ws is None:
            return

        if self.subscription_id is not None:
            request = self.subscription.unsubscribe_request(self.subscription_id)
            try:
                await self._ws.send(json.dumps(request))
            except (OSError, WebSocketException) as e:
                logger.error(f"cannot unsubscribe from feed {self.subscription.name!r}: {e}")
            self.subscription_id = None

        await self._discard()
        logger.info(f"{self.source.value} feed closed after {self._message_count} messages")

    async def _discard(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except (OSError, WebSocketException) as e:
            logger.error(f"cannot close connection to {self.uri}: {e}")

    @property
    def message_count(self) -> int:
        return self._message_count


def _decode(frame: Any) -> Optional[dict]:
    try:
        message = json.loads(frame)
    except (TypeError, ValueError):
        return None
    return message if isinstance(message, dict) else None
