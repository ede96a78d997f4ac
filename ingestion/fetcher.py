"""Content fetchers - one JSON-RPC connection per enrichment worker."""

import asyncio
import itertools
import json
import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import aiohttp
from websockets import connect
from websockets.exceptions import WebSocketException

from comparison.enrichment import FetcherFactory
from comparison.errors import ConfigError, TransportError

logger = logging.getLogger(__name__)

ParamsBuilder = Callable[[str], List[Any]]


class WebSocketRpcFetcher:
    """
    Detail lookups over a dedicated WebSocket connection.

    Requests are sent one at a time; the reply is matched by id and any
    other frame on the connection is skipped.
    """

    def __init__(self, ws, method: str, params: ParamsBuilder, timeout: float = 10.0):
        self._ws = ws
        self.method = method
        self.params = params
        self.timeout = timeout
        self._ids = itertools.count(1)

    @classmethod
    async def open(
        cls, uri: str, method: str, params: ParamsBuilder, timeout: float = 10.0
    ) -> "WebSocketRpcFetcher":
        try:
            ws = await connect(uri, open_timeout=timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportError(f"cannot connect to {uri}: {e}") from e
        logger.debug(f"Lookup connection opened to {uri}")
        return cls(ws, method, params, timeout)

    async def fetch_by_hash(self, key: str) -> str:
        """
        Look up one hash.

        Returns:
            The raw JSON-RPC response frame
        """
        request_id = next(self._ids)
        request = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": self.method,
            "params": self.params(key),
        }
        try:
            await self._ws.send(json.dumps(request))
            return await asyncio.wait_for(self._reply(request_id), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise TransportError(f"{self.method} failed for {key}: {e!r}") from e

    async def _reply(self, request_id: int) -> str:
        while True:
            frame = await self._ws.recv()
            try:
                reply = json.loads(frame)
            except ValueError:
                continue
            if isinstance(reply, dict) and reply.get("id") == request_id:
                return frame

    async def close(self) -> None:
        try:
            await self._ws.close()
        except (OSError, WebSocketException) as e:
            raise TransportError(f"cannot close lookup connection: {e}") from e


class HttpRpcFetcher:
    """Detail lookups over HTTP JSON-RPC with an aiohttp session."""

    def __init__(
        self,
        uri: str,
        method: str,
        params: ParamsBuilder,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.uri = uri
        self.method = method
        self.params = params
        self._session = session or aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout)
        )
        self._ids = itertools.count(1)

    def _get_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def fetch_by_hash(self, key: str) -> str:
        request = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": self.method,
            "params": self.params(key),
        }
        try:
            async with self._session.post(
                self.uri, json=request, headers=self._get_headers()
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise TransportError(
                        f"{self.method} failed for {key} ({response.status}): {error_text}"
                    )
                return await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"{self.method} failed for {key}: {e!r}") from e

    async def close(self) -> None:
        await self._session.close()


def fetcher_factory(
    uri: str, method: str, params: ParamsBuilder, timeout: float = 10.0
) -> FetcherFactory:
    """
    Build the coroutine function the enrichment pool calls once per worker.

    ws:// and wss:// endpoints get a WebSocket connection each, http:// and
    https:// endpoints an aiohttp session each.
    """
    scheme = urlparse(uri).scheme
    if scheme in ("ws", "wss"):
        async def open_ws() -> WebSocketRpcFetcher:
            return await WebSocketRpcFetcher.open(uri, method, params, timeout)
        return open_ws

    if scheme in ("http", "https"):
        async def open_http() -> HttpRpcFetcher:
            return HttpRpcFetcher(uri, method, params, timeout)
        return open_http

    raise ConfigError(f"unsupported lookup endpoint scheme: {uri}")
