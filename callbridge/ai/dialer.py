"""Dialing the AI leg websocket."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

import structlog
import websockets
from websockets.asyncio.client import ClientConnection


logger = structlog.get_logger(__name__)

Dialer = Callable[[], Awaitable[ClientConnection]]


@dataclass(frozen=True)
class RealtimeEndpoint:
    """Where and how to reach the realtime AI session."""

    url: str
    api_key: str
    beta_header: Optional[str] = None
    open_timeout: float = 10.0

    def headers(self) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if self.beta_header:
            headers["OpenAI-Beta"] = self.beta_header
        return headers


async def dial_realtime(endpoint: RealtimeEndpoint) -> ClientConnection:
    """Open the AI leg websocket.

    Args:
        endpoint: Realtime endpoint settings

    Returns:
        Open websocket connection

    Raises:
        ConnectionError: If the connection cannot be established
    """
    try:
        async with asyncio.timeout(endpoint.open_timeout):
            return await websockets.connect(
                endpoint.url,
                additional_headers=endpoint.headers(),
                open_timeout=endpoint.open_timeout,
                max_size=None,
            )
    except (OSError, TimeoutError, websockets.exceptions.WebSocketException) as e:
        raise ConnectionError(f"Failed to connect to realtime AI: {e}") from e


def realtime_dialer(endpoint: RealtimeEndpoint) -> Dialer:
    """Bind an endpoint into a zero-argument dialer."""

    async def _dial() -> ClientConnection:
        return await dial_realtime(endpoint)

    return _dial


async def dial_with_retry(dial: Dialer, retries: int = 0, backoff: float = 1.0) -> ClientConnection:
    """Dial with exponential backoff.

    Args:
        dial: Zero-argument coroutine factory opening the connection
        retries: Extra attempts after the first failure
        backoff: Delay before the first retry, doubled after each failure

    Returns:
        Open connection

    Raises:
        ConnectionError: If every attempt fails
    """
    delay = backoff
    for attempt in range(retries + 1):
        try:
            return await dial()
        except ConnectionError as e:
            if attempt >= retries:
                raise
            logger.warning(
                "AI dial failed, retrying",
                attempt=attempt + 1,
                retries=retries,
                delay=delay,
                error=str(e)
            )
            await asyncio.sleep(delay)
            delay *= 2

    raise ConnectionError("AI dial attempts exhausted")
