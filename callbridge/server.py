"""Call leg listener: one SessionBridge per accepted media stream.

The listener also answers ``GET /health`` so load balancers can check the
process without opening a websocket.
"""

import asyncio
import signal
from http import HTTPStatus
from typing import Callable, Dict, Optional
from urllib.parse import urlparse

import structlog
from websockets.asyncio.server import ServerConnection, serve
from websockets.http11 import Request, Response

from callbridge.ai.dialer import RealtimeEndpoint, realtime_dialer
from callbridge.bridge.commit_scheduler import MinimumAudioPolicy, TurnPolicy
from callbridge.bridge.session_bridge import BridgeSettings, SessionBridge
from callbridge.config import Config
from callbridge.core.agent_config import AgentConfig


logger = structlog.get_logger(__name__)

BridgeFactory = Callable[[ServerConnection], SessionBridge]


class BridgeRegistry:
    """Creates and tracks one bridge per accepted call leg."""

    def __init__(self, factory: BridgeFactory) -> None:
        self._factory = factory
        self._bridges: Dict[str, SessionBridge] = {}

    def __len__(self) -> int:
        return len(self._bridges)

    def get(self, session_id: str) -> Optional[SessionBridge]:
        return self._bridges.get(session_id)

    async def handle(self, connection: ServerConnection) -> None:
        """Websocket handler: run a fresh bridge for the connection's lifetime."""
        bridge = self._factory(connection)
        self._bridges[bridge.id] = bridge
        logger.info("Call leg accepted", session_id=bridge.id, active_calls=len(self._bridges))

        try:
            await bridge.run()
        finally:
            self._bridges.pop(bridge.id, None)
            logger.info("Call finished", session_id=bridge.id, active_calls=len(self._bridges))

    async def close_all(self, reason: str = "shutdown") -> None:
        """Tear down every live bridge."""
        bridges = list(self._bridges.values())
        if not bridges:
            return

        logger.info("Closing active calls", count=len(bridges))
        results = await asyncio.gather(
            *(bridge.close(reason) for bridge in bridges),
            return_exceptions=True
        )
        for bridge, result in zip(bridges, results):
            if isinstance(result, Exception):
                logger.error("Error closing bridge", session_id=bridge.id, error=str(result))


def build_turn_policy(config: Config) -> Optional[TurnPolicy]:
    """Fixed cadence unless a minimum amount of audio per commit is configured."""
    min_ms = config.bridge.min_commit_audio_ms
    if min_ms <= 0:
        return None
    return MinimumAudioPolicy(min_ms * config.audio.ai_format.bytes_per_ms)


def build_bridge_settings(config: Config, agent: AgentConfig) -> BridgeSettings:
    """Assemble per-session settings from process and agent configuration."""
    ai_format = config.audio.ai_format
    return BridgeSettings(
        call_format=config.audio.call_format,
        ai_format=ai_format,
        session_config=agent.build_session(ai_format.encoding, ai_format.sample_rate),
        response_config=agent.response,
        greeting_response=agent.greeting_response(),
        commit_interval=config.bridge.commit_interval,
        turn_policy=build_turn_policy(config),
        readiness_capacity=config.bridge.readiness_capacity,
        max_call_duration=config.bridge.max_call_duration or None,
        dial_retries=config.ai.dial_retries,
        dial_backoff=config.ai.dial_backoff,
        dial_failure=config.ai.dial_failure,
    )


def make_process_request(media_path: str) -> Callable[[ServerConnection, Request], Optional[Response]]:
    """HTTP hook answering health checks and refusing unknown paths."""

    def process_request(connection: ServerConnection, request: Request) -> Optional[Response]:
        path = urlparse(request.path).path
        if path == "/health":
            return connection.respond(HTTPStatus.OK, "OK\n")
        if path != media_path:
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        return None

    return process_request


def create_registry(config: Config) -> BridgeRegistry:
    """Build the registry with a bridge factory bound to the configuration.

    Raises:
        ValueError: If the AI API key is missing or agent config is invalid
    """
    if not config.ai.openai_api_key:
        raise ValueError("OpenAI API key not configured")

    agent = AgentConfig.from_yaml_or_default(config.ai.agent_config_file)
    settings = build_bridge_settings(config, agent)
    endpoint = RealtimeEndpoint(
        url=config.ai.realtime_url,
        api_key=config.ai.openai_api_key,
        beta_header=config.ai.beta_header,
        open_timeout=config.ai.dial_timeout,
    )

    logger.info(
        "Bridge configuration ready",
        realtime_url=config.ai.realtime_url,
        call_encoding=settings.call_format.encoding,
        ai_encoding=settings.ai_format.encoding,
        commit_interval=settings.commit_interval,
        agent=agent.to_dict()
    )

    def factory(connection: ServerConnection) -> SessionBridge:
        return SessionBridge(connection, realtime_dialer(endpoint), settings)

    return BridgeRegistry(factory)


async def run_server(config: Config) -> None:
    """Serve call legs until SIGINT/SIGTERM, then close every call."""
    registry = create_registry(config)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    async with serve(
        registry.handle,
        config.server.host,
        config.server.port,
        process_request=make_process_request(config.server.media_path),
        max_size=None,
    ):
        logger.info(
            "Listening for call legs",
            host=config.server.host,
            port=config.server.port,
            media_path=config.server.media_path
        )
        await stop.wait()
        logger.info("Shutdown requested")
        await registry.close_all()

    logger.info("Server stopped")
