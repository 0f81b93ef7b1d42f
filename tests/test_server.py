"""Tests for the call leg listener and bridge registry."""

import asyncio
from http import HTTPStatus
from unittest.mock import MagicMock

import pytest
from websockets.datastructures import Headers
from websockets.http11 import Request

from callbridge.bridge.commit_scheduler import MinimumAudioPolicy
from callbridge.bridge.session import SessionState
from callbridge.bridge.session_bridge import SessionBridge
from callbridge.config import Config
from callbridge.core.agent_config import AgentConfig
from callbridge.server import (
    BridgeRegistry,
    build_bridge_settings,
    create_registry,
    make_process_request,
)
from tests.fake_connection import FakeConnection


class TestProcessRequest:
    """Test HTTP handling ahead of the websocket upgrade."""

    def _request(self, path: str) -> Request:
        return Request(path, Headers())

    def test_health(self) -> None:
        connection = MagicMock()
        process_request = make_process_request("/media")

        process_request(connection, self._request("/health"))

        connection.respond.assert_called_once_with(HTTPStatus.OK, "OK\n")

    def test_unknown_path(self) -> None:
        connection = MagicMock()
        process_request = make_process_request("/media")

        process_request(connection, self._request("/other"))

        connection.respond.assert_called_once_with(HTTPStatus.NOT_FOUND, "Not Found\n")

    def test_media_path_upgrades(self) -> None:
        connection = MagicMock()
        process_request = make_process_request("/media")

        assert process_request(connection, self._request("/media?token=abc")) is None
        connection.respond.assert_not_called()


class TestBridgeRegistry:
    """Test per-connection bridge tracking."""

    @pytest.mark.asyncio
    async def test_handle_tracks_bridge_for_call_lifetime(self, bridge_settings) -> None:
        ai_legs = []

        async def dial() -> FakeConnection:
            leg = FakeConnection("ai")
            ai_legs.append(leg)
            return leg

        registry = BridgeRegistry(lambda connection: SessionBridge(connection, dial, bridge_settings))
        call_leg = FakeConnection("call")

        task = asyncio.create_task(registry.handle(call_leg))
        await asyncio.sleep(0.01)
        assert len(registry) == 1

        call_leg.remote_close()
        await asyncio.wait_for(task, 1.0)

        assert len(registry) == 0
        assert ai_legs[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_bridges_are_independent(self, bridge_settings) -> None:
        async def dial() -> FakeConnection:
            return FakeConnection("ai")

        bridges = []

        def factory(connection) -> SessionBridge:
            bridge = SessionBridge(connection, dial, bridge_settings)
            bridges.append(bridge)
            return bridge

        registry = BridgeRegistry(factory)
        first, second = FakeConnection("call-1"), FakeConnection("call-2")
        tasks = [asyncio.create_task(registry.handle(c)) for c in (first, second)]
        await asyncio.sleep(0.01)
        assert len(registry) == 2
        assert registry.get(bridges[0].id) is bridges[0]

        first.remote_close()
        await asyncio.wait_for(tasks[0], 1.0)

        assert bridges[0].state is SessionState.CLOSED
        assert bridges[1].state is SessionState.ACTIVE
        assert registry.get(bridges[0].id) is None

        await registry.close_all()
        await asyncio.wait_for(tasks[1], 1.0)
        assert bridges[1].session.close_reason == "shutdown"
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_close_all_with_no_bridges(self) -> None:
        registry = BridgeRegistry(MagicMock())
        await registry.close_all()
        assert len(registry) == 0


class TestSettingsAssembly:
    """Test settings derived from process and agent configuration."""

    def test_build_bridge_settings(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("AI_AUDIO_ENCODING", "pcm16")
        clean_env.setenv("MIN_COMMIT_AUDIO_MS", "200")
        clean_env.setenv("MAX_CALL_DURATION", "0")
        config = Config.load(env_file=None)
        agent = AgentConfig(instructions="Hi", greeting="Hello there")

        settings = build_bridge_settings(config, agent)

        assert settings.ai_format.sample_rate == 24000
        assert settings.session_config["audio"]["input"]["format"]["type"] == "audio/pcm"
        assert isinstance(settings.turn_policy, MinimumAudioPolicy)
        assert settings.turn_policy.min_bytes == 200 * 48
        assert settings.max_call_duration is None
        assert settings.greeting_response is not None

    def test_fixed_cadence_by_default(self, clean_env: pytest.MonkeyPatch) -> None:
        settings = build_bridge_settings(Config.load(env_file=None), AgentConfig())

        assert settings.turn_policy is None
        assert settings.greeting_response is None

    def test_registry_requires_api_key(self, clean_env: pytest.MonkeyPatch) -> None:
        with pytest.raises(ValueError, match="API key"):
            create_registry(Config.load(env_file=None))

    def test_registry_with_api_key(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("OPENAI_API_KEY", "sk-test")

        registry = create_registry(Config.load(env_file=None))
        assert len(registry) == 0
