"""Shared test fixtures and configuration."""

from typing import Callable, Optional

import numpy as np
import pytest

from callbridge.bridge.session_bridge import BridgeSettings, SessionBridge
from callbridge.config import AIConfig, AudioConfig, BridgeConfig, ServerConfig, SystemConfig
from callbridge.core.transducer import AudioFormat
from tests.fake_connection import FakeConnection


@pytest.fixture
def g711_frame_8k() -> bytes:
    """20ms μ-law frame at 8kHz (silence)."""
    return bytes([0xFF] * 160)


@pytest.fixture
def pcm16_sine_8k() -> bytes:
    """200ms 440Hz sine at 8kHz as PCM16."""
    t = np.arange(1600) / 8000
    return (np.sin(2 * np.pi * 440 * t) * 12000).astype("<i2").tobytes()


@pytest.fixture
def call_leg() -> FakeConnection:
    return FakeConnection("call")


@pytest.fixture
def ai_leg() -> FakeConnection:
    return FakeConnection("ai")


@pytest.fixture
def bridge_settings() -> BridgeSettings:
    """μ-law on both legs; long interval so the timer never fires on its own."""
    ulaw = AudioFormat("g711_ulaw")
    return BridgeSettings(
        call_format=ulaw,
        ai_format=ulaw,
        session_config={"type": "realtime", "instructions": "Be brief."},
        response_config={"output_modalities": ["audio"]},
        commit_interval=60.0,
        readiness_capacity=50,
        max_call_duration=30.0,
    )


@pytest.fixture
def make_bridge(
    call_leg: FakeConnection,
    ai_leg: FakeConnection,
    bridge_settings: BridgeSettings
) -> Callable[..., SessionBridge]:
    """Factory for bridges whose dialer returns the ``ai_leg`` fixture."""

    def _make(settings: Optional[BridgeSettings] = None) -> SessionBridge:
        async def dial() -> FakeConnection:
            return ai_leg

        return SessionBridge(call_leg, dial, settings or bridge_settings)

    return _make


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Unset every configuration variable so only the test's values apply."""
    for section in (ServerConfig, AudioConfig, AIConfig, BridgeConfig, SystemConfig):
        for field in section.model_fields.values():
            monkeypatch.delenv(field.validation_alias, raising=False)
    return monkeypatch
