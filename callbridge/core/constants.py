"""Audio and protocol constants."""


class AudioConstants:
    """Audio format constants for the call leg and the AI leg."""

    # Sample rates
    CALL_SAMPLE_RATE = 8000  # 8kHz for telephony/G.711
    AI_PCM16_SAMPLE_RATE = 24000  # Default rate for PCM16 on the AI leg

    # Logging intervals
    LOG_INTERVAL_FRAMES = 50   # Log every 50 frames (1 second @ 20ms)
    LOG_INTERVAL_CHUNKS = 25   # AI deltas are larger and less frequent


class BridgeDefaults:
    """Default timings and limits for a session bridge."""

    COMMIT_INTERVAL_S = 3.0
    READINESS_CAPACITY = 250  # ~5 seconds of 20ms frames
    MAX_CALL_DURATION_S = 3600.0
    MARK_NAME = "done"
