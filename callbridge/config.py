"""Process configuration loaded from environment variables.

Each section reads its own variables (``PORT``, ``OPENAI_API_KEY``, ...) from
the environment and from a ``.env`` file in the working directory; the
environment wins. Sections are accessed as ``config.ai.openai_api_key``,
``config.bridge.commit_interval`` and so on.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from callbridge.core.constants import AudioConstants, BridgeDefaults
from callbridge.core.transducer import AudioEncoding, AudioFormat


ENV_FILE = ".env"

DialFailurePolicy = Literal["wait", "hangup"]
LogFormat = Literal["console", "json"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class EnvSection(BaseSettings):
    """Base for sections read from flat environment variable names."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )


class ServerConfig(EnvSection):
    """Call leg listener."""

    host: str = Field("0.0.0.0", validation_alias="SERVER_HOST")
    port: int = Field(3000, gt=0, le=65535, validation_alias="PORT")
    media_path: str = Field("/media", validation_alias="MEDIA_PATH")

    @field_validator("media_path")
    @classmethod
    def absolute_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"MEDIA_PATH must start with '/', got {value!r}")
        return value


class AudioConfig(EnvSection):
    """Audio encodings for both legs, fixed for each session."""

    call_encoding: AudioEncoding = Field("g711_ulaw", validation_alias="CALL_AUDIO_ENCODING")
    ai_encoding: AudioEncoding = Field("g711_ulaw", validation_alias="AI_AUDIO_ENCODING")
    ai_sample_rate: int = Field(AudioConstants.AI_PCM16_SAMPLE_RATE, gt=0, validation_alias="AI_SAMPLE_RATE")

    @property
    def call_format(self) -> AudioFormat:
        return AudioFormat(self.call_encoding, AudioConstants.CALL_SAMPLE_RATE)

    @property
    def ai_format(self) -> AudioFormat:
        rate = AudioConstants.CALL_SAMPLE_RATE if self.ai_encoding != "pcm16" else self.ai_sample_rate
        return AudioFormat(self.ai_encoding, rate)


class AIConfig(EnvSection):
    """Realtime AI endpoint and dial policy."""

    openai_api_key: Optional[str] = Field(None, validation_alias="OPENAI_API_KEY")
    realtime_url: str = Field(
        "wss://api.openai.com/v1/realtime?model=gpt-realtime",
        validation_alias="OPENAI_REALTIME_URL"
    )
    beta_header: Optional[str] = Field(None, validation_alias="OPENAI_BETA_HEADER")
    agent_config_file: Optional[str] = Field(None, validation_alias="AGENT_CONFIG_FILE")
    dial_timeout: float = Field(10.0, gt=0, validation_alias="AI_DIAL_TIMEOUT")
    dial_retries: int = Field(0, ge=0, validation_alias="AI_DIAL_RETRIES")
    dial_backoff: float = Field(1.0, ge=0, validation_alias="AI_DIAL_BACKOFF")
    dial_failure: DialFailurePolicy = Field("wait", validation_alias="AI_DIAL_FAILURE")

    @field_validator("openai_api_key", "beta_header", "agent_config_file", mode="before")
    @classmethod
    def empty_as_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("realtime_url")
    @classmethod
    def websocket_url(cls, value: str) -> str:
        if not value.startswith(("ws://", "wss://")):
            raise ValueError(f"OPENAI_REALTIME_URL must be a ws:// or wss:// URL, got {value!r}")
        return value


class BridgeConfig(EnvSection):
    """Per-call bridge timings and limits."""

    commit_interval: float = Field(BridgeDefaults.COMMIT_INTERVAL_S, gt=0, validation_alias="COMMIT_INTERVAL")
    min_commit_audio_ms: int = Field(0, ge=0, validation_alias="MIN_COMMIT_AUDIO_MS")
    readiness_capacity: int = Field(BridgeDefaults.READINESS_CAPACITY, gt=0, validation_alias="READINESS_CAPACITY")
    # 0 disables the limit
    max_call_duration: float = Field(BridgeDefaults.MAX_CALL_DURATION_S, ge=0, validation_alias="MAX_CALL_DURATION")


class SystemConfig(EnvSection):
    """Logging."""

    log_level: LogLevel = Field("INFO", validation_alias="LOG_LEVEL")
    log_format: LogFormat = Field("console", validation_alias="LOG_FORMAT")
    log_dir: Optional[str] = Field("logs", validation_alias="LOG_DIR")

    @field_validator("log_dir", mode="before")
    @classmethod
    def empty_as_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


class Config(BaseModel):
    """Top-level configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    audio: AudioConfig = Field(default_factory=AudioConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    @classmethod
    def load(cls, env_file: Optional[str] = ENV_FILE) -> "Config":
        """Read every section from the environment and ``env_file``.

        Args:
            env_file: Dotenv file to read, or None for the environment only

        Returns:
            Config instance

        Raises:
            pydantic.ValidationError: If a value is malformed or out of range
        """
        return cls(
            server=ServerConfig(_env_file=env_file),
            audio=AudioConfig(_env_file=env_file),
            ai=AIConfig(_env_file=env_file),
            bridge=BridgeConfig(_env_file=env_file),
            system=SystemConfig(_env_file=env_file),
        )


config = Config.load()
