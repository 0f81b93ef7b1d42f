"""Agent configuration loader from YAML files.

The bridge treats agent configuration as opaque: instructions, voice and any
extra ``session``/``response`` keys are passed through to the AI session
without interpretation.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml

from callbridge.ai.realtime_protocol import audio_format_spec


logger = structlog.get_logger(__name__)


@dataclass
class AgentConfig:
    """Agent configuration loaded from YAML file.

    Fields:
        instructions: Agent system prompt/instructions (required)
        voice: Voice name for the AI session
        greeting: Optional welcome line spoken when the session becomes active
        session: Extra keys merged into the session.update payload
        response: Response-shaping parameters sent with every response.create
        metadata: Optional metadata for documentation purposes
    """

    instructions: str = "You are a helpful voice assistant."
    voice: Optional[str] = None
    greeting: Optional[str] = None
    session: Dict[str, Any] = field(default_factory=dict)
    response: Dict[str, Any] = field(default_factory=lambda: {"output_modalities": ["audio"]})
    metadata: Optional[Dict] = None

    @classmethod
    def from_yaml(cls, file_path: str | Path) -> "AgentConfig":
        """Load agent configuration from YAML file.

        Args:
            file_path: Path to YAML configuration file

        Returns:
            AgentConfig instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            ValueError: If YAML file is invalid
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Agent config file not found: {file_path}")

        logger.info("Loading agent config from YAML", file_path=str(file_path))

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML file: {e}") from e

        if not isinstance(data, dict):
            raise ValueError("YAML file must contain a dictionary")

        instructions = data.get("instructions")
        if not instructions:
            raise ValueError("'instructions' field is required in YAML config")
        if not isinstance(instructions, str):
            raise ValueError("'instructions' field must be a string")

        for key in ("session", "response"):
            if data.get(key) is not None and not isinstance(data[key], dict):
                raise ValueError(f"'{key}' field must be a mapping")

        greeting = data.get("greeting")
        config = cls(
            instructions=instructions.strip(),
            voice=data.get("voice"),
            greeting=greeting.strip() if greeting else None,
            session=data.get("session") or {},
            metadata=data.get("metadata"),
        )
        if data.get("response") is not None:
            config.response = data["response"]

        logger.info(
            "Agent config loaded successfully",
            instructions_length=len(config.instructions),
            voice=config.voice,
            has_greeting=config.greeting is not None,
            metadata=config.metadata
        )
        return config

    @classmethod
    def from_yaml_or_default(cls, file_path: Optional[str | Path]) -> "AgentConfig":
        """Load agent config from YAML file, or return defaults if none specified.

        A specified file that fails to load raises; there is no fallback to
        defaults in that case.
        """
        if not file_path:
            logger.info("No agent config file specified, using defaults")
            return cls()
        return cls.from_yaml(file_path)

    def build_session(self, encoding: str, sample_rate: int) -> Dict[str, Any]:
        """Build the session.update payload.

        Server-side turn detection is disabled because the bridge commits
        audio itself. Keys from ``session`` in the YAML file win.

        Args:
            encoding: AI leg audio encoding (input and output)
            sample_rate: AI leg sample rate for PCM16

        Returns:
            Session configuration dictionary
        """
        audio_format = audio_format_spec(encoding, sample_rate)
        output: Dict[str, Any] = {"format": audio_format}
        if self.voice:
            output["voice"] = self.voice

        session: Dict[str, Any] = {
            "type": "realtime",
            "instructions": self.instructions,
            "audio": {
                "input": {"format": audio_format, "turn_detection": None},
                "output": output,
            },
        }
        session.update(self.session)
        return session

    def greeting_response(self) -> Optional[Dict[str, Any]]:
        """Response parameters asking the AI to speak the greeting, if any."""
        if not self.greeting:
            return None
        response = dict(self.response)
        response["instructions"] = f"Greet the caller with this message: {self.greeting}"
        return response

    def to_dict(self) -> Dict:
        """Convert to dictionary for logging/debugging."""
        return {
            "instructions": self.instructions[:100] + "..." if len(self.instructions) > 100 else self.instructions,
            "voice": self.voice,
            "greeting": self.greeting[:100] + "..." if self.greeting and len(self.greeting) > 100 else self.greeting,
            "session_keys": sorted(self.session),
            "response": self.response,
            "metadata": self.metadata,
        }
