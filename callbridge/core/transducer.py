"""Audio conversion between the call leg and the AI leg.

Call leg audio is always 8kHz (G.711 μ-law, G.711 A-law or raw PCM16). The AI
leg accepts G.711 at 8kHz or PCM16 at its configured rate (24kHz by default).
Both directions go through PCM16 as the pivot format:

- Inbound:  call encoding -> PCM16 @ 8kHz -> resample -> AI encoding
- Outbound: AI encoding -> PCM16 @ AI rate -> resample -> call encoding

Identical formats on both sides are passed through untouched.
"""

from dataclasses import dataclass
from typing import Literal, get_args

from callbridge.core.codec import CodecError, convert_g711_to_pcm16, convert_pcm16_to_g711
from callbridge.core.constants import AudioConstants
from callbridge.core.resampler import Resampler


AudioEncoding = Literal["g711_ulaw", "g711_alaw", "pcm16"]
AUDIO_ENCODINGS: tuple[str, ...] = get_args(AudioEncoding)


@dataclass(frozen=True)
class AudioFormat:
    """Encoding and sample rate of one leg."""

    encoding: AudioEncoding
    sample_rate: int = AudioConstants.CALL_SAMPLE_RATE

    def __post_init__(self) -> None:
        if self.encoding not in AUDIO_ENCODINGS:
            raise ValueError(f"Unsupported encoding: {self.encoding}")
        if self.is_g711 and self.sample_rate != AudioConstants.CALL_SAMPLE_RATE:
            raise ValueError(f"G.711 audio must be 8kHz, got {self.sample_rate}")

    @property
    def is_g711(self) -> bool:
        return self.encoding != "pcm16"

    @property
    def g711_law(self) -> Literal["ulaw", "alaw"]:
        return "ulaw" if self.encoding == "g711_ulaw" else "alaw"

    @property
    def bytes_per_ms(self) -> int:
        bytes_per_sample = 1 if self.is_g711 else 2
        return self.sample_rate * bytes_per_sample // 1000


def _is_valid_pcm16(data: bytes) -> bool:
    return len(data) > 0 and len(data) % 2 == 0


class AudioCodecTransducer:
    """Stateless converter between a call leg format and an AI leg format.

    Formats are fixed at construction for the lifetime of a call session.
    """

    def __init__(self, call_format: AudioFormat, ai_format: AudioFormat) -> None:
        """Initialize transducer.

        Args:
            call_format: Audio format of the telephony leg (8kHz)
            ai_format: Input/output audio format of the AI session
        """
        if call_format.sample_rate != AudioConstants.CALL_SAMPLE_RATE:
            raise ValueError(f"Call leg audio must be 8kHz, got {call_format.sample_rate}")

        self._call_format = call_format
        self._ai_format = ai_format
        self._upsampler = Resampler(call_format.sample_rate, ai_format.sample_rate)
        self._downsampler = Resampler(ai_format.sample_rate, call_format.sample_rate)

    @property
    def call_format(self) -> AudioFormat:
        return self._call_format

    @property
    def ai_format(self) -> AudioFormat:
        return self._ai_format

    @property
    def is_passthrough(self) -> bool:
        """True when both legs use the same encoding and rate."""
        return self._call_format == self._ai_format

    def decode_inbound(self, payload: bytes) -> bytes:
        """Convert call leg audio to the AI session's input encoding.

        Args:
            payload: Raw call leg audio (decoded from base64)

        Returns:
            Audio in the AI leg's encoding

        Raises:
            CodecError: If the frame cannot be interpreted at all
        """
        if not payload:
            raise CodecError("Empty audio frame")
        if self.is_passthrough:
            return payload

        pcm16 = self._call_to_pcm16(payload)
        return self._pcm16_to_ai(self._upsampler.resample(pcm16))

    def encode_outbound(self, audio: bytes) -> bytes:
        """Convert AI session output audio to the call leg's encoding.

        Args:
            audio: Raw AI leg audio (decoded from base64)

        Returns:
            Audio in the call leg's encoding

        Raises:
            CodecError: If the chunk cannot be converted
        """
        if not audio:
            raise CodecError("Empty audio chunk")
        if self.is_passthrough:
            return audio

        if self._ai_format.is_g711:
            pcm16 = convert_g711_to_pcm16(audio, self._ai_format.g711_law)
        elif _is_valid_pcm16(audio):
            pcm16 = audio
        else:
            raise CodecError(f"AI PCM16 chunk has invalid length {len(audio)}")

        pcm16_8k = self._downsampler.resample(pcm16)
        if self._call_format.is_g711:
            return convert_pcm16_to_g711(pcm16_8k, self._call_format.g711_law)
        return pcm16_8k

    def _call_to_pcm16(self, payload: bytes) -> bytes:
        """Decode call leg audio to PCM16 @ 8kHz in the configured encoding."""
        if self._call_format.is_g711:
            return convert_g711_to_pcm16(payload, self._call_format.g711_law)
        if not _is_valid_pcm16(payload):
            raise CodecError(f"PCM16 frame has invalid length {len(payload)}")
        return payload

    def _pcm16_to_ai(self, pcm16: bytes) -> bytes:
        if self._ai_format.is_g711:
            return convert_pcm16_to_g711(pcm16, self._ai_format.g711_law)
        return pcm16
