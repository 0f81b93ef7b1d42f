"""G.711 μ-law/A-law codec with vectorized operations."""

from typing import Literal

import numpy as np


G711Encoding = Literal["ulaw", "alaw"]


class CodecError(ValueError):
    """Raised when a single audio frame cannot be converted."""


class Codec:
    """G.711 μ-law/A-law codec backed by lookup tables."""

    # μ-law constants
    ULAW_CLIP = 0x7F7B  # 32635, keeps biased magnitude within 15 bits
    ULAW_BIAS = 0x84  # Bias for linear code

    # A-law constants
    ALAW_AMI_MASK = 0x55

    _ulaw_table: np.ndarray | None = None
    _alaw_table: np.ndarray | None = None

    @staticmethod
    def ulaw_to_pcm16(ulaw_data: bytes) -> bytes:
        """Convert μ-law to 16-bit PCM.

        Args:
            ulaw_data: μ-law encoded audio data

        Returns:
            PCM16 encoded audio data
        """
        if Codec._ulaw_table is None:
            Codec._ulaw_table = Codec._create_ulaw_table()

        ulaw_array = np.frombuffer(ulaw_data, dtype=np.uint8)
        return Codec._ulaw_table[ulaw_array].astype("<i2").tobytes()

    @staticmethod
    def pcm16_to_ulaw(pcm_data: bytes) -> bytes:
        """Convert 16-bit PCM to μ-law.

        Args:
            pcm_data: PCM16 encoded audio data (little-endian)

        Returns:
            μ-law encoded audio data

        Raises:
            CodecError: If the buffer is not a whole number of samples
        """
        samples = Codec._pcm16_samples(pcm_data)

        sign = np.where(samples < 0, 0x80, 0x00).astype(np.int32)
        magnitude = np.minimum(np.abs(samples), Codec.ULAW_CLIP) + Codec.ULAW_BIAS

        # Exponent is the position of the highest set bit above bit 7
        exponent = np.zeros(len(magnitude), dtype=np.int32)
        for exp in range(7, 0, -1):
            hit = (exponent == 0) & ((magnitude >> (exp + 7)) > 0)
            exponent[hit] = exp

        mantissa = (magnitude >> (exponent + 3)) & 0x0F
        ulaw = ~(sign | (exponent << 4) | mantissa) & 0xFF
        return ulaw.astype(np.uint8).tobytes()

    @staticmethod
    def alaw_to_pcm16(alaw_data: bytes) -> bytes:
        """Convert A-law to 16-bit PCM.

        Args:
            alaw_data: A-law encoded audio data

        Returns:
            PCM16 encoded audio data
        """
        if Codec._alaw_table is None:
            Codec._alaw_table = Codec._create_alaw_table()

        alaw_array = np.frombuffer(alaw_data, dtype=np.uint8)
        return Codec._alaw_table[alaw_array].astype("<i2").tobytes()

    @staticmethod
    def pcm16_to_alaw(pcm_data: bytes) -> bytes:
        """Convert 16-bit PCM to A-law.

        Args:
            pcm_data: PCM16 encoded audio data (little-endian)

        Returns:
            A-law encoded audio data

        Raises:
            CodecError: If the buffer is not a whole number of samples
        """
        samples = Codec._pcm16_samples(pcm_data)

        sign = np.where(samples >= 0, 0x80, 0x00).astype(np.int32)
        # A-law works on 13-bit magnitudes
        magnitude = np.minimum(np.abs(samples) >> 3, 0xFFF)

        exponent = np.zeros(len(magnitude), dtype=np.int32)
        for exp in range(7, 0, -1):
            hit = (exponent == 0) & ((magnitude >> (exp + 4)) > 0)
            exponent[hit] = exp

        mantissa = np.where(
            exponent == 0,
            (magnitude >> 1) & 0x0F,
            (magnitude >> exponent) & 0x0F,
        )
        alaw = (sign | (exponent << 4) | mantissa) ^ Codec.ALAW_AMI_MASK
        return alaw.astype(np.uint8).tobytes()

    @staticmethod
    def _pcm16_samples(pcm_data: bytes) -> np.ndarray:
        if len(pcm_data) % 2:
            raise CodecError(f"PCM16 buffer has odd length {len(pcm_data)}")
        return np.frombuffer(pcm_data, dtype="<i2").astype(np.int32)

    @staticmethod
    def _create_ulaw_table() -> np.ndarray:
        """Create μ-law to PCM16 lookup table."""
        table = np.zeros(256, dtype=np.int16)
        for i in range(256):
            # Complement to obtain normal u-law value
            ulaw = ~i & 0xFF

            sign = ulaw & 0x80
            exponent = (ulaw >> 4) & 0x07
            mantissa = ulaw & 0x0F

            sample = ((mantissa << 3) + Codec.ULAW_BIAS) << exponent
            sample -= Codec.ULAW_BIAS

            table[i] = -sample if sign else sample

        return table

    @staticmethod
    def _create_alaw_table() -> np.ndarray:
        """Create A-law to PCM16 lookup table."""
        table = np.zeros(256, dtype=np.int16)
        for i in range(256):
            alaw = i ^ Codec.ALAW_AMI_MASK

            sign = alaw & 0x80
            exponent = (alaw >> 4) & 0x07
            mantissa = alaw & 0x0F

            sample = (mantissa << 4) + 8
            if exponent:
                sample = (sample + 0x100) << (exponent - 1)

            # Sign bit set means positive in A-law
            table[i] = sample if sign else -sample

        return table


def convert_g711_to_pcm16(data: bytes, encoding: G711Encoding) -> bytes:
    """Convert G.711 encoded audio to PCM16.

    Args:
        data: G.711 encoded audio data
        encoding: Encoding type ("ulaw" or "alaw")

    Returns:
        PCM16 encoded audio data

    Raises:
        ValueError: If encoding type is not supported
    """
    if encoding == "ulaw":
        return Codec.ulaw_to_pcm16(data)
    elif encoding == "alaw":
        return Codec.alaw_to_pcm16(data)
    else:
        raise ValueError(f"Unsupported encoding: {encoding}")


def convert_pcm16_to_g711(data: bytes, encoding: G711Encoding) -> bytes:
    """Convert PCM16 audio to G.711 encoding.

    Args:
        data: PCM16 encoded audio data
        encoding: Target encoding type ("ulaw" or "alaw")

    Returns:
        G.711 encoded audio data

    Raises:
        ValueError: If encoding type is not supported
    """
    if encoding == "ulaw":
        return Codec.pcm16_to_ulaw(data)
    elif encoding == "alaw":
        return Codec.pcm16_to_alaw(data)
    else:
        raise ValueError(f"Unsupported encoding: {encoding}")
