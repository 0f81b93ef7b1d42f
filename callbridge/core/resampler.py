"""Sample rate conversion between the call leg and the AI leg."""

import numpy as np
import soxr


QUALITY_MAP = {
    "LQ": soxr.LQ,
    "MQ": soxr.MQ,
    "HQ": soxr.HQ,
    "VHQ": soxr.VHQ,
}


class Resampler:
    """One-shot PCM16 resampler using soxr.

    Each call to :meth:`resample` is independent (no filter state is carried
    between frames), which keeps conversion a pure function of its input.
    """

    def __init__(self, source_rate: int, target_rate: int, quality: str = "HQ") -> None:
        """Initialize resampler.

        Args:
            source_rate: Source sample rate in Hz
            target_rate: Target sample rate in Hz
            quality: Resampling quality ("LQ", "MQ", "HQ", "VHQ")

        Raises:
            ValueError: If rates are invalid
        """
        if source_rate <= 0:
            raise ValueError(f"Source rate must be positive, got {source_rate}")
        if target_rate <= 0:
            raise ValueError(f"Target rate must be positive, got {target_rate}")

        self._source_rate = source_rate
        self._target_rate = target_rate
        self._quality = QUALITY_MAP.get(quality, soxr.HQ)

    @property
    def source_rate(self) -> int:
        """Source sample rate."""
        return self._source_rate

    @property
    def target_rate(self) -> int:
        """Target sample rate."""
        return self._target_rate

    def resample(self, audio_data: bytes) -> bytes:
        """Resample PCM16 audio data.

        Args:
            audio_data: PCM16 audio data at source rate

        Returns:
            Resampled PCM16 audio data at target rate
        """
        if len(audio_data) == 0 or self._source_rate == self._target_rate:
            return audio_data

        samples = np.frombuffer(audio_data, dtype="<i2")
        resampled = soxr.resample(
            samples,
            self._source_rate,
            self._target_rate,
            quality=self._quality
        )

        resampled = np.clip(np.round(resampled), -32768, 32767).astype("<i2")
        return resampled.tobytes()
