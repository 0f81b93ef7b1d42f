"""Tests for codec functionality."""

import numpy as np
import pytest

from callbridge.core.codec import CodecError, convert_g711_to_pcm16, convert_pcm16_to_g711


def _max_error_bound(samples: np.ndarray) -> np.ndarray:
    # G.711 quantization error stays within half a segment step (~1/32 of magnitude)
    return np.abs(samples.astype(np.int32)) / 32 + 24


class TestCodec:
    """Test audio codec functionality."""

    def test_g711_frame_size(self) -> None:
        """Test G.711 frame size conversion."""
        # 20ms frame at 8kHz = 160 samples = 320 bytes PCM16 = 160 bytes G.711
        pcm16_8k = b'\x00' * 320

        ulaw = convert_pcm16_to_g711(pcm16_8k, "ulaw")
        assert len(ulaw) == 160

        pcm_back = convert_g711_to_pcm16(ulaw, "ulaw")
        assert len(pcm_back) == 320

    def test_silence_code_points(self) -> None:
        """Digital silence maps to the standard G.711 code points."""
        silence = b'\x00' * 4

        assert convert_pcm16_to_g711(silence, "ulaw") == b'\xff\xff'
        assert convert_pcm16_to_g711(silence, "alaw") == b'\xd5\xd5'
        assert convert_g711_to_pcm16(b'\xff', "ulaw") == b'\x00\x00'

    def test_full_scale_code_points(self) -> None:
        """Full-scale samples clip to the outermost segment."""
        peak = np.array([32767, -32768], dtype="<i2").tobytes()

        assert convert_pcm16_to_g711(peak, "ulaw") == b'\x80\x00'
        assert convert_pcm16_to_g711(peak, "alaw")[0] == 0xAA

        decoded = np.frombuffer(convert_g711_to_pcm16(b'\x80\x00', "ulaw"), dtype="<i2")
        assert decoded.tolist() == [32124, -32124]

    @pytest.mark.parametrize("law", ["ulaw", "alaw"])
    def test_round_trip_within_distortion_bound(self, law: str, pcm16_sine_8k: bytes) -> None:
        """Encode then decode reproduces samples within the codec's bound."""
        original = np.frombuffer(pcm16_sine_8k, dtype="<i2")

        encoded = convert_pcm16_to_g711(pcm16_sine_8k, law)  # type: ignore[arg-type]
        decoded = np.frombuffer(convert_g711_to_pcm16(encoded, law), dtype="<i2")  # type: ignore[arg-type]

        assert len(decoded) == len(original)
        error = np.abs(decoded.astype(np.int32) - original.astype(np.int32))
        assert np.all(error <= _max_error_bound(original))

    def test_sign_preserved(self) -> None:
        """Positive and negative samples keep their sign through μ-law."""
        samples = np.array([1000, -1000, 20000, -20000], dtype="<i2")
        decoded = np.frombuffer(
            convert_g711_to_pcm16(convert_pcm16_to_g711(samples.tobytes(), "ulaw"), "ulaw"),
            dtype="<i2"
        )
        assert np.all(np.sign(decoded) == np.sign(samples))

    def test_invalid_encoding(self) -> None:
        """Test invalid encoding handling."""
        data = b'\x00' * 160

        with pytest.raises(ValueError, match="Unsupported encoding"):
            convert_g711_to_pcm16(data, "invalid")  # type: ignore

        with pytest.raises(ValueError, match="Unsupported encoding"):
            convert_pcm16_to_g711(data, "invalid")  # type: ignore

    def test_odd_length_pcm_rejected(self) -> None:
        """A PCM16 buffer with half a sample is a codec error."""
        with pytest.raises(CodecError):
            convert_pcm16_to_g711(b'\x00' * 3, "ulaw")

    def test_empty_data(self) -> None:
        """Test handling of empty data."""
        empty = b''

        assert convert_pcm16_to_g711(empty, "ulaw") == empty
        assert convert_g711_to_pcm16(empty, "ulaw") == empty
        assert convert_pcm16_to_g711(empty, "alaw") == empty
