"""Tests for call leg <-> AI leg audio conversion and resampling."""

import numpy as np
import pytest

from callbridge.core.codec import CodecError, convert_pcm16_to_g711
from callbridge.core.resampler import Resampler
from callbridge.core.transducer import AudioCodecTransducer, AudioFormat


ULAW = AudioFormat("g711_ulaw")
ALAW = AudioFormat("g711_alaw")
PCM16_8K = AudioFormat("pcm16", 8000)
PCM16_24K = AudioFormat("pcm16", 24000)


class TestAudioFormat:
    """Test audio format validation."""

    def test_unknown_encoding_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unsupported encoding"):
            AudioFormat("opus")  # type: ignore[arg-type]

    def test_g711_must_be_8k(self) -> None:
        with pytest.raises(ValueError, match="8kHz"):
            AudioFormat("g711_ulaw", 16000)

    def test_bytes_per_ms(self) -> None:
        assert ULAW.bytes_per_ms == 8
        assert PCM16_24K.bytes_per_ms == 48


class TestAudioCodecTransducer:
    """Test transducer conversions."""

    def test_passthrough_when_formats_match(self, g711_frame_8k: bytes) -> None:
        transducer = AudioCodecTransducer(ULAW, ULAW)

        assert transducer.is_passthrough
        assert transducer.decode_inbound(g711_frame_8k) is g711_frame_8k
        assert transducer.encode_outbound(g711_frame_8k) is g711_frame_8k

    def test_ulaw_to_pcm16_24k(self, g711_frame_8k: bytes) -> None:
        """20ms of μ-law becomes ~20ms of PCM16 at 24kHz."""
        transducer = AudioCodecTransducer(ULAW, PCM16_24K)

        out = transducer.decode_inbound(g711_frame_8k)

        # 480 samples * 2 bytes, allow resampler edge variation
        assert 900 <= len(out) <= 1020
        assert len(out) % 2 == 0

    def test_pcm16_24k_to_ulaw(self) -> None:
        """AI output at 24kHz is downsampled and μ-law encoded for the call leg."""
        transducer = AudioCodecTransducer(ULAW, PCM16_24K)
        pcm16_24k = np.zeros(480, dtype="<i2").tobytes()

        out = transducer.encode_outbound(pcm16_24k)

        assert 150 <= len(out) <= 170

    def test_alaw_call_leg_to_ulaw_ai(self, pcm16_sine_8k: bytes) -> None:
        transducer = AudioCodecTransducer(ALAW, ULAW)
        alaw = convert_pcm16_to_g711(pcm16_sine_8k, "alaw")

        out = transducer.decode_inbound(alaw)

        assert len(out) == len(alaw)

    def test_round_trip_same_target_encoding(self, pcm16_sine_8k: bytes) -> None:
        """encode_outbound then decode_inbound stays within μ-law distortion."""
        # Call leg μ-law, AI leg PCM16 @ 8kHz: no resampling, only the lossy codec
        transducer = AudioCodecTransducer(ULAW, PCM16_8K)
        original = np.frombuffer(pcm16_sine_8k, dtype="<i2").astype(np.int32)

        call_audio = transducer.encode_outbound(pcm16_sine_8k)
        restored = np.frombuffer(transducer.decode_inbound(call_audio), dtype="<i2").astype(np.int32)

        assert len(restored) == len(original)
        assert np.all(np.abs(restored - original) <= np.abs(original) / 32 + 24)

    def test_call_encoding_is_never_guessed(self) -> None:
        """A PCM16-sized frame on a μ-law leg is still decoded as μ-law."""
        transducer = AudioCodecTransducer(ULAW, PCM16_8K)
        frame = bytes([0xFF]) * 320

        out = transducer.decode_inbound(frame)

        assert len(out) == 640
        assert out == b'\x00' * 640

    def test_pcm16_call_leg_rejects_half_samples(self) -> None:
        transducer = AudioCodecTransducer(PCM16_8K, ULAW)

        with pytest.raises(CodecError):
            transducer.decode_inbound(b'\x00\x01\x02')

    def test_empty_frames_rejected(self) -> None:
        transducer = AudioCodecTransducer(ULAW, PCM16_24K)

        with pytest.raises(CodecError):
            transducer.decode_inbound(b'')
        with pytest.raises(CodecError):
            transducer.encode_outbound(b'')

    def test_odd_ai_pcm_chunk_rejected(self) -> None:
        transducer = AudioCodecTransducer(ULAW, PCM16_24K)

        with pytest.raises(CodecError):
            transducer.encode_outbound(b'\x00' * 5)

    def test_call_leg_must_be_8k(self) -> None:
        with pytest.raises(ValueError):
            AudioCodecTransducer(PCM16_24K, ULAW)


class TestResampler:
    """Test audio resampler functionality."""

    def test_8k_to_24k_upsample(self) -> None:
        resampler = Resampler(source_rate=8000, target_rate=24000)
        input_data = np.zeros(160, dtype=np.int16).tobytes()

        output_data = resampler.resample(input_data)

        # Should be approximately 3x the length
        assert 900 <= len(output_data) <= 1020

    def test_same_rate(self) -> None:
        resampler = Resampler(source_rate=8000, target_rate=8000)
        input_data = np.zeros(160, dtype=np.int16).tobytes()

        assert resampler.resample(input_data) == input_data

    def test_empty_input(self) -> None:
        resampler = Resampler(source_rate=8000, target_rate=24000)
        assert resampler.resample(b'') == b''

    def test_invalid_parameters(self) -> None:
        with pytest.raises(ValueError):
            Resampler(source_rate=0, target_rate=16000)

        with pytest.raises(ValueError):
            Resampler(source_rate=8000, target_rate=-1)

    def test_signal_preservation(self, pcm16_sine_8k: bytes) -> None:
        """Upsampling keeps a sine's amplitude."""
        resampler = Resampler(source_rate=8000, target_rate=24000)

        output_signal = np.frombuffer(resampler.resample(pcm16_sine_8k), dtype=np.int16)

        assert np.max(np.abs(output_signal)) > 10000
