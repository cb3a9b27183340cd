"""
In-memory PCM WAV decoding and encoding.

Decodes mono integer PCM WAV payloads into float32 samples in [-1, 1]
and writes processed samples back in the exact format they came in.
"""

from __future__ import annotations

import io
import wave
from dataclasses import dataclass

import numpy as np

from vad.errors import AudioDecodeError

# sample width (bytes) -> (numpy dtype, full-scale divisor)
_PCM_FORMATS: dict[int, tuple[str, float]] = {
    1: ("u1", 128.0),
    2: ("<i2", 32768.0),
    4: ("<i4", 2147483648.0),
}


@dataclass(frozen=True, slots=True)
class WavFormat:
    """PCM layout of a WAV payload."""

    sample_rate: int
    sample_width: int
    channels: int = 1


@dataclass(frozen=True, slots=True)
class DecodedAudio:
    """Float samples plus the format needed to re-encode them."""

    samples: np.ndarray
    format: WavFormat

    @property
    def duration_s(self) -> float:
        return len(self.samples) / self.format.sample_rate


def decode_wav(data: bytes) -> DecodedAudio:
    """Decode a mono PCM WAV payload.

    Args:
        data: Complete RIFF/WAVE file contents.

    Returns:
        ``DecodedAudio`` with float32 samples in [-1, 1].

    Raises:
        AudioDecodeError: On malformed headers, compressed or multi-channel
            audio, or unsupported bit depths.
    """
    try:
        with wave.open(io.BytesIO(data), "rb") as wf:
            channels = wf.getnchannels()
            width = wf.getsampwidth()
            rate = wf.getframerate()
            comptype = wf.getcomptype()
            frames = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as exc:
        raise AudioDecodeError(f"Invalid WAV payload: {exc}") from exc

    if comptype != "NONE":
        raise AudioDecodeError(f"Compressed WAV ({comptype}) is not supported.")
    if channels != 1:
        raise AudioDecodeError(f"Expected mono audio, found {channels} channels.")
    if width not in _PCM_FORMATS:
        raise AudioDecodeError(f"Unsupported PCM sample width: {width * 8}-bit.")

    dtype, scale = _PCM_FORMATS[width]
    usable = len(frames) - len(frames) % width
    raw = np.frombuffer(frames[:usable], dtype=dtype).astype(np.float32)
    if width == 1:
        raw -= 128.0
    return DecodedAudio(
        samples=raw / np.float32(scale),
        format=WavFormat(sample_rate=rate, sample_width=width, channels=channels),
    )


def encode_wav(samples: np.ndarray, fmt: WavFormat) -> bytes:
    """Encode float samples as a PCM WAV payload in *fmt*.

    Raises:
        AudioDecodeError: If *fmt* uses an unsupported sample width.
    """
    if fmt.sample_width not in _PCM_FORMATS:
        raise AudioDecodeError(f"Unsupported PCM sample width: {fmt.sample_width * 8}-bit.")

    dtype, scale = _PCM_FORMATS[fmt.sample_width]
    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    if fmt.sample_width == 1:
        ints = np.round(clipped * 127.0 + 128.0)
    else:
        ints = np.round(clipped * (scale - 1.0))
    pcm = ints.astype(dtype).tobytes()

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(fmt.channels)
        wf.setsampwidth(fmt.sample_width)
        wf.setframerate(fmt.sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()
