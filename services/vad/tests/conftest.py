"""Shared fixtures for VAD service tests."""

from __future__ import annotations

import io
import wave
from collections.abc import Callable

import numpy as np
import pytest
import structlog

from dictate_common.config import Settings

from vad.model_handle import VADModelHandle


class EnergyEngine:
    """Inference-engine test double scoring chunks by RMS energy.

    Returns *speech* for chunks whose RMS exceeds *rms_threshold* and
    *silence* otherwise.  The returned recurrent state is the input state
    plus one, so tests can follow the state through a run.
    """

    def __init__(
        self,
        rms_threshold: float = 0.05,
        speech: float = 0.9,
        silence: float = 0.02,
    ) -> None:
        self.rms_threshold = rms_threshold
        self.speech = speech
        self.silence = silence
        self.calls: list[tuple[np.ndarray, np.ndarray, int, np.ndarray]] = []

    def infer(
        self,
        chunk: np.ndarray,
        state: np.ndarray,
        sample_rate: int,
        context: np.ndarray,
    ) -> tuple[float, np.ndarray]:
        self.calls.append((chunk.copy(), state.copy(), sample_rate, context.copy()))
        rms = float(np.sqrt(np.mean(np.square(chunk, dtype=np.float64))))
        probability = self.speech if rms > self.rms_threshold else self.silence
        return probability, state + 1.0


class FailingEngine:
    """Inference-engine test double that always raises."""

    def infer(self, chunk, state, sample_rate, context):  # noqa: ANN001
        raise RuntimeError("inference exploded")


def _wav_bytes(samples: np.ndarray, sample_rate: int = 16_000, sample_width: int = 2) -> bytes:
    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    if sample_width == 1:
        pcm = np.round(clipped * 127.0 + 128.0).astype("u1").tobytes()
    elif sample_width == 2:
        pcm = np.round(clipped * 32767.0).astype("<i2").tobytes()
    else:
        pcm = np.round(clipped * 2147483647.0).astype("<i4").tobytes()

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo any ``configure_logging`` call so later tests log to a live stream."""
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture()
def settings(tmp_path) -> Settings:  # noqa: ANN001
    """Settings with defaults, isolated from any ``.env`` file."""
    return Settings(_env_file=None, model_cache_dir=str(tmp_path / "models"))  # type: ignore[call-arg]


@pytest.fixture()
def energy_engine() -> EnergyEngine:
    """An ``EnergyEngine`` with default thresholds."""
    return EnergyEngine()


@pytest.fixture()
def failing_engine() -> FailingEngine:
    """An engine whose ``infer`` always raises."""
    return FailingEngine()


@pytest.fixture()
def unused_handle() -> VADModelHandle:
    """A model handle whose factory must never run."""

    def _factory():  # noqa: ANN202
        raise AssertionError("model handle should not be used")

    return VADModelHandle(factory=_factory)


@pytest.fixture()
def make_wav() -> Callable[..., bytes]:
    """Build a mono PCM WAV payload from float samples."""
    return _wav_bytes


@pytest.fixture()
def speech_waveform() -> np.ndarray:
    """3 s at 16 kHz: silence, 0.3-amplitude white noise in [16000, 32000), silence."""
    rng = np.random.default_rng(1234)
    audio = np.zeros(48_000, dtype=np.float32)
    audio[16_000:32_000] = rng.uniform(-0.3, 0.3, 16_000).astype(np.float32)
    return audio
