"""
Audio preprocessing pipeline for the Dictate transcription path.

Decodes a recorded WAV payload, keeps only the speech detected by Silero
VAD (or, if VAD finds nothing, an amplitude-trimmed version), normalizes
the peak level and re-encodes the result in the input's PCM format.

VAD is an optimization, never a hard dependency: ``preprocess`` does not
raise.  Any failure is logged and the original payload is returned.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
import structlog

from dictate_common.config import Settings, get_settings
from dictate_common.metrics import (
    PREPROCESS_FAILURES,
    PREPROCESS_LATENCY,
    PREPROCESS_RUNS,
    RETAINED_RATIO,
)

from vad.audio_ops import concatenate_segments, normalize_peak, trim_silence
from vad.detector import InferenceEngine, StreamingDetector
from vad.model_handle import VADModelHandle, get_model_handle
from vad.segments import SegmentExtractor, SpeechSegment, VadParameters
from vad.silero_vad import chunk_size_for
from vad.wav_codec import decode_wav, encode_wav

logger = structlog.get_logger()

# Upper bound for one uninterrupted speech segment, in seconds.
_MAX_SEGMENT_S: int = 600


class PreprocessMethod(str, Enum):
    """How the output samples were produced."""

    VAD = "vad"
    AMPLITUDE = "amplitude"
    HEAD = "head"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True, slots=True)
class PreprocessResult:
    """Output of ``AudioPreprocessor.process_samples``.

    Attributes:
        samples: Processed float32 samples.
        method: Which path produced ``samples``.
        segments: Speech segments found by VAD (empty on fallback).
    """

    samples: np.ndarray
    method: PreprocessMethod
    segments: list[SpeechSegment] = field(default_factory=list)


class AudioPreprocessor:
    """Trim non-speech audio before upload to the transcription backend.

    Args:
        settings: Tuning values; defaults to the global settings.
        model_handle: Source of the shared Silero model.
        engine: Inference engine used instead of *model_handle* when given.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        model_handle: VADModelHandle | None = None,
        engine: InferenceEngine | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model_handle = model_handle or get_model_handle()
        self._engine = engine

    # ── public API ──

    def preprocess(self, data: bytes, *, recording_id: str = "") -> bytes:
        """Return a trimmed, normalized copy of the WAV payload *data*.

        Never raises; on any failure the original payload is returned.

        Args:
            data: Mono PCM WAV file contents.
            recording_id: Used only for structured logging context.
        """
        log = logger.bind(recording_id=recording_id)
        if not self._settings.enable_vad:
            PREPROCESS_RUNS.labels(method=PreprocessMethod.PASSTHROUGH.value).inc()
            return bytes(data)

        with PREPROCESS_LATENCY.time():
            try:
                decoded = decode_wav(data)
            except Exception as exc:  # noqa: BLE001
                return self._pass_through(data, exc, log)

            if decoded.samples.size == 0:
                log.warning("vad_preprocess_no_samples")
                PREPROCESS_RUNS.labels(method=PreprocessMethod.PASSTHROUGH.value).inc()
                return bytes(data)

            try:
                result = self.process_samples(decoded.samples, decoded.format.sample_rate)
                output = encode_wav(result.samples, decoded.format)
            except Exception as exc:  # noqa: BLE001
                return self._pass_through(data, exc, log)

        PREPROCESS_RUNS.labels(method=result.method.value).inc()
        RETAINED_RATIO.observe(result.samples.size / decoded.samples.size)
        log.info(
            "vad_preprocess_complete",
            method=result.method.value,
            segments=len(result.segments),
            original_samples=int(decoded.samples.size),
            processed_samples=int(result.samples.size),
        )
        return output

    async def preprocess_async(self, data: bytes, *, recording_id: str = "") -> bytes:
        """Run ``preprocess`` in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.preprocess, data, recording_id=recording_id)

    def detect_segments(self, data: bytes) -> list[SpeechSegment]:
        """Return the VAD speech segments of a WAV payload, or ``[]`` on failure."""
        try:
            decoded = decode_wav(data)
            if decoded.samples.size == 0:
                return []
            return self.detect(decoded.samples, decoded.format.sample_rate)
        except Exception as exc:  # noqa: BLE001
            logger.warning("vad_detect_failed", error=str(exc), error_type=type(exc).__name__)
            return []

    def process_samples(self, samples: np.ndarray, sample_rate: int) -> PreprocessResult:
        """Trim and normalize float samples.

        Args:
            samples: Mono float32 samples in [-1, 1].
            sample_rate: Sample rate in Hz (8000 or 16000 for VAD).

        Returns:
            ``PreprocessResult`` with the normalized output samples.

        Raises:
            VADError: If the model is unavailable or the input is unsupported.
        """
        samples = np.asarray(samples, dtype=np.float32).reshape(-1)
        segments = self.detect(samples, sample_rate)

        if segments:
            kept = concatenate_segments(samples, segments)
            method = PreprocessMethod.VAD
        else:
            kept, method = self._fallback_trim(samples, sample_rate)

        return PreprocessResult(samples=normalize_peak(kept), method=method, segments=segments)

    def detect(self, samples: np.ndarray, sample_rate: int) -> list[SpeechSegment]:
        """Run the streaming detector and segment extractor over *samples*."""
        params = self.build_parameters(sample_rate)
        engine = self._engine if self._engine is not None else self._model_handle.get()

        probabilities = StreamingDetector(engine).probabilities(samples, sample_rate)
        extractor = SegmentExtractor(params, chunk_size_for(sample_rate), len(samples))
        return extractor.extract(probabilities)

    def build_parameters(self, sample_rate: int) -> VadParameters:
        """Convert the millisecond settings to sample counts at *sample_rate*."""
        s = self._settings
        min_silence = int(sample_rate * s.vad_min_silence_duration_ms / 1000)
        min_speech = int(sample_rate * s.vad_min_speech_duration_ms / 1000)
        pad = int(sample_rate * s.vad_speech_padding_ms / 1000)
        max_speech = min(s.max_recording_minutes * 60, _MAX_SEGMENT_S) * sample_rate

        return VadParameters(
            speech_threshold=s.vad_speech_threshold,
            min_silence_samples=max(min_silence, sample_rate // 100),
            min_speech_samples=max(min_speech, sample_rate // 20),
            speech_pad_samples=max(pad, sample_rate // 200),
            max_speech_samples=max_speech,
        )

    # ── internal ──

    def _fallback_trim(
        self,
        samples: np.ndarray,
        sample_rate: int,
    ) -> tuple[np.ndarray, PreprocessMethod]:
        logger.warning("vad_no_speech_fallback_trim", samples=int(samples.size))
        trimmed = trim_silence(samples, sample_rate, self._settings.silence_threshold_db)
        if trimmed.size > 0:
            return trimmed, PreprocessMethod.AMPLITUDE
        # TODO: revisit keeping the first second when nothing rises above the
        # silence threshold; an empty upload may be the better signal.
        return samples[:sample_rate].copy(), PreprocessMethod.HEAD

    def _pass_through(self, data: bytes, exc: Exception, log: Any) -> bytes:
        PREPROCESS_FAILURES.labels(error=type(exc).__name__).inc()
        PREPROCESS_RUNS.labels(method=PreprocessMethod.PASSTHROUGH.value).inc()
        log.warning(
            "vad_preprocess_failed",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return bytes(data)
