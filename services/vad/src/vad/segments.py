"""
Speech-segment extraction from per-chunk probabilities.

Turns the probability sequence produced by ``StreamingDetector`` into
half-open sample ranges using a two-threshold hysteresis state machine,
then pads and merges the ranges.

Transition table, evaluated once per chunk at ``chunk_start``:

============  ===========================  ===============================
State         Condition                    Action
============  ===========================  ===============================
IDLE          p >= threshold               -> TRIGGERED, speech_start =
                                           chunk_start, silence_start unset
TRIGGERED     p >= threshold               silence_start unset
TRIGGERED     p < negative_threshold       silence_start = chunk_start if
                                           unset; close at silence_start
                                           once the silence reaches
                                           min_silence_samples -> IDLE
TRIGGERED     speech >= max_speech         close at silence_start (or the
                                           chunk end) -> IDLE
============  ===========================  ===============================

Probabilities between ``negative_threshold`` and ``threshold`` leave the
machine unchanged.  A segment is emitted only if it is at least
``min_speech_samples`` long.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

import structlog

from vad.detector import ChunkProbability

logger = structlog.get_logger()

# Gap between the entering and leaving thresholds.
HYSTERESIS_GAP: float = 0.15
MIN_NEGATIVE_THRESHOLD: float = 0.01


class SpeechSegment(NamedTuple):
    """Half-open sample range ``[start, end)`` classified as speech."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True, slots=True)
class VadParameters:
    """Sample-domain tuning values for segment extraction.

    Plain values with no validation; callers derive and clamp them.
    ``max_speech_samples <= 0`` disables the length cap.
    """

    speech_threshold: float
    min_silence_samples: int
    min_speech_samples: int
    speech_pad_samples: int
    max_speech_samples: int

    @property
    def negative_threshold(self) -> float:
        """Threshold below which a chunk counts as silence."""
        return max(self.speech_threshold - HYSTERESIS_GAP, MIN_NEGATIVE_THRESHOLD)


class TriggerState(str, Enum):
    """Hysteresis machine states."""

    IDLE = "idle"
    TRIGGERED = "triggered"


class SegmentExtractor:
    """Hysteresis state machine turning probabilities into segments.

    Each ``extract`` call starts from ``IDLE`` with no closed segments, so
    an instance can be reused for consecutive utterances of the same length.

    Args:
        params: Thresholds and durations in samples.
        chunk_size: Samples per probability (512 at 16 kHz, 256 at 8 kHz).
        total_samples: Length of the original waveform.
    """

    def __init__(self, params: VadParameters, chunk_size: int, total_samples: int) -> None:
        self._params = params
        self._chunk_size = chunk_size
        self._total = total_samples
        self._max_speech = (
            params.max_speech_samples if params.max_speech_samples > 0 else None
        )

        self._state = TriggerState.IDLE
        self._speech_start = 0
        self._silence_start: int | None = None
        self._closed: list[SpeechSegment] = []

    @property
    def state(self) -> TriggerState:
        """Current machine state."""
        return self._state

    def extract(self, probabilities: Iterable[ChunkProbability]) -> list[SpeechSegment]:
        """Consume *probabilities* and return padded, merged segments.

        Args:
            probabilities: Per-chunk probabilities in chunk order.

        Returns:
            Ascending, non-overlapping segments within ``[0, total_samples]``.
        """
        self.reset()
        for item in probabilities:
            self.step(item.index * self._chunk_size, item.probability)

        if self._state is TriggerState.TRIGGERED:
            self._close(self._total)

        return self.pad_and_merge(self._closed)

    def reset(self) -> None:
        """Return to ``IDLE`` and forget previously closed segments."""
        self._state = TriggerState.IDLE
        self._speech_start = 0
        self._silence_start = None
        self._closed = []

    def step(self, chunk_start: int, probability: float) -> None:
        """Advance the machine by one chunk starting at *chunk_start*."""
        if self._state is TriggerState.IDLE:
            self._step_idle(chunk_start, probability)
        else:
            self._step_triggered(chunk_start, probability)

    def pad_and_merge(self, segments: Iterable[SpeechSegment]) -> list[SpeechSegment]:
        """Pad every segment, clamp to the waveform and merge touching ranges."""
        pad = self._params.speech_pad_samples
        merged: list[SpeechSegment] = []
        for segment in sorted(segments):
            start = max(0, segment.start - pad)
            end = min(self._total, segment.end + pad)
            if merged and start <= merged[-1].end:
                last = merged[-1]
                merged[-1] = SpeechSegment(last.start, max(last.end, end))
            else:
                merged.append(SpeechSegment(start, end))
        return merged

    # ── transitions ──

    def _step_idle(self, chunk_start: int, probability: float) -> None:
        if probability >= self._params.speech_threshold:
            self._state = TriggerState.TRIGGERED
            self._speech_start = chunk_start
            self._silence_start = None

    def _step_triggered(self, chunk_start: int, probability: float) -> None:
        chunk_end = chunk_start + self._chunk_size

        if probability >= self._params.speech_threshold:
            self._silence_start = None
        elif probability < self._params.negative_threshold:
            if self._silence_start is None:
                self._silence_start = chunk_start
            if chunk_end - self._silence_start >= self._params.min_silence_samples:
                self._close(self._silence_start)
                return

        if self._max_speech is not None and chunk_end - self._speech_start >= self._max_speech:
            end = self._silence_start if self._silence_start is not None else chunk_end
            self._close(end)

    def _close(self, end: int) -> None:
        """Emit ``[speech_start, end)`` if long enough and return to ``IDLE``."""
        segment = SpeechSegment(self._speech_start, end)
        if segment.length >= self._params.min_speech_samples:
            self._closed.append(segment)
        else:
            logger.debug("vad_segment_dropped", start=segment.start, end=segment.end)
        self._state = TriggerState.IDLE
        self._silence_start = None


def extract_segments(
    probabilities: Iterable[ChunkProbability],
    params: VadParameters,
    chunk_size: int,
    total_samples: int,
) -> list[SpeechSegment]:
    """Convenience wrapper running a fresh ``SegmentExtractor``."""
    return SegmentExtractor(params, chunk_size, total_samples).extract(probabilities)
