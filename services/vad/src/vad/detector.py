"""
Chunk-by-chunk speech-probability detection over one utterance.

``StreamingDetector`` slices a waveform into fixed-size, non-overlapping
chunks, prepends the previous chunk's tail to each one and feeds them
through an inference engine, yielding one ``ChunkProbability`` per chunk.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import NamedTuple, Protocol

import numpy as np
import structlog

from vad.silero_vad import (
    STATE_SHAPE,
    chunk_size_for,
    context_size_for,
    validate_sample_rate,
)

logger = structlog.get_logger()


class InferenceEngine(Protocol):
    """Anything that can score a single chunk with caller-supplied state."""

    def infer(
        self,
        chunk: np.ndarray,
        state: np.ndarray,
        sample_rate: int,
        context: np.ndarray,
    ) -> tuple[float, np.ndarray]: ...


class ChunkProbability(NamedTuple):
    """Speech probability of the chunk at position ``index``."""

    index: int
    probability: float


@dataclass(slots=True)
class StreamState:
    """Recurrent state and context buffer for one utterance.

    Owned by exactly one detector run; never shared between utterances.
    """

    sample_rate: int
    recurrent: np.ndarray = field(init=False)
    context: np.ndarray = field(init=False)

    def __post_init__(self) -> None:
        self.reset()

    @classmethod
    def initial(cls, sample_rate: int) -> StreamState:
        """Zeroed state for a new utterance at *sample_rate*."""
        validate_sample_rate(sample_rate)
        return cls(sample_rate)

    def reset(self) -> None:
        """Zero the recurrent state and the context buffer."""
        self.recurrent = np.zeros(STATE_SHAPE, dtype=np.float32)
        self.context = np.zeros(context_size_for(self.sample_rate), dtype=np.float32)


class StreamingDetector:
    """Drive an inference engine over a whole waveform.

    Args:
        engine: A loaded inference engine (normally ``SileroVADModel``).
    """

    def __init__(self, engine: InferenceEngine) -> None:
        self._engine = engine

    def probabilities(
        self,
        audio: np.ndarray,
        sample_rate: int,
    ) -> Iterator[ChunkProbability]:
        """Return a lazy, single-use iterator of per-chunk probabilities.

        The sample rate is validated immediately; inference happens as
        the iterator is consumed.  Engine errors propagate unchanged.

        Args:
            audio: Mono float32 samples in [-1, 1].
            sample_rate: 8000 or 16000.

        Raises:
            UnsupportedSampleRateError: For any other sample rate.
        """
        state = StreamState.initial(sample_rate)
        samples = np.asarray(audio, dtype=np.float32).reshape(-1)
        return self._run(samples, state)

    def _run(self, samples: np.ndarray, state: StreamState) -> Iterator[ChunkProbability]:
        sample_rate = state.sample_rate
        chunk_size = chunk_size_for(sample_rate)
        context_size = context_size_for(sample_rate)

        for index, offset in enumerate(range(0, len(samples), chunk_size)):
            chunk = samples[offset:offset + chunk_size]
            if len(chunk) < chunk_size:
                chunk = np.pad(chunk, (0, chunk_size - len(chunk)))

            probability, state.recurrent = self._engine.infer(
                chunk, state.recurrent, sample_rate, state.context,
            )
            state.context = np.concatenate([state.context, chunk])[-context_size:]
            yield ChunkProbability(index, probability)

        logger.debug(
            "vad_detector_finished",
            samples=len(samples),
            sample_rate=sample_rate,
        )
