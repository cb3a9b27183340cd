"""
Silero VAD inference engine.

Wraps the official Silero VAD ONNX export.  The engine is stateless:
the recurrent state and the trailing-context buffer are passed in by
the caller on every ``infer`` call and the updated state is returned,
so one loaded model can serve several utterances at once.
"""

from __future__ import annotations

import os

import numpy as np
import onnxruntime as ort
import structlog

from vad.errors import (
    InvalidChunkSizeError,
    ModelLoadFailedError,
    UnsupportedSampleRateError,
)
from vad.model_assets import ModelAssetManager

logger = structlog.get_logger()

SAMPLE_RATE_16K: int = 16_000
SAMPLE_RATE_8K: int = 8_000
SUPPORTED_SAMPLE_RATES: tuple[int, ...] = (SAMPLE_RATE_8K, SAMPLE_RATE_16K)

HIDDEN_SIZE: int = 128
STATE_SHAPE: tuple[int, int, int] = (2, 1, HIDDEN_SIZE)


def validate_sample_rate(sample_rate: int) -> None:
    """Raise ``UnsupportedSampleRateError`` unless *sample_rate* is 8 or 16 kHz."""
    if sample_rate not in SUPPORTED_SAMPLE_RATES:
        raise UnsupportedSampleRateError(
            f"Silero VAD supports 8 kHz or 16 kHz audio. Received {sample_rate} Hz."
        )


def chunk_size_for(sample_rate: int) -> int:
    """Samples per inference chunk: 512 at 16 kHz, 256 at 8 kHz."""
    validate_sample_rate(sample_rate)
    return 512 if sample_rate == SAMPLE_RATE_16K else 256


def context_size_for(sample_rate: int) -> int:
    """Trailing samples carried into the next chunk: 64 at 16 kHz, 32 at 8 kHz."""
    validate_sample_rate(sample_rate)
    return 64 if sample_rate == SAMPLE_RATE_16K else 32


class SileroVADModel:
    """Thin wrapper around the Silero VAD ONNX session.

    The session is created once via ``load()`` and reused for every
    ``infer`` call.  ``onnxruntime`` sessions may be run from several
    threads at once, so concurrent detector runs can share one instance
    as long as each supplies its own state.

    Args:
        model_path: Explicit model file; resolved through *assets* if unset.
        assets: Model provisioner used by ``load()``.
        session: Pre-built inference session (skips ``load()``).
    """

    def __init__(
        self,
        model_path: str | os.PathLike[str] | None = None,
        assets: ModelAssetManager | None = None,
        session: ort.InferenceSession | None = None,
    ) -> None:
        self._model_path = model_path
        self._assets = assets
        self._session = session

    # ── lifecycle ──

    def load(self) -> None:
        """Resolve the model file and build the inference session.

        Raises:
            ModelUnavailableError: If the model file cannot be provisioned.
            ModelLoadFailedError: If onnxruntime rejects the file.
        """
        assets = self._assets or ModelAssetManager()
        path = assets.ensure_model(self._model_path)

        options = ort.SessionOptions()
        options.intra_op_num_threads = 1
        options.inter_op_num_threads = 1
        try:
            self._session = ort.InferenceSession(
                str(path),
                sess_options=options,
                providers=["CPUExecutionProvider"],
            )
        except Exception as exc:  # noqa: BLE001
            raise ModelLoadFailedError(
                f"onnxruntime could not load {path}: {exc}"
            ) from exc
        logger.info("silero_vad_loaded", path=str(path))

    @property
    def is_loaded(self) -> bool:
        """Return ``True`` if the inference session exists."""
        return self._session is not None

    # ── inference ──

    def infer(
        self,
        chunk: np.ndarray,
        state: np.ndarray,
        sample_rate: int,
        context: np.ndarray,
    ) -> tuple[float, np.ndarray]:
        """Run one chunk through the classifier.

        Args:
            chunk: Exactly 512 (16 kHz) or 256 (8 kHz) float32 samples.
            state: Recurrent state of shape ``(2, 1, 128)``.
            sample_rate: 8000 or 16000.
            context: Trailing 64 (16 kHz) or 32 (8 kHz) samples of the
                previous inference input.

        Returns:
            Tuple of (speech probability, updated recurrent state).

        Raises:
            UnsupportedSampleRateError: For any other sample rate.
            InvalidChunkSizeError: If *chunk* or *context* has the wrong length.
            RuntimeError: If the model has not been loaded yet.
        """
        chunk_size = chunk_size_for(sample_rate)
        context_size = context_size_for(sample_rate)
        if len(chunk) != chunk_size:
            raise InvalidChunkSizeError(
                f"Chunk must contain exactly {chunk_size} samples, got {len(chunk)}."
            )
        if len(context) != context_size:
            raise InvalidChunkSizeError(
                f"Context must contain exactly {context_size} samples, got {len(context)}."
            )
        if self._session is None:
            raise RuntimeError("SileroVADModel not loaded. Call load() first.")

        frame = np.concatenate([context, chunk]).astype(np.float32)[np.newaxis, :]
        outputs = self._session.run(
            None,
            {
                "input": frame,
                "state": np.asarray(state, dtype=np.float32).reshape(STATE_SHAPE),
                "sr": np.array(sample_rate, dtype=np.int64),
            },
        )

        probability = float(np.asarray(outputs[0]).reshape(-1)[0])
        new_state = np.asarray(outputs[1], dtype=np.float32).reshape(STATE_SHAPE)
        return probability, new_state
