"""
Amplitude-domain helpers for the preprocessing pipeline.

All functions take and return float32 numpy arrays in [-1, 1] and never
modify their input in place.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from vad.segments import SpeechSegment

# RMS window for the amplitude fallback trim.
RMS_WINDOW_S: float = 0.01
PEAK_TARGET: float = 0.99
PEAK_FLOOR: float = 1e-6


def db_to_amplitude(db: float) -> float:
    """Convert a dBFS value to a linear amplitude (``10 ** (db / 20)``)."""
    return float(10.0 ** (db / 20.0))


def window_rms(samples: np.ndarray, window: int) -> np.ndarray:
    """Return ``sqrt(mean(x**2))`` for consecutive windows of *window* samples.

    The final window may be shorter than *window*.
    """
    samples = np.asarray(samples, dtype=np.float64)
    window = max(1, int(window))
    if samples.size == 0:
        return np.zeros(0, dtype=np.float64)

    n_windows = -(-samples.size // window)
    padded = np.zeros(n_windows * window, dtype=np.float64)
    padded[: samples.size] = samples ** 2
    sums = padded.reshape(n_windows, window).sum(axis=1)

    counts = np.full(n_windows, window, dtype=np.float64)
    counts[-1] = samples.size - (n_windows - 1) * window
    return np.sqrt(sums / counts)


def trim_silence(samples: np.ndarray, sample_rate: int, threshold_db: float) -> np.ndarray:
    """Trim leading and trailing ~10 ms windows whose RMS is not above threshold.

    Args:
        samples: Mono float32 samples.
        sample_rate: Sample rate in Hz.
        threshold_db: Silence threshold in dBFS.

    Returns:
        The trimmed samples; empty if no window rises above the threshold.
    """
    samples = np.asarray(samples, dtype=np.float32)
    window = max(1, int(sample_rate * RMS_WINDOW_S))
    loud = np.flatnonzero(window_rms(samples, window) > db_to_amplitude(threshold_db))
    if loud.size == 0:
        return np.zeros(0, dtype=np.float32)

    start = int(loud[0]) * window
    end = min(samples.size, (int(loud[-1]) + 1) * window)
    return samples[start:end].copy()


def concatenate_segments(samples: np.ndarray, segments: Sequence[SpeechSegment]) -> np.ndarray:
    """Join the sample ranges of *segments* in order."""
    samples = np.asarray(samples, dtype=np.float32)
    pieces = [samples[max(0, seg.start):min(seg.end, samples.size)] for seg in segments]
    if not pieces:
        return np.zeros(0, dtype=np.float32)
    return np.concatenate(pieces).astype(np.float32, copy=False)


def normalize_peak(
    samples: np.ndarray,
    target: float = PEAK_TARGET,
    floor: float = PEAK_FLOOR,
) -> np.ndarray:
    """Scale *samples* so the peak is at most *target*, never amplifying.

    Near-silent input (peak below *floor*) is returned unchanged.
    """
    samples = np.asarray(samples, dtype=np.float32)
    if samples.size == 0:
        return samples.copy()

    peak = float(np.max(np.abs(samples)))
    if peak < floor:
        return samples.copy()

    scale = min(1.0, target / peak)
    if scale >= 1.0:
        return samples.copy()
    return (samples * np.float32(scale)).astype(np.float32)
