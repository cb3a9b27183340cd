"""
Prometheus metrics helpers for the Dictate services.

Provides shared metric definitions for the VAD preprocessing pipeline:
run counters per outcome, failure counters per error type, latency
histograms and the ratio of audio retained after trimming.
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

PREPROCESS_RUNS = Counter(
    "vad_preprocess_runs_total",
    "Preprocessing runs grouped by the method that produced the output.",
    ["method"],
)

PREPROCESS_FAILURES = Counter(
    "vad_preprocess_failures_total",
    "Preprocessing runs that fell back to pass-through, by error type.",
    ["error"],
)

PREPROCESS_LATENCY = Histogram(
    "vad_preprocess_latency_seconds",
    "Wall-clock time spent in one preprocessing run.",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

RETAINED_RATIO = Histogram(
    "vad_retained_audio_ratio",
    "Fraction of input samples kept after trimming.",
    buckets=(0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0),
)

MODEL_LOADS = Counter(
    "vad_model_loads_total",
    "Silero VAD model construction attempts, by outcome.",
    ["outcome"],
)
