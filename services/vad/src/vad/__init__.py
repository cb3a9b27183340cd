"""
Dictate VAD (Voice Activity Detection) preprocessing service.

Runs Silero VAD over a recorded utterance, keeps only the detected
speech, normalizes the level and hands the result to the transcription
backend.  Falls back to amplitude-based trimming, or to the untouched
recording, whenever VAD cannot help.
"""
from __future__ import annotations

from vad.detector import ChunkProbability, StreamingDetector, StreamState
from vad.errors import (
    AudioDecodeError,
    InvalidChunkSizeError,
    ModelLoadFailedError,
    ModelUnavailableError,
    UnsupportedSampleRateError,
    VADError,
)
from vad.model_handle import LoadState, VADModelHandle, get_model_handle
from vad.preprocessor import AudioPreprocessor, PreprocessMethod, PreprocessResult
from vad.segments import SegmentExtractor, SpeechSegment, TriggerState, VadParameters
from vad.silero_vad import SileroVADModel

__all__ = [
    "AudioDecodeError",
    "AudioPreprocessor",
    "ChunkProbability",
    "InvalidChunkSizeError",
    "LoadState",
    "ModelLoadFailedError",
    "ModelUnavailableError",
    "PreprocessMethod",
    "PreprocessResult",
    "SegmentExtractor",
    "SileroVADModel",
    "SpeechSegment",
    "StreamState",
    "StreamingDetector",
    "TriggerState",
    "UnsupportedSampleRateError",
    "VADError",
    "VADModelHandle",
    "VadParameters",
    "get_model_handle",
]
