"""
Exceptions raised by the VAD preprocessing service.

Every error the VAD subsystem can raise derives from ``VADError`` so the
preprocessing pipeline can degrade to pass-through on any of them.
"""

from __future__ import annotations


class VADError(Exception):
    """Base exception for VAD subsystem errors."""


class ModelUnavailableError(VADError):
    """Raised when the Silero model asset is missing, corrupt or cannot be downloaded."""


class ModelLoadFailedError(VADError):
    """Raised when the inference runtime rejects the model binary."""


class UnsupportedSampleRateError(VADError, ValueError):
    """Raised for sample rates other than 8000 or 16000 Hz."""


class InvalidChunkSizeError(VADError, ValueError):
    """Raised when an inference chunk or context has the wrong length."""


class AudioDecodeError(VADError):
    """Raised when a WAV payload cannot be decoded or encoded."""
