"""
Environment-based configuration management for the Dictate services.

Uses pydantic-settings to load configuration values from environment
variables and .env files. The VAD service and the CLI import their
settings from this module to ensure consistent configuration handling.

All environment variables are prefixed with ``DICTATE_`` to avoid collisions.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL_URL = (
    "https://raw.githubusercontent.com/snakers4/silero-vad/master/"
    "src/silero_vad/data/silero_vad_16k_op15.onnx"
)
DEFAULT_MODEL_SHA256 = "7ed98ddbad84ccac4cd0aeb3099049280713df825c610a8ed34543318f1b2c49"


class Settings(BaseSettings):
    """Central configuration loaded from ``DICTATE_``-prefixed environment variables.

    Attributes:
        enable_vad: Run Silero VAD trimming before transcription upload.
        vad_speech_threshold: Speech-probability threshold (0.0–1.0).
        vad_min_silence_duration_ms: Silence needed to close a speech segment.
        vad_min_speech_duration_ms: Shortest speech segment that is kept.
        vad_speech_padding_ms: Padding added to both sides of each segment.
        max_recording_minutes: Upper bound for a single recording; caps
            the length of one uninterrupted speech segment.
        silence_threshold_db: dBFS threshold for the amplitude fallback trim.
        vad_model_path: Explicit path to a Silero ONNX model (optional).
        vad_model_url: Download location for the Silero ONNX model.
        vad_model_sha256: Expected SHA-256 digest of the model file.
        model_cache_dir: Directory where downloaded models are stored.
        model_download_timeout_s: HTTP timeout for the model download.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_json: Render log lines as JSON instead of console output.
    """

    model_config = SettingsConfigDict(
        env_prefix="DICTATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── VAD ──
    enable_vad: bool = Field(default=True, description="Enable Silero VAD preprocessing.")
    vad_speech_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Silero VAD speech-probability threshold.",
    )
    vad_min_silence_duration_ms: int = Field(
        default=120,
        ge=0,
        description="Minimum silence (ms) before closing a speech segment.",
    )
    vad_min_speech_duration_ms: int = Field(
        default=250,
        ge=0,
        description="Minimum speech duration (ms) required to keep a segment.",
    )
    vad_speech_padding_ms: int = Field(
        default=60,
        ge=0,
        description="Padding (ms) added to both sides of each speech segment.",
    )
    max_recording_minutes: int = Field(
        default=10,
        ge=1,
        description="Maximum recording duration in minutes.",
    )

    # ── Amplitude fallback ──
    silence_threshold_db: float = Field(
        default=-20.0,
        le=0.0,
        description="Silence threshold in dBFS for the amplitude fallback trim.",
    )

    # ── Model asset ──
    vad_model_path: str = Field(default="", description="Explicit Silero ONNX model path.")
    vad_model_url: str = Field(
        default=DEFAULT_MODEL_URL,
        description="Download URL for the Silero ONNX model.",
    )
    vad_model_sha256: str = Field(
        default=DEFAULT_MODEL_SHA256,
        description="Expected SHA-256 digest of the Silero ONNX model.",
    )
    model_cache_dir: str = Field(
        default=str(Path.home() / ".cache" / "dictate" / "models"),
        description="Directory for downloaded model assets.",
    )
    model_download_timeout_s: float = Field(
        default=120.0,
        gt=0.0,
        description="HTTP timeout (seconds) for the model download.",
    )

    # ── Logging ──
    log_level: str = Field(default="INFO", description="Logging level.")
    log_json: bool = Field(default=True, description="Render logs as JSON.")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Returns:
        The global ``Settings`` instance.
    """
    return Settings()
