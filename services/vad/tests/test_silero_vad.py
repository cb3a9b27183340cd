"""Unit tests for ``vad.silero_vad.SileroVADModel``."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from vad.errors import (
    InvalidChunkSizeError,
    ModelLoadFailedError,
    ModelUnavailableError,
    UnsupportedSampleRateError,
)
from vad.silero_vad import (
    STATE_SHAPE,
    SileroVADModel,
    chunk_size_for,
    context_size_for,
)


def _session(probability: float = 0.8) -> MagicMock:
    """A fake onnxruntime session returning *probability* and a filled state."""
    session = MagicMock()
    session.run = MagicMock(
        return_value=[
            np.array([[probability]], dtype=np.float32),
            np.full(STATE_SHAPE, 0.25, dtype=np.float32),
        ]
    )
    return session


class TestSizes:
    """Chunk and context sizes per sample rate."""

    def test_16k(self) -> None:
        assert chunk_size_for(16_000) == 512
        assert context_size_for(16_000) == 64

    def test_8k(self) -> None:
        assert chunk_size_for(8_000) == 256
        assert context_size_for(8_000) == 32

    @pytest.mark.parametrize("rate", [0, 11_025, 22_050, 44_100, 48_000])
    def test_unsupported(self, rate: int) -> None:
        with pytest.raises(UnsupportedSampleRateError):
            chunk_size_for(rate)


class TestInfer:
    """Input validation and tensor plumbing."""

    def test_returns_probability_and_state(self) -> None:
        model = SileroVADModel(session=_session(0.8))
        prob, state = model.infer(
            np.zeros(512, dtype=np.float32),
            np.zeros(STATE_SHAPE, dtype=np.float32),
            16_000,
            np.zeros(64, dtype=np.float32),
        )
        assert prob == pytest.approx(0.8)
        assert state.shape == STATE_SHAPE
        np.testing.assert_allclose(state, 0.25)

    def test_feeds_context_then_chunk(self) -> None:
        session = _session()
        model = SileroVADModel(session=session)
        chunk = np.full(512, 0.5, dtype=np.float32)
        context = np.full(64, -0.5, dtype=np.float32)

        model.infer(chunk, np.zeros(STATE_SHAPE, dtype=np.float32), 16_000, context)

        feeds = session.run.call_args[0][1]
        assert feeds["input"].shape == (1, 576)
        assert feeds["input"].dtype == np.float32
        np.testing.assert_allclose(feeds["input"][0, :64], -0.5)
        np.testing.assert_allclose(feeds["input"][0, 64:], 0.5)
        assert feeds["state"].shape == STATE_SHAPE
        assert feeds["sr"].dtype == np.int64
        assert int(feeds["sr"]) == 16_000

    def test_does_not_mutate_caller_state(self) -> None:
        model = SileroVADModel(session=_session())
        state = np.zeros(STATE_SHAPE, dtype=np.float32)
        model.infer(np.zeros(512), state, 16_000, np.zeros(64))
        assert not state.any()

    @pytest.mark.parametrize("length", [0, 256, 511, 513, 576])
    def test_wrong_chunk_size(self, length: int) -> None:
        model = SileroVADModel(session=_session())
        with pytest.raises(InvalidChunkSizeError):
            model.infer(np.zeros(length), np.zeros(STATE_SHAPE), 16_000, np.zeros(64))

    def test_wrong_chunk_size_8k(self) -> None:
        model = SileroVADModel(session=_session())
        with pytest.raises(InvalidChunkSizeError):
            model.infer(np.zeros(512), np.zeros(STATE_SHAPE), 8_000, np.zeros(32))

    def test_wrong_context_size(self) -> None:
        model = SileroVADModel(session=_session())
        with pytest.raises(InvalidChunkSizeError):
            model.infer(np.zeros(512), np.zeros(STATE_SHAPE), 16_000, np.zeros(32))

    def test_unsupported_rate(self) -> None:
        model = SileroVADModel(session=_session())
        with pytest.raises(UnsupportedSampleRateError):
            model.infer(np.zeros(512), np.zeros(STATE_SHAPE), 44_100, np.zeros(64))

    def test_raises_when_not_loaded(self) -> None:
        model = SileroVADModel()
        with pytest.raises(RuntimeError, match="not loaded"):
            model.infer(np.zeros(512), np.zeros(STATE_SHAPE), 16_000, np.zeros(64))


class TestLoad:
    """Session construction through the model provisioner."""

    def test_is_loaded_false_before_load(self) -> None:
        assert SileroVADModel().is_loaded is False

    def test_load_builds_session(self) -> None:
        assets = MagicMock()
        assets.ensure_model.return_value = Path("/models/silero.onnx")

        with patch("vad.silero_vad.ort.InferenceSession") as session_cls:
            model = SileroVADModel(model_path="/override.onnx", assets=assets)
            model.load()

        assets.ensure_model.assert_called_once_with("/override.onnx")
        assert session_cls.call_args[0][0] == str(Path("/models/silero.onnx"))
        assert session_cls.call_args.kwargs["providers"] == ["CPUExecutionProvider"]
        assert model.is_loaded is True

    def test_runtime_rejection(self) -> None:
        assets = MagicMock()
        assets.ensure_model.return_value = Path("/models/broken.onnx")

        with patch(
            "vad.silero_vad.ort.InferenceSession",
            side_effect=RuntimeError("invalid protobuf"),
        ):
            model = SileroVADModel(assets=assets)
            with pytest.raises(ModelLoadFailedError, match="invalid protobuf"):
                model.load()
        assert model.is_loaded is False

    def test_missing_asset_propagates(self) -> None:
        assets = MagicMock()
        assets.ensure_model.side_effect = ModelUnavailableError("offline")

        model = SileroVADModel(assets=assets)
        with pytest.raises(ModelUnavailableError):
            model.load()
        assert model.is_loaded is False
