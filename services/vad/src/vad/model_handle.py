"""
Process-wide Silero VAD model handle.

Builds the ``SileroVADModel`` lazily on first use and keeps it for the
life of the process.  A failed build is remembered as ``FAILED`` and
retried from scratch on the next access, so a transient download error
does not disable VAD until restart.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from enum import Enum
from functools import lru_cache

import structlog

from dictate_common.metrics import MODEL_LOADS

from vad.silero_vad import SileroVADModel

logger = structlog.get_logger()


class LoadState(str, Enum):
    """Lifecycle states of the model handle."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


def _default_factory() -> SileroVADModel:
    model = SileroVADModel()
    model.load()
    return model


class VADModelHandle:
    """Lazily construct and cache one ``SileroVADModel``.

    Transitions (all under a single lock):

    * ``UNINITIALIZED`` / ``FAILED`` -> ``INITIALIZING`` on ``get()``.
    * ``INITIALIZING`` -> ``READY`` when the factory returns.
    * ``INITIALIZING`` -> ``FAILED`` when the factory raises; the error
      propagates and the partial result is discarded.

    Args:
        factory: Callable returning a loaded model.  Defaults to building
            ``SileroVADModel`` from the global settings.
    """

    def __init__(self, factory: Callable[[], SileroVADModel] | None = None) -> None:
        self._factory = factory or _default_factory
        self._lock = threading.Lock()
        self._state = LoadState.UNINITIALIZED
        self._model: SileroVADModel | None = None
        self._last_error: BaseException | None = None

    @property
    def state(self) -> LoadState:
        """Current lifecycle state."""
        return self._state

    @property
    def last_error(self) -> BaseException | None:
        """Error raised by the most recent failed build, if any."""
        return self._last_error

    def get(self) -> SileroVADModel:
        """Return the loaded model, building it if needed (blocking).

        Raises:
            ModelUnavailableError: If the model asset cannot be provisioned.
            ModelLoadFailedError: If the runtime rejects the model.
        """
        with self._lock:
            if self._state is LoadState.READY and self._model is not None:
                return self._model

            if self._state is LoadState.FAILED:
                logger.info("vad_model_retry", previous_error=str(self._last_error))

            self._state = LoadState.INITIALIZING
            self._model = None
            try:
                model = self._factory()
            except Exception as exc:
                self._state = LoadState.FAILED
                self._last_error = exc
                MODEL_LOADS.labels(outcome="failed").inc()
                logger.warning("vad_model_load_failed", error=str(exc))
                raise

            self._model = model
            self._last_error = None
            self._state = LoadState.READY
            MODEL_LOADS.labels(outcome="ready").inc()
            return model

    async def aget(self) -> SileroVADModel:
        """Async variant of ``get()``; builds the model in a worker thread."""
        return await asyncio.to_thread(self.get)

    def reset(self) -> None:
        """Drop the cached model and return to ``UNINITIALIZED``."""
        with self._lock:
            self._model = None
            self._last_error = None
            self._state = LoadState.UNINITIALIZED


@lru_cache(maxsize=1)
def get_model_handle() -> VADModelHandle:
    """Return the process-wide model handle singleton."""
    return VADModelHandle()
