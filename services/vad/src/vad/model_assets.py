"""
Silero VAD model asset provisioning.

Resolves the on-disk Silero ONNX model used by the inference engine.
Candidates are tried in order: an explicit override path, the configured
``DICTATE_VAD_MODEL_PATH``, copies shipped next to the package, the cached
copy in ``DICTATE_MODEL_CACHE_DIR``, and finally a fresh download from
the official repository.  Every file not supplied explicitly must match
the configured SHA-256 digest.
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from collections.abc import Iterator
from contextlib import AbstractContextManager, nullcontext
from pathlib import Path
from urllib.parse import urlparse

import httpx
import structlog

from dictate_common.config import Settings, get_settings

from vad.errors import ModelUnavailableError

logger = structlog.get_logger()

_HASH_BLOCK_SIZE = 1 << 16
_USER_AGENT = "dictate-vad/0.1"


class ModelAssetManager:
    """Resolve, download and verify the Silero VAD model file.

    Args:
        settings: Settings providing model URL, digest and cache directory.
            Defaults to the global settings.
        client: Optional pre-built ``httpx.Client`` used for the download.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client

    @property
    def file_name(self) -> str:
        """File name of the model, taken from the download URL."""
        name = Path(urlparse(self._settings.vad_model_url).path).name
        return name or "silero_vad.onnx"

    @property
    def cache_path(self) -> Path:
        """Location of the cached download."""
        return Path(self._settings.model_cache_dir) / self.file_name

    def ensure_model(self, override_path: str | os.PathLike[str] | None = None) -> Path:
        """Return a path to a usable model file, downloading it if needed.

        Args:
            override_path: Explicit model path; used as-is when it exists.

        Returns:
            Path to the model file.

        Raises:
            ModelUnavailableError: If no verified model can be found or downloaded.
        """
        for explicit in (override_path, self._settings.vad_model_path):
            if explicit and Path(explicit).is_file():
                return Path(explicit)

        for candidate in self._local_candidates():
            if candidate.is_file() and self.verify_checksum(candidate):
                return candidate

        destination = self.cache_path
        if destination.is_file():
            if self.verify_checksum(destination):
                return destination
            logger.warning("vad_model_cache_corrupt", path=str(destination))

        try:
            self._download(destination)
        except (httpx.HTTPError, OSError) as exc:
            raise ModelUnavailableError(
                f"Silero VAD model download failed: {exc}"
            ) from exc

        if not self.verify_checksum(destination):
            destination.unlink(missing_ok=True)
            raise ModelUnavailableError(
                "Silero VAD model checksum verification failed after download."
            )
        return destination

    def verify_checksum(self, path: Path) -> bool:
        """Return ``True`` if *path* matches the configured SHA-256 digest."""
        digest = hashlib.sha256()
        try:
            with path.open("rb") as fh:
                for block in iter(lambda: fh.read(_HASH_BLOCK_SIZE), b""):
                    digest.update(block)
        except OSError:
            logger.warning("vad_model_unreadable", path=str(path), exc_info=True)
            return False
        return digest.hexdigest().lower() == self._settings.vad_model_sha256.lower()

    # ── internal ──

    def _local_candidates(self) -> Iterator[Path]:
        package_dir = Path(__file__).resolve().parent
        yield package_dir / self.file_name
        yield package_dir / "models" / self.file_name

    def _download(self, destination: Path) -> None:
        """Stream the model to a temp file, then move it into place."""
        url = self._settings.vad_model_url
        destination.parent.mkdir(parents=True, exist_ok=True)
        logger.info("vad_model_download_started", url=url)

        fd, tmp_name = tempfile.mkstemp(dir=destination.parent, suffix=".part")
        try:
            with (
                os.fdopen(fd, "wb") as out,
                self._http_client() as client,
                client.stream("GET", url) as resp,
            ):
                resp.raise_for_status()
                for block in resp.iter_bytes():
                    out.write(block)
            os.replace(tmp_name, destination)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.info("vad_model_download_complete", path=str(destination))

    def _http_client(self) -> AbstractContextManager[httpx.Client]:
        """Injected clients stay open; a client built here is closed on exit."""
        if self._client is not None:
            return nullcontext(self._client)
        return httpx.Client(
            timeout=self._settings.model_download_timeout_s,
            headers={"User-Agent": _USER_AGENT},
            follow_redirects=True,
        )
