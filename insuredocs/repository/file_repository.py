"""
File Repository – abstracts all file I/O operations.

Handles reading uploaded record files, writing generated documents to temp
storage, bundling results into a ZIP, and cleanup.  Writes are atomic: a
document either lands complete at its final path or not at all.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import uuid
import zipfile
from pathlib import Path

from fastapi import UploadFile

from insuredocs.config import TMP_ROOT

logger = logging.getLogger(__name__)


class RenderSinkError(OSError):
    """A generated document could not be written to its destination."""


class FileRepository:
    """Stateless helper for file system operations."""

    def __init__(self, root: Path | None = None) -> None:
        self._root = Path(root) if root is not None else TMP_ROOT
        self._root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    @staticmethod
    async def read_uploaded_file(upload: UploadFile) -> bytes:
        """Read the full contents of a FastAPI UploadFile into memory."""
        return await upload.read()

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create_session_dir(self) -> Path:
        """Create a unique temp directory for one request."""
        session_dir = self._root / str(uuid.uuid4())
        session_dir.mkdir(parents=True, exist_ok=True)
        return session_dir

    @staticmethod
    def save_bytes(data: bytes, directory: Path, filename: str) -> Path:
        """
        Atomically write *data* to *directory/filename* and return the path.

        The bytes go to a temporary file in the same directory which is then
        renamed over the target; on failure the temporary file is removed
        and ``RenderSinkError`` is raised.
        """
        directory = Path(directory)
        path = directory / filename
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=directory, prefix=f".{filename}.", suffix=".part", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error("Could not write %s: %s", path, exc)
            raise RenderSinkError(f"Could not write {path}: {exc}") from exc
        logger.debug("Wrote %d bytes to %s", len(data), path)
        return path

    # ------------------------------------------------------------------
    # Bundle
    # ------------------------------------------------------------------

    @staticmethod
    def create_zip(files: dict[str, Path], directory: Path) -> Path:
        """
        Create a ZIP archive in *directory*.

        Parameters
        ----------
        files : dict mapping archive-internal name → source path on disk
        directory : folder where the ZIP will be written

        Returns
        -------
        Path to the created .zip file.
        """
        zip_path = Path(directory) / "result.zip"
        with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
            for arcname, src_path in files.items():
                zf.write(src_path, arcname)
        return zip_path

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    @staticmethod
    def cleanup(directory: Path) -> None:
        """Remove a session directory and all contents."""
        if directory.exists():
            shutil.rmtree(directory, ignore_errors=True)
