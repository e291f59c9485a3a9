# backend/plantdb/apps/maintenance_plans/storage.py
"""
Blob store for checksheets and completion attachments.

Stored references are POSIX paths relative to the store root, e.g.
"checksheets/CNC-01-7QH2K9ZA.pdf". Every reference is resolved and checked
to sit under the root before it is read, written or removed.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Optional

from fastapi import HTTPException, UploadFile, status

from ...utils.identifiers import random_block, slugify

logger = logging.getLogger(__name__)

# You can override these per environment:
#   MAINTENANCE_UPLOAD_DIR=/var/lib/plantdb/uploads/maintenance
#   MAINTENANCE_MAX_UPLOAD_BYTES=26214400
_DEFAULT_UPLOAD_DIR = os.getenv("MAINTENANCE_UPLOAD_DIR", "uploads/maintenance")
_MAX_UPLOAD_BYTES = int(os.getenv("MAINTENANCE_MAX_UPLOAD_BYTES", "0") or "0")

CHECKSHEETS = "checksheets"
COMPLETIONS = "completions"

_CHUNK_SIZE = 1024 * 1024


class ScheduleFileStore:
    def __init__(self, root: Optional[os.PathLike] = None, *, max_bytes: Optional[int] = None):
        self.root = Path(root or _DEFAULT_UPLOAD_DIR).resolve()
        self.max_bytes = _MAX_UPLOAD_BYTES if max_bytes is None else max_bytes

    # -- paths --------------------------------------------------------------

    def resolve(self, reference: str) -> Path:
        """Map a stored reference to an absolute path inside the root, or 400."""
        if not reference:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid file path.",
            )
        resolved = (self.root / reference).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            logger.warning(
                "Rejected file reference outside upload root",
                extra={"reference": reference, "root": str(self.root)},
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid file path.",
            )
        return resolved

    def _reference_for(self, path: Path) -> str:
        return PurePosixPath(*path.relative_to(self.root).parts).as_posix()

    # -- write --------------------------------------------------------------

    def save(self, *, kind: str, label: Optional[str], upload: UploadFile) -> str:
        """
        Stream an upload to `<kind>/<slug(label)>-<random><ext>` and return
        the stored reference. A partially written file is removed on error.
        """
        ext = Path(upload.filename or "").suffix.lower()[:16]
        name = f"{slugify(label, fallback='machine')}-{random_block(8)}{ext}"
        dest = self.resolve(f"{kind}/{name}")
        dest.parent.mkdir(parents=True, exist_ok=True)

        total = 0
        try:
            with dest.open("wb") as out:
                while True:
                    chunk = upload.file.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    total += len(chunk)
                    if self.max_bytes and total > self.max_bytes:
                        raise HTTPException(
                            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                            detail="Upload exceeds maximum file size.",
                        )
                    out.write(chunk)
        except HTTPException:
            self.discard(self._reference_for(dest))
            raise
        except OSError as exc:
            self.discard(self._reference_for(dest))
            logger.exception("Failed to write upload", extra={"path": str(dest)})
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to store uploaded file.",
            ) from exc

        if total == 0:
            self.discard(self._reference_for(dest))
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Uploaded file is empty.",
            )

        logger.info("Stored upload", extra={"path": str(dest), "bytes": total})
        return self._reference_for(dest)

    # -- delete -------------------------------------------------------------

    def delete(self, reference: Optional[str]) -> bool:
        """
        Remove a stored file. Returns False when it was already gone; any
        other OS error propagates as a 500.
        """
        if not reference:
            return False
        path = self.resolve(reference)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.info("Stored file already absent", extra={"path": str(path)})
            return False
        except OSError as exc:
            logger.exception("Failed to delete stored file", extra={"path": str(path)})
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to delete stored file.",
            ) from exc
        return True

    def discard(self, reference: Optional[str]) -> None:
        """Best-effort delete used for compensation and replaced files."""
        try:
            self.delete(reference)
        except HTTPException:
            logger.warning("Could not remove stored file", extra={"reference": reference})

    # -- read ---------------------------------------------------------------

    def open_path(self, reference: Optional[str]) -> Path:
        """Resolve a reference for download; 404 when the file is missing."""
        if not reference:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found.")
        path = self.resolve(reference)
        if not path.is_file():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found.")
        return path


_default_store: Optional[ScheduleFileStore] = None


def get_file_store() -> ScheduleFileStore:
    """FastAPI dependency returning the process-wide store."""
    global _default_store
    if _default_store is None:
        _default_store = ScheduleFileStore()
    return _default_store
