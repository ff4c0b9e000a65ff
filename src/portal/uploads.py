import logging
import os
import shutil
import time
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

logger = logging.getLogger("alumni_portal.uploads")

_CHUNK_SIZE = 1024 * 1024


class UploadStore:
    """Stores uploaded files on local disk under timestamp-derived names."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _reserve_path(self, extension: str) -> Path:
        stamp = int(time.time() * 1000)
        while True:
            candidate = self.directory / f"{stamp}{extension}"
            try:
                fd = os.open(candidate, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                stamp += 1
                continue
            os.close(fd)
            return candidate

    # PUBLIC_INTERFACE
    def save(self, upload: Optional[UploadFile]) -> Optional[str]:
        """Write an uploaded file to disk and return its path, or None when nothing was sent."""
        if upload is None or not upload.filename:
            return None

        self.directory.mkdir(parents=True, exist_ok=True)
        extension = Path(upload.filename).suffix
        target = self._reserve_path(extension)
        try:
            with target.open("wb") as handle:
                shutil.copyfileobj(upload.file, handle, _CHUNK_SIZE)
        except OSError:
            target.unlink(missing_ok=True)
            raise

        logger.info("Stored upload %r as %s", upload.filename, target)
        return str(target)

    def discard(self, path: Optional[str]) -> None:
        if not path:
            return
        try:
            Path(path).unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove orphaned upload %s", path, exc_info=True)
