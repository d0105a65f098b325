"""On-disk store for generated images"""
import logging
import os
import secrets
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from ai.exceptions.imagen_exceptions import ListError, PersistError
from utils.logging_config import get_logger

logger = get_logger(__name__)

IMAGE_EXTENSION = ".png"
TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


class ArtifactStore:
    """
    Owns the images directory. Files are named
    ``<random token>_<UTC timestamp>.png``, written once and never modified;
    there is no index, listing enumerates the directory.
    """

    def __init__(self, images_dir, logger: logging.Logger = logger):
        self.images_dir = Path(images_dir)
        self.logger = logger

    def new_filename(self) -> str:
        # token_urlsafe(8) yields 11 URL-safe characters
        token = secrets.token_urlsafe(8)
        timestamp = datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)
        return f"{token}_{timestamp}{IMAGE_EXTENSION}"

    def persist(self, payloads: Iterable[bytes]) -> List[str]:
        """
        Write each payload to a new file and return the filenames in order.

        A batch is all-or-nothing: if any write fails, files already written
        for this batch are removed and PersistError is raised.
        """
        written: List[Path] = []
        for payload in payloads:
            path = self.images_dir / self.new_filename()
            try:
                path.write_bytes(payload)
            except OSError as e:
                self.logger.error(f"Failed to write image to disk (path={path}): {e}")
                self._rollback(written + [path])
                raise PersistError(str(path), e)
            self.logger.info(f"Successfully saved generated image (path={path}, bytes={len(payload)})")
            written.append(path)
        return [path.name for path in written]

    def _rollback(self, paths: List[Path]) -> None:
        for path in paths:
            try:
                path.unlink()
                self.logger.warning(f"Removed partially persisted image (path={path})")
            except FileNotFoundError:
                pass
            except OSError as e:
                self.logger.error(f"Could not remove partially persisted image (path={path}): {e}")

    def list(self) -> List[str]:
        """Names of the regular files directly under the images directory"""
        try:
            with os.scandir(self.images_dir) as entries:
                return [entry.name for entry in entries if entry.is_file()]
        except OSError as e:
            self.logger.error(f"Failed to list images (path={self.images_dir}): {e}")
            raise ListError(str(self.images_dir), e)

    def path_for(self, filename: str) -> Optional[Path]:
        """Resolve a requested filename to an existing artifact, refusing anything outside the directory"""
        if not filename or filename in (".", "..") or "/" in filename or "\\" in filename:
            return None
        path = self.images_dir / filename
        if not path.is_file():
            return None
        return path
