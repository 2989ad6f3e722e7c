import logging
import os
import secrets
import shutil
import time
from typing import Optional

from starlette.datastructures import UploadFile

logger = logging.getLogger(__name__)


def has_file(upload: Optional[UploadFile]) -> bool:
    # browsers send an empty part with no filename when no file was picked
    return isinstance(upload, UploadFile) and bool(upload.filename)


class UploadStore:
    """Stores uploaded files on local disk under names safe from same-millisecond collisions."""

    def __init__(self, directory: str, url_prefix: str = "/uploads"):
        self.directory = directory
        self.url_prefix = url_prefix.rstrip("/")
        os.makedirs(self.directory, exist_ok=True)

    def make_filename(self, original: str) -> str:
        ext = os.path.splitext(original or "")[1]
        return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"

    def save(self, upload: UploadFile) -> str:
        filename = self.make_filename(upload.filename)
        path = os.path.join(self.directory, filename)
        with open(path, "wb") as out:
            shutil.copyfileobj(upload.file, out)
        logger.info("Stored upload %s as %s", upload.filename, filename)
        return f"{self.url_prefix}/{filename}"

    def path_for(self, reference: Optional[str]) -> Optional[str]:
        if not reference or not reference.startswith(self.url_prefix + "/"):
            return None
        filename = reference[len(self.url_prefix) + 1:]
        if not filename or filename != os.path.basename(filename):
            return None
        return os.path.join(self.directory, filename)

    def discard(self, reference: Optional[str]) -> bool:
        """Delete a previously stored file. Never raises; returns whether a file was removed."""
        path = self.path_for(reference)
        if path is None:
            return False
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError:
            logger.warning("Could not reclaim upload %s", reference, exc_info=True)
            return False
        logger.info("Reclaimed upload %s", reference)
        return True
