"""
Media Storage Provider

Stores media attached to a bubble and classifies it as image, video or audio.
Uploads that are too large or of an unsupported type are rejected; the caller
creates the bubble without media in that case.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

logger = logging.getLogger(__name__)

ALLOWED_PATTERN = re.compile(r"jpeg|jpg|png|gif|webp|mp4|webm|mov|mp3|wav|ogg")

EXTENSION_TYPES = {
    ".jpg": "image",
    ".jpeg": "image",
    ".png": "image",
    ".gif": "image",
    ".webp": "image",
    ".mp4": "video",
    ".webm": "video",
    ".mov": "video",
    ".mp3": "audio",
    ".wav": "audio",
    ".ogg": "audio",
}

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class StoredMedia:
    url: str
    media_type: Optional[str]


def classify_media(filename: str) -> Optional[str]:
    """Coarse media type from the file extension"""
    return EXTENSION_TYPES.get(Path(filename).suffix.lower())


def is_allowed(filename: str, content_type: Optional[str]) -> bool:
    extension_ok = bool(ALLOWED_PATTERN.search(Path(filename).suffix.lower()))
    mime_ok = bool(content_type and ALLOWED_PATTERN.search(content_type))
    return extension_ok or mime_ok


class LocalMediaStorage:
    """Writes uploads to a local directory served under url_prefix"""

    def __init__(self, directory: Path, url_prefix: str, max_bytes: int):
        self.directory = Path(directory)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    def ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    async def save(self, upload: UploadFile) -> Optional[StoredMedia]:
        """
        Persist an upload.

        Returns:
            StoredMedia, or None when the upload is empty or rejected
        """
        if not upload or not upload.filename:
            return None

        if not is_allowed(upload.filename, upload.content_type):
            logger.warning(f"Rejected upload with unsupported type: {upload.filename}")
            return None

        self.ensure_directory()
        stored_name = f"{uuid.uuid4()}{Path(upload.filename).suffix.lower()}"
        target = self.directory / stored_name

        written = 0
        with target.open("wb") as out:
            while chunk := await upload.read(CHUNK_SIZE):
                written += len(chunk)
                if written > self.max_bytes:
                    break
                out.write(chunk)

        if written > self.max_bytes:
            target.unlink(missing_ok=True)
            logger.warning(f"Rejected upload over {self.max_bytes} bytes: {upload.filename}")
            return None

        if written == 0:
            target.unlink(missing_ok=True)
            return None

        logger.info(f"Stored upload {upload.filename} as {stored_name}")
        return StoredMedia(
            url=f"{self.url_prefix}/{stored_name}",
            media_type=classify_media(stored_name),
        )

    def discard(self, stored: StoredMedia) -> None:
        """Remove a stored upload whose bubble was never created"""
        (self.directory / stored.url.rsplit("/", 1)[1]).unlink(missing_ok=True)
        logger.info(f"Discarded upload {stored.url}")
