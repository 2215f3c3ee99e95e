"""Local-disk storage for property photos.

Files are written under the configured upload directory with a random name
and served back under the uploads URL prefix.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from core.config import Settings
from core.exceptions import UploadError
from core.logging_config import get_logger

LOGGER = get_logger(__name__)

ALLOWED_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif", ".webp"}
ALLOWED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}


@dataclass(frozen=True)
class IncomingFile:
    """An uploaded file read into memory, at most one byte past the size cap."""

    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def extension(self) -> str:
        return Path(self.filename or "").suffix.lower()


class PhotoStorage:
    """Validates, writes and removes photo files."""

    def __init__(self, settings: Settings) -> None:
        self.directory = settings.upload_path
        self.url_prefix = settings.uploads_url_prefix
        self.max_file_size = settings.max_file_size
        self.max_files = settings.max_photos_per_upload

    @property
    def read_limit(self) -> int:
        """Bytes to read per upload: one past the cap is enough to reject it."""
        return self.max_file_size + 1

    def validate(self, files: List[IncomingFile]) -> None:
        """
        Reject the whole batch if any file is unacceptable.

        Raises:
            UploadError: no files, too many files, a file over the size cap,
                or an extension/mimetype outside jpeg/jpg/png/gif/webp.
        """
        if not files:
            raise UploadError("No files uploaded")
        if len(files) > self.max_files:
            raise UploadError(
                f"Too many files: at most {self.max_files} photos per upload",
                errors=[{"field": "photos", "message": f"max {self.max_files} files"}],
            )
        for item in files:
            if item.extension not in ALLOWED_EXTENSIONS or (item.content_type or "").lower() not in ALLOWED_MIME_TYPES:
                raise UploadError(
                    "Only image files are allowed (jpeg, jpg, png, gif, webp)",
                    errors=[{"field": "photos", "message": f"{item.filename}: unsupported file type"}],
                )
            if len(item.data) > self.max_file_size:
                raise UploadError(
                    f"File too large: limit is {self.max_file_size} bytes",
                    errors=[{"field": "photos", "message": f"{item.filename}: file too large"}],
                )

    def save(self, item: IncomingFile) -> str:
        """Write one file and return its public URL."""
        self.directory.mkdir(parents=True, exist_ok=True)
        name = f"{uuid4().hex}{item.extension}"
        (self.directory / name).write_bytes(item.data)
        LOGGER.debug("Stored photo %s (%d bytes)", name, len(item.data))
        return f"{self.url_prefix}/{name}"

    def delete(self, url: str) -> None:
        """Remove the file behind a public URL; a missing file is ignored."""
        name = os.path.basename(url)
        if not name:
            return
        path = self.directory / name
        try:
            path.unlink()
        except FileNotFoundError:
            LOGGER.warning("Photo file already gone: %s", path)


__all__ = ["IncomingFile", "PhotoStorage", "ALLOWED_EXTENSIONS", "ALLOWED_MIME_TYPES"]
