import os
import re
import time
import uuid
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import aiofiles
from fastapi import UploadFile

from app.core.exceptions import NoFileUploaded, PayloadTooLarge, UnsupportedMediaType

ALLOWED_EXTENSIONS = re.compile(r"\.(jpe?g|png)")
ALLOWED_CONTENT_TYPES = re.compile(r"image/(jpe?g|png)")
CHUNK_SIZE = 1024 * 1024


@dataclass
class StoredFile:
    path: str
    original_filename: str
    content_type: str
    size: int


class UploadReceiver:
    """Validates uploaded images and stores them in the uploads directory."""

    def __init__(self, upload_dir: str, max_file_size: int):
        self.upload_dir = upload_dir
        self.max_file_size = max_file_size

    def _check_type(self, file: UploadFile) -> str:
        """Return the lower-cased extension if both extension and content type are allowed."""
        filename = file.filename or ""
        extension = os.path.splitext(filename)[1].lower()
        content_type = file.content_type or ""
        media_type = content_type.split(";")[0].strip().lower()

        if not (ALLOWED_EXTENSIONS.fullmatch(extension) and ALLOWED_CONTENT_TYPES.fullmatch(media_type)):
            logging.warning(f"Rejected upload {filename!r} with content type {content_type!r}")
            raise UnsupportedMediaType("Error: Images Only!")
        return extension

    def _new_path(self, extension: str) -> str:
        name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}{extension}"
        return os.path.join(self.upload_dir, name)

    async def accept(self, file: Optional[UploadFile]) -> StoredFile:
        """Validate and save the uploaded file."""
        if file is None or not file.filename:
            raise NoFileUploaded()

        extension = self._check_type(file)
        os.makedirs(self.upload_dir, exist_ok=True)
        path = self._new_path(extension)

        size = 0
        try:
            async with aiofiles.open(path, "wb") as f:
                while True:
                    chunk = await file.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_file_size:
                        logging.warning(f"File too large: {file.filename} exceeds {self.max_file_size} bytes")
                        raise PayloadTooLarge("File too large")
                    await f.write(chunk)
        except BaseException:
            await self.discard(path)
            raise

        logging.info(f"Stored upload {file.filename} ({size} bytes) at {path}")
        return StoredFile(
            path=path,
            original_filename=file.filename,
            content_type=file.content_type or "",
            size=size,
        )

    async def discard(self, path: str):
        """Remove a stored file if it still exists."""
        try:
            os.remove(path)
            logging.info(f"Removed stored upload {path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logging.warning(f"Failed to remove stored upload {path}: {str(e)}")

    @asynccontextmanager
    async def stored(self, file: Optional[UploadFile]) -> AsyncIterator[StoredFile]:
        """Accept the upload and delete it again on every exit path."""
        stored_file = await self.accept(file)
        try:
            yield stored_file
        finally:
            await self.discard(stored_file.path)
