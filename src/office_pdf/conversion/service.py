import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Awaitable, Callable

from .interfaces import ConverterStrategy

logger = logging.getLogger(__name__)

OUTPUT_FORMAT = "pdf"
CHUNK = 1024 * 1024


class UploadTooLargeError(ValueError):
    pass


class ConversionService:
    """Request-scoped orchestration around a ConverterStrategy.

    Owns the temp upload file for the duration of one conversion: the upload
    is streamed to disk, read back, handed to the converter and the file is
    removed on every exit path. The service is framework-agnostic so HTTP or
    other front-ends share the same lifecycle.
    """

    def __init__(self, converter: ConverterStrategy, *, upload_dir: str | None = None) -> None:
        self._converter = converter
        self._upload_dir = upload_dir

    @property
    def converter(self) -> ConverterStrategy:
        return self._converter

    async def convert(self, document: bytes, filename: str) -> bytes:
        return await self._converter.convert(document, OUTPUT_FORMAT, filename)

    async def convert_upload(
        self,
        filename: str,
        reader: Callable[[int], Awaitable[bytes]],
        *,
        max_upload_mb: int,
    ) -> bytes:
        """Persist the upload to a temp file, convert it and return the PDF bytes."""
        original_name = filename or "source"
        # The extension is what lets LibreOffice pick an import filter
        ext = os.path.splitext(original_name)[1]
        if self._upload_dir:
            Path(self._upload_dir).mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            prefix="upload-", suffix=ext, dir=self._upload_dir, delete=False
        ) as f_out:
            temp_path = Path(f_out.name)
        try:
            await self._save_upload(temp_path, reader, max_upload_mb)
            document = await asyncio.to_thread(temp_path.read_bytes)
            logger.info("Converting %s (%d bytes) with %s converter", original_name, len(document), self._converter.name)
            return await self.convert(document, original_name)
        finally:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not remove upload %s: %s", temp_path, e)

    @staticmethod
    async def _save_upload(
        path: Path, reader: Callable[[int], Awaitable[bytes]], max_upload_mb: int
    ) -> None:
        size_bytes = 0
        max_bytes = max_upload_mb * 1024 * 1024
        with path.open("wb") as f_out:
            while True:
                chunk = await reader(CHUNK)
                if not chunk:
                    break
                b = bytes(chunk)
                size_bytes += len(b)
                if size_bytes > max_bytes:
                    raise UploadTooLargeError(f"upload exceeds {max_upload_mb} MB")
                f_out.write(b)
