"""Local image storage with normalization to bounded-size JPEG."""

import asyncio
import base64
import io
import logging
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from gamescan.errors import FileTooLarge, InvalidFileType, NotFound

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})

# Every stored image is re-encoded to this type
STORED_MIME_TYPE = "image/jpeg"


@dataclass
class StoredFile:
    ref: str
    mime_type: str
    size: int


class LocalFileStore:
    """
    Stores uploaded photos below ``upload_dir``.

    Images are decoded with Pillow, downsized to fit ``max_dimension`` and
    re-encoded as JPEG, so the inference backend always receives a bounded
    payload regardless of what the camera produced.
    """

    def __init__(
        self,
        upload_dir: str | Path,
        max_dimension: int = 2048,
        jpeg_quality: int = 85,
        max_bytes: int = 12 * 1024 * 1024,
    ):
        self.upload_dir = Path(upload_dir)
        self.max_dimension = max_dimension
        self.jpeg_quality = jpeg_quality
        self.max_bytes = max_bytes
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def validate_mime_type(self, mime_type: Optional[str]) -> str:
        if mime_type not in ALLOWED_MIME_TYPES:
            raise InvalidFileType(
                f"Invalid file type: {mime_type}. Allowed: JPEG, PNG, WebP",
                details={"allowed": sorted(ALLOWED_MIME_TYPES)},
            )
        return mime_type

    def path_for(self, ref: str) -> Path:
        # Refs are generated here; anything with a path component is foreign
        if not ref or Path(ref).name != ref:
            raise NotFound("File not found", details={"ref": ref})
        return self.upload_dir / ref

    def _normalize(self, data: bytes) -> bytes:
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                img = ImageOps.exif_transpose(img)
                if img.mode not in ("RGB", "L"):
                    img = img.convert("RGB")
                img.thumbnail((self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS)

                buf = io.BytesIO()
                img.save(buf, format="JPEG", quality=self.jpeg_quality, optimize=True)
                return buf.getvalue()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise InvalidFileType(f"Could not decode image: {e}") from e

    def _write(self, data: bytes) -> StoredFile:
        ref = f"{secrets.token_hex(16)}.jpg"
        path = self.path_for(ref)
        tmp_path = path.with_suffix(".tmp")
        try:
            tmp_path.write_bytes(data)
            os.replace(tmp_path, path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
        return StoredFile(ref=ref, mime_type=STORED_MIME_TYPE, size=len(data))

    async def save(self, data: bytes, mime_type: Optional[str]) -> StoredFile:
        """
        Validate, normalize and store an uploaded image.

        Args:
            data: Raw upload bytes
            mime_type: Declared content type of the upload

        Returns:
            StoredFile describing the stored JPEG

        Raises:
            InvalidFileType: Unsupported type or undecodable content
            FileTooLarge: Upload exceeds the size limit
        """
        self.validate_mime_type(mime_type)
        if len(data) > self.max_bytes:
            raise FileTooLarge(
                f"File too large. Maximum size is {self.max_bytes // (1024 * 1024)}MB",
                details={"size": len(data), "maxSize": self.max_bytes},
            )

        loop = asyncio.get_running_loop()
        normalized = await loop.run_in_executor(None, self._normalize, data)
        stored = await loop.run_in_executor(None, self._write, normalized)
        logger.info(f"Stored image {stored.ref} ({len(data)} -> {stored.size} bytes)")
        return stored

    async def read_as_base64(self, ref: str) -> str:
        path = self.path_for(ref)
        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, path.read_bytes)
        except FileNotFoundError as e:
            raise NotFound("File not found", details={"ref": ref}) from e
        return base64.b64encode(data).decode("ascii")

    async def delete(self, ref: str) -> None:
        """Remove a stored file; a missing file is not an error."""
        try:
            self.path_for(ref).unlink(missing_ok=True)
        except NotFound:
            return
        logger.debug(f"Deleted image {ref}")
