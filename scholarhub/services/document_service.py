import logging
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from scholarhub.config import settings
from scholarhub.errors import ValidationError
from scholarhub.utils.filesystem import staged_filename

logger = logging.getLogger("scholarhub.documents")

INVALID_TYPE_MESSAGE = "Invalid file type. Only PDF, images, and Word documents are allowed."


@dataclass(frozen=True)
class StagedUpload:
    """An uploaded file written to local disk, waiting to be ingested."""

    path: Path
    original_name: str
    mime_type: str
    size: int


def check_upload(mime_type: str | None, size: int):
    if mime_type not in settings.allowed_mime_types:
        raise ValidationError(INVALID_TYPE_MESSAGE)
    if size <= 0:
        raise ValidationError("Empty file")
    if size > settings.max_upload_bytes:
        raise ValidationError(f"File too large (max {settings.max_upload_bytes} bytes)")


async def stage_upload(file: UploadFile, upload_dir: Path | None = None) -> StagedUpload:
    """Write an incoming upload to the staging directory after validating it."""
    if file.content_type not in settings.allowed_mime_types:
        raise ValidationError(INVALID_TYPE_MESSAGE)

    # Read in chunks so an oversized body is rejected before it is buffered whole.
    max_bytes = settings.max_upload_bytes
    size = 0
    chunks: list[bytes] = []
    while True:
        chunk = await file.read(1024 * 1024)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            raise ValidationError(f"File too large (max {max_bytes} bytes)")
        chunks.append(chunk)
    check_upload(file.content_type, size)

    directory = upload_dir or settings.upload_dir
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / staged_filename(file.filename or "")
    path.write_bytes(b"".join(chunks))
    return StagedUpload(
        path=path,
        original_name=file.filename or path.name,
        mime_type=file.content_type,
        size=size,
    )


def discard_staged(staged: StagedUpload):
    try:
        staged.path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove staged upload %s: %s", staged.path, exc)
