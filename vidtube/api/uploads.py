"""Staging of uploaded files on local disk before they go to the media store."""

import asyncio
from pathlib import Path
from typing import Optional, Union
from uuid import uuid4

import structlog
from fastapi import UploadFile

logger = structlog.get_logger(__name__)


async def stage_upload(upload: Optional[UploadFile], upload_dir: Union[str, Path]) -> Optional[Path]:
    """Write an uploaded file to the staging directory.

    Args:
        upload: The multipart file, or None if the field was not sent
        upload_dir: Directory to stage into (created if missing)

    Returns:
        Path of the staged copy, or None if nothing was uploaded
    """
    if upload is None or not upload.filename:
        return None

    directory = Path(upload_dir)
    directory.mkdir(parents=True, exist_ok=True)

    path = directory / f"{uuid4().hex}{Path(upload.filename).suffix}"
    data = await upload.read()
    await asyncio.to_thread(path.write_bytes, data)

    logger.debug("upload_staged", file=upload.filename, path=str(path))
    return path


def discard_staged(*paths: Optional[Path]) -> None:
    """Remove staged files that are still on disk."""
    for path in paths:
        if path is not None:
            path.unlink(missing_ok=True)
