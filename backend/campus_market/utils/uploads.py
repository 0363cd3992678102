import logging
import os
from typing import List, Tuple
from uuid import uuid4

from fastapi import HTTPException, UploadFile

from campus_market.config import config

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads"
PDF_TYPE = "application/pdf"


def is_allowed_type(content_type: str) -> bool:
    return bool(content_type) and (content_type.startswith("image/") or content_type == PDF_TYPE)


def _upload_path(file_name: str) -> str:
    # Never let a client-supplied name escape the upload directory
    return os.path.join(config.UPLOAD_DIR, os.path.basename(file_name))


def check_upload(file_data: bytes, content_type: str):
    if not is_allowed_type(content_type):
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {content_type}")
    if len(file_data) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="File exceeds the maximum upload size")


def save_upload(file_data: bytes, original_name: str, content_type: str) -> str:
    """
    Store a file in the upload directory and return its public path
    """
    check_upload(file_data, content_type)

    ext = os.path.splitext(original_name or "")[1].lower()
    file_name = f"{uuid4().hex}{ext}"
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    try:
        with open(_upload_path(file_name), "wb") as out:
            out.write(file_data)
    except OSError as e:
        logger.error("Failed to store upload %s: %s", file_name, e)
        raise HTTPException(status_code=500, detail="Failed to store uploaded file")

    logger.info("Stored upload %s (%d bytes)", file_name, len(file_data))
    return f"{URL_PREFIX}/{file_name}"


def delete_upload(file_name: str):
    """
    Delete a stored file
    """
    path = _upload_path(file_name)
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="File not found")
    try:
        os.remove(path)
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete file: {str(e)}")


async def read_uploads(files: List[UploadFile]) -> List[Tuple[bytes, str, str]]:
    """Read and check every file; nothing is written unless all of them pass."""
    contents = []
    for file in files:
        data = await file.read()
        check_upload(data, file.content_type)
        contents.append((data, file.filename, file.content_type))
    return contents


def save_uploads(contents: List[Tuple[bytes, str, str]]) -> List[str]:
    paths = []
    try:
        for data, name, content_type in contents:
            paths.append(save_upload(data, name, content_type))
    except HTTPException:
        discard_uploads(paths)
        raise
    return paths


def discard_uploads(paths: List[str]):
    for path in paths:
        try:
            os.remove(_upload_path(path))
        except OSError as e:
            logger.warning("Could not remove upload %s: %s", path, e)


async def store_listing_files(files: List[UploadFile]) -> Tuple[List[str], List[str]]:
    """Save uploaded listing files, split into (images, attachments)."""
    if len(files) > config.MAX_LISTING_FILES:
        raise HTTPException(status_code=400, detail=f"At most {config.MAX_LISTING_FILES} files are allowed")

    contents = await read_uploads(files)
    images, attachments = [], []
    for (_, _, content_type), path in zip(contents, save_uploads(contents)):
        if content_type == PDF_TYPE:
            attachments.append(path)
        else:
            images.append(path)
    return images, attachments
