"""
Product image uploads: type check, disk write, public URL.
"""

import logging
import os
import time

from fastapi import HTTPException, Request, UploadFile

from config import UPLOAD_DIR, UPLOAD_URL_PATH

logger = logging.getLogger(__name__)

FILE_TYPE_MAP = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/jpg": "jpg",
}

MAX_GALLERY_IMAGES = 10


def extension_for(content_type: str) -> str:
    ext = FILE_TYPE_MAP.get((content_type or "").lower())
    if ext is None:
        raise HTTPException(status_code=400, detail="Invalid image type")
    return ext


def build_filename(original_name: str, ext: str) -> str:
    base = os.path.basename(original_name or "image").split(" ")
    return f"{'-'.join(base)}-{int(time.time() * 1000)}.{ext}"


def public_url(request: Request, filename: str) -> str:
    return f"{str(request.base_url).rstrip('/')}{UPLOAD_URL_PATH}/{filename}"


def check_images(files) -> None:
    """Reject the whole batch before anything is written."""
    for f in files:
        extension_for(f.content_type)


def save_image(upload: UploadFile, upload_dir: str = UPLOAD_DIR) -> str:
    """Store the upload and return its filename."""
    ext = extension_for(upload.content_type)
    filename = build_filename(upload.filename, ext)
    os.makedirs(upload_dir, exist_ok=True)
    with open(os.path.join(upload_dir, filename), "wb") as out:
        out.write(upload.file.read())
    logger.info("Stored upload %s (%s)", filename, upload.content_type)
    return filename
