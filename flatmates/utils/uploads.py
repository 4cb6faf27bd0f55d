import logging
import os
import re
import time
from dataclasses import dataclass

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from fastapi import UploadFile

from flatmates import config
from flatmates.exceptions import StoreError, ValidationError

logger = logging.getLogger("uvicorn.error")

IMAGE_TYPES = re.compile(r"jpeg|jpg|png|gif")
DOCUMENT_TYPES = re.compile(r"jpeg|jpg|png|gif|pdf|doc|docx")

AVATAR_MAX_BYTES = 5 * 1000 * 1000
IMAGE_MAX_BYTES = 10 * 1000 * 1000

CLOUDINARY_FOLDER = "flatmates/properties"


@dataclass
class StoredFile:
    url: str
    filename: str
    content_type: str


def configure_cloudinary() -> bool:
    """Point the Cloudinary SDK at our account; False when none is configured."""
    if not config.CLOUDINARY_CLOUD_NAME:
        logger.info("CLOUDINARY_CLOUD_NAME not set, listing images stay on local disk")
        return False
    cloudinary.config(
        cloud_name=config.CLOUDINARY_CLOUD_NAME,
        api_key=config.CLOUDINARY_API_KEY,
        api_secret=config.CLOUDINARY_API_SECRET,
        secure=True,
    )
    return True


def _read_checked(upload: UploadFile, field: str, max_bytes: int, allowed: re.Pattern, check_mime: bool) -> bytes:
    ext = os.path.splitext(upload.filename or "")[1].lower()
    mime_ok = not check_mime or bool(allowed.search(upload.content_type or ""))
    if not allowed.search(ext) or not mime_ok:
        kind = "Images only!" if allowed is IMAGE_TYPES else "Images and documents only!"
        raise ValidationError([{"msg": f"Error: {kind}", "param": field, "location": "file"}])

    data = upload.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValidationError([{"msg": "File too large", "param": field, "location": "file"}])
    return data


def save_upload(upload: UploadFile, subdir: str, field: str, max_bytes: int,
                allowed: re.Pattern = IMAGE_TYPES, check_mime: bool = True) -> StoredFile:
    """Write the upload under UPLOAD_DIR/<subdir> and return its public URL."""
    data = _read_checked(upload, field, max_bytes, allowed, check_mime)

    directory = os.path.join(config.UPLOAD_DIR, subdir)
    os.makedirs(directory, exist_ok=True)
    filename = f"{int(time.time() * 1000)}-{os.path.basename(upload.filename)}"
    with open(os.path.join(directory, filename), "wb") as fh:
        fh.write(data)

    return StoredFile(
        url=f"/uploads/{subdir}/{filename}",
        filename=filename,
        content_type=upload.content_type or "application/octet-stream",
    )


def save_avatar(upload: UploadFile) -> str:
    return save_upload(upload, "avatars", "avatar", AVATAR_MAX_BYTES).url


def save_listing_image(upload: UploadFile) -> str:
    """Upload a listing photo to Cloudinary, or to local disk without an account."""
    if not config.CLOUDINARY_CLOUD_NAME:
        return save_upload(upload, "properties", "images", IMAGE_MAX_BYTES).url

    data = _read_checked(upload, "images", IMAGE_MAX_BYTES, IMAGE_TYPES, True)
    try:
        result = cloudinary.uploader.upload(data, folder=CLOUDINARY_FOLDER, resource_type="image")
    except cloudinary.exceptions.Error as e:
        logger.error("Error uploading listing image %s: %s", upload.filename, e)
        raise StoreError("Image upload failed") from e
    return result["secure_url"]


def save_attachment(upload: UploadFile) -> dict:
    stored = save_upload(upload, "messages", "attachments", IMAGE_MAX_BYTES,
                         allowed=DOCUMENT_TYPES, check_mime=False)
    return {
        "type": "image" if stored.content_type.startswith("image/") else "document",
        "url": stored.url,
        "fileType": stored.content_type,
    }
