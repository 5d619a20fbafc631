"""
Supabase Storage service for the company logo.

Uploaded logos are stored under logos/{uuid}.{ext} in the configured
bucket; the storage path is what the `company_logo` setting holds.
"""

import logging
import mimetypes
from typing import Optional
from uuid import uuid4

from supabase import Client

from backend.config import settings
from backend.utils.constants import ALLOWED_LOGO_CONTENT_TYPES, MAX_LOGO_SIZE_BYTES
from backend.utils.errors import InvalidInput

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


def resolve_logo_content_type(filename: str, content_type: Optional[str] = None) -> str:
    """
    Determine and validate the MIME type of an uploaded logo.

    Raises:
        InvalidInput: If the file is not a JPEG, PNG, GIF or WebP image
    """
    if not content_type or content_type == "application/octet-stream":
        content_type, _ = mimetypes.guess_type(filename or "")
    if content_type not in ALLOWED_LOGO_CONTENT_TYPES:
        raise InvalidInput("Only image files are allowed (JPEG, PNG, GIF, WebP)")
    return content_type


async def upload_logo(
    supabase_client: Client,
    image_bytes: bytes,
    filename: str,
    content_type: Optional[str] = None,
) -> str:
    """
    Upload a company logo to Supabase Storage.

    This function:
    1. Validates type and size (max 5 MB)
    2. Generates a unique storage path: logos/{uuid}.{ext}
    3. Uploads the bytes to the storage bucket

    Returns:
        Storage path to save in the company_logo setting

    Raises:
        InvalidInput: Empty, too large or non-image file
        Exception: If the upload itself fails
    """
    if not image_bytes:
        raise InvalidInput("No file uploaded")
    if len(image_bytes) > MAX_LOGO_SIZE_BYTES:
        raise InvalidInput("File too large. Maximum size is 5MB")

    content_type = resolve_logo_content_type(filename, content_type)
    storage_path = f"logos/{uuid4()}.{_EXTENSIONS[content_type]}"

    logger.info(
        f"Uploading company logo: filename={filename}, size={len(image_bytes)} bytes, "
        f"content_type={content_type}, storage_path={storage_path}"
    )

    try:
        supabase_client.storage.from_(
            settings.SUPABASE_STORAGE_BUCKET
        ).upload(
            path=storage_path,
            file=image_bytes,
            file_options={"content-type": content_type}
        )
    except Exception as e:
        logger.error(f"Failed to upload company logo to storage: {e}", exc_info=True)
        raise

    logger.info(f"Uploaded company logo: storage_path={storage_path}")
    return storage_path


async def delete_logo(supabase_client: Client, storage_path: Optional[str]) -> bool:
    """
    Remove a previously uploaded logo.

    Returns:
        True if removed, False if there was nothing to remove or removal
        failed (a stale file never blocks replacing the logo)
    """
    if not storage_path:
        return False

    try:
        supabase_client.storage.from_(settings.SUPABASE_STORAGE_BUCKET).remove([storage_path])
    except Exception as e:
        logger.warning(f"Failed to delete old logo storage_path={storage_path}: {e}")
        return False

    logger.info(f"Deleted old logo: storage_path={storage_path}")
    return True
