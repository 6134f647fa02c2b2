"""Product image uploads: type check, file naming and public URLs."""
import logging
import os
import shutil
import time
from typing import List

from starlette.datastructures import UploadFile

from .config import get_settings
from .errors import ValidationFailed

logger = logging.getLogger(__name__)

FILE_TYPE_MAP = {
    "image/png": "png",
    "image/jpeg": "jpeg",
    "image/jpg": "jpg",
}

PUBLIC_PREFIX = "/public/uploads"
MAX_GALLERY_IMAGES = 10


def stored_filename(original: str, content_type: str) -> str:
    extension = FILE_TYPE_MAP.get(content_type)
    if extension is None:
        raise ValidationFailed("Invalid image type")
    # keep only the base name so the file always lands inside the upload dir
    base = os.path.basename((original or "").replace("\\", "/")).lstrip(".")
    name = "-".join((base or "image").split(" "))
    return f"{name}-{int(time.time() * 1000)}.{extension}"


def save_image(upload: UploadFile, base_url: str) -> str:
    """Write an uploaded image to the upload dir and return its public URL."""
    filename = stored_filename(upload.filename, upload.content_type)
    upload_dir = get_settings().upload_dir
    os.makedirs(upload_dir, exist_ok=True)
    with open(os.path.join(upload_dir, filename), "wb") as out:
        shutil.copyfileobj(upload.file, out)
    logger.info("stored upload %s as %s", upload.filename, filename)
    return f"{base_url.rstrip('/')}{PUBLIC_PREFIX}/{filename}"


def save_gallery(uploads: List[UploadFile], base_url: str) -> List[str]:
    if not uploads:
        raise ValidationFailed("No image files in the request")
    if len(uploads) > MAX_GALLERY_IMAGES:
        raise ValidationFailed(f"At most {MAX_GALLERY_IMAGES} gallery images are allowed")
    # reject the whole batch before writing anything
    for upload in uploads:
        stored_filename(upload.filename, upload.content_type)
    return [save_image(upload, base_url) for upload in uploads]
