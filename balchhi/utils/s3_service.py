import io
import logging
import os
import uuid
from typing import Optional
from datetime import datetime, timezone
from functools import lru_cache
from PIL import Image
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from balchhi.utils.errors import DependencyFailure, ValidationError

logger = logging.getLogger(__name__)

# Top-level prefixes in the bucket
FOLDERS = {"evidence", "documents", "items"}

CONTENT_TYPES = {"webp": "image/webp", "jpg": "image/jpeg"}


@lru_cache
def get_s3_client():
    return boto3.client(
        service_name="s3",
        endpoint_url=f"https://{os.getenv('CLOUDFLARE_ACCOUNT_ID')}.r2.cloudflarestorage.com",
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        region_name="auto",
    )


def compress_image(data: bytes, max_width=1400, quality=80):
    """Re-encode an uploaded photo as WebP (JPEG if WebP is unavailable).

    Raises OSError when ``data`` is not an image Pillow can read.
    """
    img = Image.open(io.BytesIO(data)).convert("RGB")

    if img.width > max_width:
        img = img.resize((max_width, int(img.height * max_width / img.width)), Image.LANCZOS)

    buffer = io.BytesIO()
    try:
        img.save(buffer, format="WEBP", quality=quality, method=6)
        ext = "webp"
    except (OSError, KeyError) as e:
        logger.warning("WebP encoding failed, falling back to JPEG: %s", e)
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality, optimize=True)
        ext = "jpg"

    buffer.seek(0)
    return buffer, ext


def object_key(folder: str, original_name: Optional[str], ext: str) -> str:
    stem = os.path.splitext(os.path.basename(original_name or ""))[0] or "upload"
    stamp = int(datetime.now(timezone.utc).timestamp())

    return f"{folder}/{stem}-{stamp}-{uuid.uuid4().hex[:6]}.{ext}"


def upload_to_s3(buffer: io.BytesIO, ext: str, original_name: Optional[str], folder: str = "evidence") -> str:
    if folder not in FOLDERS:
        raise ValueError(f"Unknown upload folder: {folder}")

    key = object_key(folder, original_name, ext)
    get_s3_client().upload_fileobj(
        buffer,
        os.getenv("R2_BUCKET"),
        key,
        ExtraArgs={"ContentType": CONTENT_TYPES.get(ext, "application/octet-stream")},
    )
    logger.info("Stored %s", key)

    return key


def generate_signed_url(key: str, expires_in=3600):
    try:
        return get_s3_client().generate_presigned_url(
            "get_object",
            Params={"Bucket": os.getenv("R2_BUCKET"), "Key": key},
            ExpiresIn=expires_in,
        )
    except Exception:
        logger.exception("Could not sign URL for %s", key)
        return None


def store_image(data: bytes, original_name: Optional[str], folder: str) -> str:
    """Compress and upload an image, returning its object key."""
    try:
        buffer, ext = compress_image(data)
    except OSError:
        raise ValidationError("Only image uploads are supported")

    try:
        return upload_to_s3(buffer, ext, original_name, folder=folder)
    except (BotoCoreError, ClientError):
        logger.exception("Upload to %s failed", folder)
        raise DependencyFailure("File storage is unavailable, please try again later")
