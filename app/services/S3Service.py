"""S3 Service for hosting avatar images on AWS S3."""

import logging
from typing import Optional
import uuid
import boto3
from fastapi import UploadFile
from slugify import slugify
from app.core.config import settings

logger = logging.getLogger(__name__)

s3 = boto3.client(
    "s3",
    region_name=settings.AWS_REGION,
    aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
    aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
)


def build_object_key(filename: str, folder: str = "uploads", username: Optional[str] = None) -> str:
    file_ext = filename.split(".")[-1].lower()
    base_name = ".".join(filename.split(".")[:-1])
    safe_name = slugify(base_name) or "file"

    user_segment = slugify(username) if username else "anonymous"

    return f"{folder}/{user_segment}/{safe_name}-{uuid.uuid4()}.{file_ext}"


def upload_file_to_s3(file: UploadFile, folder: str = "uploads", username: Optional[str] = None) -> tuple[str, str]:
    """Upload and return (public url, object key)."""
    object_key = build_object_key(file.filename, folder, username)

    s3.upload_fileobj(
        file.file,
        settings.AWS_S3_BUCKET,
        object_key,
        ExtraArgs={"ContentType": file.content_type},
    )

    return f"{settings.AWS_S3_BASE_URL}{object_key}", object_key


def delete_file_from_s3(object_key: str) -> bool:
    """Delete an object; failures are logged and reported as False."""
    if not object_key:
        return False
    try:
        s3.delete_object(Bucket=settings.AWS_S3_BUCKET, Key=object_key)
        return True
    except Exception as e:
        logger.warning(f"⚠️ Could not delete S3 object {object_key}: {e}")
        return False
