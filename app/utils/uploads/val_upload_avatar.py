import logging
from pathlib import Path
from fastapi import UploadFile
from app.core.errors import APIError, BadRequestError
from app.services.S3Service import upload_file_to_s3

logger = logging.getLogger(__name__)

# For avatars (images only)
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp", "image/pjpeg", "image/x-png"}
MAX_IMAGE_SIZE = 5 * 1024 * 1024  # 5MB


async def validate_avatar(file: UploadFile) -> int:
    """Check type and size of an avatar upload. Returns its size in bytes."""
    if not file or not file.filename:
        raise BadRequestError("No file uploaded", "NO_FILE")

    file_ext = Path(file.filename).suffix.lower()
    if file_ext not in ALLOWED_IMAGE_EXTENSIONS or (
        file.content_type and file.content_type not in ALLOWED_IMAGE_TYPES
    ):
        raise BadRequestError(
            f"Invalid file type. Allowed: {', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))}",
            "INVALID_FILE_TYPE",
        )

    content = await file.read()
    if not content:
        raise BadRequestError("Empty file received", "NO_FILE")
    if len(content) > MAX_IMAGE_SIZE:
        raise APIError(413, "File too large. Maximum size: 5MB", "FILE_TOO_LARGE")

    await file.seek(0)
    return len(content)


async def validate_and_upload_avatar(file: UploadFile, username: str) -> tuple[str, str]:
    """
    Validate and upload avatar to S3
    Returns the S3 URL and object key
    """
    await validate_avatar(file)

    try:
        return upload_file_to_s3(
            file,
            folder="uploads/avatars",
            username=username
        )
    except Exception as e:
        logger.error(f"❌ Avatar upload failed for {username}: {e}")
        raise APIError(500, "Failed to upload avatar", "UPLOAD_ERROR")
