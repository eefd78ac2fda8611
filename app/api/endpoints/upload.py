import logging
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import aget_db
from app.core.security import get_current_user
from app.models.user import User
from app.services.S3Service import delete_file_from_s3
from app.utils.response import success_response
from app.utils.serializers import serialize_user
from app.utils.uploads.val_upload_avatar import validate_and_upload_avatar

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/upload", tags=["upload"])


@router.post("/avatar")
async def upload_avatar(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """
    Upload a new avatar image to S3
    The previous uploaded avatar (if any) is removed once the new one is stored
    """
    logger.info(f"Avatar upload from {current_user.username}: {file.filename} ({file.content_type})")
    url, object_key = await validate_and_upload_avatar(file, current_user.username)

    previous_key = current_user.avatar_public_id
    current_user.avatar = url
    current_user.avatar_public_id = object_key
    await db.commit()

    if previous_key and previous_key != object_key:
        delete_file_from_s3(previous_key)

    return success_response(serialize_user(current_user), "Avatar uploaded successfully")


@router.delete("/avatar")
async def delete_avatar(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Remove the uploaded avatar and fall back to the default placeholder."""
    if current_user.avatar_public_id:
        delete_file_from_s3(current_user.avatar_public_id)
    current_user.avatar_public_id = None
    current_user.avatar = settings.DEFAULT_AVATAR_URL or None
    await db.commit()
    return success_response(serialize_user(current_user), "Avatar removed successfully")
