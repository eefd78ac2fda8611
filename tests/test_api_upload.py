"""API tests for avatar uploads, with the S3 client patched out."""

import io
from unittest.mock import patch

import pytest
from starlette.datastructures import Headers, UploadFile

from app.core.errors import BadRequestError
from app.services import S3Service
from app.utils.uploads.val_upload_avatar import MAX_IMAGE_SIZE, validate_avatar

BASE_URL = "https://cdn.test/"
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def s3():
    with patch.object(S3Service, "s3") as client, \
            patch.object(S3Service.settings, "AWS_S3_BASE_URL", BASE_URL):
        yield client


async def upload(client, name="avatar.png", content=PNG, content_type="image/png"):
    return await client.post("/api/upload/avatar", files={"file": (name, content, content_type)})


class TestUploadAvatar:

    async def test_upload_sets_avatar(self, jane, s3):
        response = await upload(jane)
        assert response.status_code == 200
        avatar = response.json()["data"]["avatar"]
        assert avatar.startswith(f"{BASE_URL}uploads/avatars/jane/avatar-")
        assert avatar.endswith(".png")
        s3.upload_fileobj.assert_called_once()
        s3.delete_object.assert_not_called()

        me = await jane.get("/api/auth/me")
        assert me.json()["data"]["avatar"] == avatar

    async def test_new_upload_removes_previous_object(self, jane, s3):
        first = (await upload(jane)).json()["data"]["avatar"]
        second = (await upload(jane, name="portrait.webp", content_type="image/webp")).json()["data"]["avatar"]
        assert second != first
        s3.delete_object.assert_called_once()
        assert s3.delete_object.call_args.kwargs["Key"] == first[len(BASE_URL):]

    async def test_rejects_non_image(self, jane, s3):
        response = await upload(jane, name="notes.txt", content=b"hello", content_type="text/plain")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"
        s3.upload_fileobj.assert_not_called()

    async def test_rejects_image_type_mismatch(self, jane, s3):
        response = await upload(jane, name="avatar.png", content_type="application/pdf")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"

    async def test_rejects_oversized_file(self, jane, s3):
        response = await upload(jane, content=b"\x00" * (MAX_IMAGE_SIZE + 1))
        assert response.status_code == 413
        assert response.json()["error"]["code"] == "FILE_TOO_LARGE"
        s3.upload_fileobj.assert_not_called()

    async def test_requires_login(self, client, s3):
        response = await upload(client)
        assert response.status_code == 401


class TestDeleteAvatar:

    async def test_delete_resets_to_default(self, jane, s3):
        avatar = (await upload(jane)).json()["data"]["avatar"]
        response = await jane.delete("/api/upload/avatar")
        assert response.status_code == 200
        assert response.json()["data"]["avatar"] is None
        assert s3.delete_object.call_args.kwargs["Key"] == avatar[len(BASE_URL):]

    async def test_delete_without_upload_skips_s3(self, jane, s3):
        response = await jane.delete("/api/upload/avatar")
        assert response.status_code == 200
        s3.delete_object.assert_not_called()


class TestValidateAvatar:

    async def test_empty_file(self):
        file = UploadFile(file=io.BytesIO(b""), filename="avatar.png", headers=Headers({"content-type": "image/png"}))
        with pytest.raises(BadRequestError) as exc:
            await validate_avatar(file)
        assert exc.value.code == "NO_FILE"

    async def test_returns_size_and_rewinds(self):
        file = UploadFile(file=io.BytesIO(PNG), filename="avatar.PNG", headers=Headers({"content-type": "image/png"}))
        assert await validate_avatar(file) == len(PNG)
        assert await file.read() == PNG
