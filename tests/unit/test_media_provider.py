"""
Unit tests for LocalMediaStorage
"""
import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from providers.media_provider import LocalMediaStorage, classify_media, is_allowed


def make_upload(filename: str, content: bytes, content_type: str = "application/octet-stream") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture
def storage(tmp_path):
    return LocalMediaStorage(tmp_path / "uploads", "/uploads/", max_bytes=16)


class TestMediaClassification:
    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("a.JPG", "image"),
            ("a.webp", "image"),
            ("a.mov", "video"),
            ("a.ogg", "audio"),
            ("a.txt", None),
            ("noext", None),
        ],
    )
    def test_classify_media(self, filename, expected):
        assert classify_media(filename) == expected

    def test_is_allowed(self):
        assert is_allowed("clip.mp4", None)
        assert is_allowed("blob", "image/png")
        assert not is_allowed("notes.txt", "text/plain")


class TestLocalMediaStorage:
    async def test_save_image(self, storage):
        stored = await storage.save(make_upload("photo.png", b"\x89PNG....", "image/png"))

        assert stored.media_type == "image"
        assert stored.url.startswith("/uploads/")
        assert stored.url.endswith(".png")
        saved = storage.directory / stored.url.rsplit("/", 1)[1]
        assert saved.read_bytes() == b"\x89PNG...."

    async def test_rejects_unsupported_type(self, storage):
        assert await storage.save(make_upload("notes.txt", b"hello", "text/plain")) is None

    async def test_rejects_oversize_upload(self, storage):
        assert await storage.save(make_upload("big.mp3", b"x" * 17, "audio/mpeg")) is None
        assert list(storage.directory.iterdir()) == []

    async def test_empty_upload(self, storage):
        assert await storage.save(make_upload("empty.jpg", b"", "image/jpeg")) is None
        assert list(storage.directory.iterdir()) == []

    async def test_missing_filename(self, storage):
        assert await storage.save(make_upload("", b"data", "image/jpeg")) is None

    async def test_discard(self, storage):
        stored = await storage.save(make_upload("clip.mp4", b"frames", "video/mp4"))

        storage.discard(stored)
        storage.discard(stored)

        assert list(storage.directory.iterdir()) == []
