# tests/test_core/test_uploads.py

import io
from unittest.mock import MagicMock

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from movieshelf.core.exceptions import AppException, PosterRejectedException, PosterUploadFailedException
from movieshelf.services.posters import PosterResolver
from movieshelf.services.uploads import build_poster_key, upload_poster
from movieshelf.utils.aws import S3Client


def _upload(data: bytes, filename: str = "dune.jpg", content_type: str = "image/jpeg") -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename=filename, headers=Headers({"content-type": content_type}))


def _resolver():
    client = MagicMock()
    return PosterResolver(S3Client("test-bucket", region_name="us-east-1", client=client)), client


def test_build_poster_key_uses_prefix_and_millis():
    assert build_poster_key("dune.jpg", 1700000000000) == "posters/1700000000000-dune.jpg"


def test_build_poster_key_strips_directories_and_unsafe_chars():
    assert build_poster_key("C:\\tmp\\../evil<>.png", 1, prefix="p/") == "p/1-evil__.png"
    assert build_poster_key("", 5) == "posters/5-poster"


@pytest.mark.anyio
async def test_upload_poster_stores_and_returns_object_url():
    resolver, client = _resolver()
    url = await upload_poster(_upload(b"\x89PNG..."), resolver)

    kwargs = client.put_object.call_args.kwargs
    assert kwargs["Bucket"] == "test-bucket"
    assert kwargs["Key"].startswith("posters/") and kwargs["Key"].endswith("-dune.jpg")
    assert kwargs["ContentType"] == "image/jpeg"
    assert url == f"https://test-bucket.s3.us-east-1.amazonaws.com/{kwargs['Key']}"


@pytest.mark.anyio
async def test_upload_poster_rejects_non_images():
    resolver, client = _resolver()
    with pytest.raises(PosterRejectedException) as ei:
        await upload_poster(_upload(b"hello", "notes.txt", "text/plain"), resolver)
    assert ei.value.status_code == 400
    assert ei.value.detail == "Only image files are allowed!"
    client.put_object.assert_not_called()


@pytest.mark.anyio
async def test_upload_poster_enforces_size_cap(monkeypatch):
    from movieshelf.services import uploads

    monkeypatch.setattr(uploads.settings, "POSTER_MAX_BYTES", 1024 * 1024)
    resolver, client = _resolver()
    with pytest.raises(PosterRejectedException) as ei:
        await upload_poster(_upload(b"x" * (1024 * 1024 + 1)), resolver)
    assert ei.value.status_code == 413
    client.put_object.assert_not_called()


@pytest.mark.anyio
async def test_upload_poster_rejects_empty_file():
    resolver, _ = _resolver()
    with pytest.raises(PosterRejectedException):
        await upload_poster(_upload(b""), resolver)


@pytest.mark.anyio
async def test_upload_poster_without_storage_is_unavailable():
    with pytest.raises(AppException) as ei:
        await upload_poster(_upload(b"img"), PosterResolver(None, bucket="test-bucket"))
    assert ei.value.status_code == 503


@pytest.mark.anyio
async def test_upload_poster_storage_failure_is_bad_gateway():
    resolver, client = _resolver()
    client.put_object.side_effect = RuntimeError("s3 down")
    with pytest.raises(PosterUploadFailedException) as ei:
        await upload_poster(_upload(b"img"), resolver)
    assert ei.value.status_code == 502
