# app/services/storage.py
"""Durable object storage for original uploads, slide images and narration audio."""
import logging
from pathlib import Path
from typing import Iterable, Optional, Protocol, runtime_checkable

import aioboto3
import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when an object cannot be written to or removed from storage."""


@runtime_checkable
class ObjectStorage(Protocol):
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` and return a retrievable URI."""
        ...

    async def delete(self, key: str) -> None:
        ...


class LocalObjectStorage:
    """Stores objects below a directory; URIs point at the app's /media mount."""

    def __init__(self, root: str, base_url: str = ""):
        self.root = Path(root).expanduser().resolve()
        self.base_url = (base_url or "").rstrip("/")

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path == self.root or self.root not in path.parents:
            raise StorageError(f"Invalid storage key: {key!r}")
        return path

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/media/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self.path_for(key)
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, "wb") as handle:
                await handle.write(data)
        except OSError as e:
            raise StorageError(f"Failed to write {key}: {e}") from e
        logger.debug(f"Stored {len(data)} bytes ({content_type}) at {path}")
        return self.url_for(key)

    async def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            if await aiofiles.os.path.exists(path):
                await aiofiles.os.remove(path)
                logger.info(f"Removed file: {path}")
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e


class S3ObjectStorage:
    """S3 (or S3-compatible) bucket accessed through aioboto3."""

    def __init__(
        self,
        bucket: str,
        *,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ):
        if not bucket:
            raise StorageError("S3_BUCKET not configured")
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self._session = aioboto3.Session(
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
        )

    def url_for(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region or 'us-east-1'}.amazonaws.com/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            async with self._session.client("s3", endpoint_url=self.endpoint_url) as s3:
                await s3.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except Exception as e:
            raise StorageError(f"S3 upload failed for {key}: {e}") from e
        return self.url_for(key)

    async def delete(self, key: str) -> None:
        try:
            async with self._session.client("s3", endpoint_url=self.endpoint_url) as s3:
                await s3.delete_object(Bucket=self.bucket, Key=key)
        except Exception as e:
            raise StorageError(f"S3 delete failed for {key}: {e}") from e


def build_storage(settings) -> ObjectStorage:
    backend = (settings.STORAGE_BACKEND or "local").lower()
    if backend == "s3":
        return S3ObjectStorage(
            settings.S3_BUCKET,
            region=settings.AWS_REGION,
            access_key_id=settings.AWS_ACCESS_KEY_ID,
            secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            endpoint_url=settings.S3_ENDPOINT_URL,
        )
    if backend != "local":
        raise ValueError(f"Unsupported storage backend: {settings.STORAGE_BACKEND}")
    return LocalObjectStorage(settings.UPLOADS_DIR, settings.PUBLIC_BASE_URL)


async def delete_keys(storage: ObjectStorage, keys: Iterable[Optional[str]]) -> int:
    """Best-effort removal of several keys. Returns how many were deleted."""
    deleted = 0
    for key in keys:
        if not key:
            continue
        try:
            await storage.delete(key)
            deleted += 1
        except StorageError as e:
            logger.warning(f"Could not delete stored object {key}: {e}")
    return deleted


def lecture_asset_keys(lecture) -> list:
    """Every storage key owned by a lecture: original file, slide images, audio."""
    keys = [lecture.file_key]
    for slide in lecture.slides or []:
        keys.extend([slide.image_key, slide.audio_key])
    return [key for key in keys if key]


async def release_lecture_assets(storage: ObjectStorage, lecture) -> int:
    deleted = await delete_keys(storage, lecture_asset_keys(lecture))
    logger.info(f"Released {deleted} stored asset(s) for lecture {lecture.id}")
    return deleted
