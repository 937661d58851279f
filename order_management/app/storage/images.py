import re
import time
import uuid
from pathlib import Path
from typing import Any, List, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from ..core.exceptions import UpstreamFailure
from ..core.settings import OrderManagementSettings
from ..utils.logging import get_order_logger

logger = get_order_logger("order_management.storage")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def make_storage_key(filename: Optional[str]) -> str:
    """Unique, path-safe object key that keeps the original file name."""
    base = Path(filename or "image").name
    safe = _UNSAFE_CHARS.sub("_", base).strip("._") or "image"
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe}"


class ImageStorage(Protocol):
    """Where uploaded order images live."""

    async def save(self, key: str, content: bytes, content_type: Optional[str]) -> str:
        ...

    async def url_for(self, key: str) -> str:
        ...

    async def delete(self, key: str) -> None:
        ...


class LocalImageStorage:
    """Images on local disk, served by the app under ``url_prefix``."""

    def __init__(self, root: str, url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def _path(self, key: str) -> Path:
        return self.root / Path(key).name

    async def save(self, key: str, content: bytes, content_type: Optional[str]) -> str:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            await run_in_threadpool(self._path(key).write_bytes, content)
        except OSError as e:
            raise UpstreamFailure("Error storing image", error=e)
        return key

    async def url_for(self, key: str) -> str:
        return f"{self.url_prefix}/{key}"

    async def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise UpstreamFailure("Error deleting image", error=e)


class S3ImageStorage:
    """Images in an S3 bucket; URLs are presigned GETs."""

    def __init__(
        self,
        bucket_name: str,
        client: Any = None,
        region: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        url_expires_seconds: int = 3600,
    ):
        self.bucket_name = bucket_name
        self.url_expires_seconds = url_expires_seconds
        self.s3_client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    async def save(self, key: str, content: bytes, content_type: Optional[str]) -> str:
        params = {"Bucket": self.bucket_name, "Key": key, "Body": content}
        if content_type:
            params["ContentType"] = content_type
        try:
            await run_in_threadpool(self.s3_client.put_object, **params)
        except (ClientError, BotoCoreError) as e:
            logger.error("s3_upload_error", extra={"key": key, "error": str(e)})
            raise UpstreamFailure("Error uploading image", error=e)
        return key

    async def url_for(self, key: str) -> str:
        try:
            return await run_in_threadpool(
                self.s3_client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=self.url_expires_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise UpstreamFailure("Error generating image URL", error=e)

    async def delete(self, key: str) -> None:
        try:
            await run_in_threadpool(
                self.s3_client.delete_object, Bucket=self.bucket_name, Key=key
            )
        except (ClientError, BotoCoreError) as e:
            raise UpstreamFailure("Error deleting image", error=e)


def build_image_storage(settings: OrderManagementSettings) -> ImageStorage:
    if settings.STORAGE_BACKEND == "s3":
        if not settings.S3_BUCKET_NAME:
            raise ValueError("S3_BUCKET_NAME is required when STORAGE_BACKEND is 's3'")
        return S3ImageStorage(
            bucket_name=settings.S3_BUCKET_NAME,
            region=settings.S3_REGION,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            endpoint_url=settings.S3_ENDPOINT_URL,
            url_expires_seconds=settings.S3_URL_EXPIRES_SECONDS,
        )
    return LocalImageStorage(settings.UPLOAD_DIR)


async def discard_images(storage: ImageStorage, keys: List[str]) -> None:
    """Delete stored images, logging failures instead of raising."""
    for key in keys:
        try:
            await storage.delete(key)
        except UpstreamFailure as e:
            logger.warning(
                "Failed to delete order image",
                extra={"key": key, "error": e.details.get("error")},
            )
