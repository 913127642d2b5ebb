"""Object storage for uploaded photos and videos.

The post lifecycle only needs two capabilities from the store: upload a
file and get back a stable reference, and delete a previously uploaded
object.  :class:`MediaStore` describes that contract and
:class:`S3MediaStore` implements it with boto3 against any S3 compatible
service (AWS S3, Cloudflare R2, MinIO).
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import BinaryIO
from uuid import uuid4

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from app.config import AppConfig, get_config
from app.errors import UpstreamFailure

logger = logging.getLogger(__name__)

MEDIA_IMAGE = "image"
MEDIA_VIDEO = "video"


@dataclass(frozen=True)
class StoredMedia:
    url: str
    public_id: str


def media_kind_for(content_type: str | None) -> str:
    """``video/*`` uploads are stored as videos, everything else as images."""
    if content_type and content_type.startswith("video/"):
        return MEDIA_VIDEO
    return MEDIA_IMAGE


class MediaStore(ABC):
    """Upload/delete capability consumed by the post lifecycle."""

    @abstractmethod
    async def upload(
        self,
        fileobj: BinaryIO,
        kind: str,
        content_type: str | None = None,
        filename: str | None = None,
    ) -> StoredMedia:
        """Store ``fileobj`` completely or raise without leaving an object."""

    @abstractmethod
    async def delete(self, public_id: str, kind: str) -> None:
        """Remove an object; deleting a missing object is not an error."""


class S3MediaStore(MediaStore):
    def __init__(self, config: AppConfig, client=None):
        self.bucket = config.media_bucket
        self.folder = config.media_folder.strip("/")
        self.endpoint_url = config.media_endpoint_url
        self.public_base_url = config.media_public_base_url
        self.client = client or boto3.client(
            "s3",
            endpoint_url=config.media_endpoint_url,
            region_name=config.media_region,
            aws_access_key_id=config.media_access_key_id,
            aws_secret_access_key=config.media_secret_access_key,
            config=Config(
                signature_version="s3v4",
                connect_timeout=config.media_timeout_seconds,
                read_timeout=config.media_timeout_seconds,
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )

    def _key_for(self, kind: str, filename: str | None) -> str:
        ext = os.path.splitext(filename or "")[1].lower()
        return f"{self.folder}/{kind}s/{uuid4().hex}{ext}"

    def url_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    async def upload(self, fileobj, kind, content_type=None, filename=None):
        key = self._key_for(kind, filename)
        extra_args = {"ContentType": content_type} if content_type else {}
        try:
            await run_in_threadpool(
                self.client.upload_fileobj,
                fileobj,
                self.bucket,
                key,
                ExtraArgs=extra_args,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Upload of %s to %s failed: %s", key, self.bucket, exc)
            raise UpstreamFailure("Failed to upload to cloud storage") from exc
        logger.info("Uploaded %s %s", kind, key)
        return StoredMedia(url=self.url_for(key), public_id=key)

    async def delete(self, public_id, kind):
        try:
            await run_in_threadpool(
                self.client.delete_object, Bucket=self.bucket, Key=public_id
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Delete of %s from %s failed: %s", public_id, self.bucket, exc)
            raise UpstreamFailure("Failed to delete from cloud storage") from exc
        logger.info("Deleted %s %s", kind, public_id)


@lru_cache
def _default_store() -> S3MediaStore:
    return S3MediaStore(get_config())


def get_media_store() -> MediaStore:
    """FastAPI dependency returning the process wide store."""
    return _default_store()
