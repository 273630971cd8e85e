"""Storage backends for uploaded audio binaries.

Two implementations share one contract:

- ``store`` persists an upload under a freshly generated key and returns a
  :class:`StoredObject`;
- ``resolve`` turns a key into an addressable URL (computed on every call);
- ``remove`` deletes the object behind a key. Absent objects are not an error,
  and backend failures are logged instead of raised so they never block the
  record deletion that triggered them.

Exactly one backend is built at startup by :func:`build_storage` and handed to
the request handlers through the ``get_storage`` dependency.
"""

import asyncio
import logging
import secrets
import time
from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import aiofiles
import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import BotoCoreError
from botocore.exceptions import ClientError
from fastapi import Request
from prometheus_client import Counter

from app.core.config import Settings
from app.core.custom_logging import log_execution
from app.core.custom_logging import logger
from app.core.errors import StorageError

CHUNK_SIZE = 16 * 1024  # 16KB chunks

STORAGE_OPERATIONS = Counter(
    "storage_operations",
    "Storage backend operations",
    ["backend", "operation", "outcome"],
)


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


@dataclass(frozen=True)
class StoredObject:
    key: str
    location: str
    size: int


def generate_key(original_filename: str | None) -> str:
    """Unique per call: millisecond timestamp plus 48 random bits, original extension kept."""
    ext = Path(original_filename or "").suffix.lower()
    return f"audio-{time.time_ns() // 1_000_000}-{secrets.token_hex(6)}{ext}"


async def copy_stream(source: AsyncReadable, target: Path) -> int:
    """Write ``source`` to ``target`` in chunks, returning the number of bytes written."""
    written = 0
    async with aiofiles.open(target, "wb") as f:
        while chunk := await source.read(CHUNK_SIZE):
            await f.write(chunk)
            written += len(chunk)
    return written


class StorageBackend(ABC):
    name: str

    @abstractmethod
    async def store(
        self, file: AsyncReadable, content_type: str, original_filename: str
    ) -> StoredObject:
        """Persist ``file`` under a new key.

        Raises:
            StorageError: If the backend rejected or could not complete the write.
        """

    @abstractmethod
    def resolve(self, key: str) -> str:
        """Return the URL the object behind ``key`` is reachable at."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete the object behind ``key``; never raises."""


class LocalStorage(StorageBackend):
    """Keeps files in a directory served by the application under ``url_prefix``."""

    name = "local"

    def __init__(self, root: str | Path, url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path.parent != self.root.resolve():
            raise ValueError(f"Invalid storage key: {key!r}")
        return path

    @log_execution(level=logging.DEBUG)
    async def store(
        self, file: AsyncReadable, content_type: str, original_filename: str
    ) -> StoredObject:
        key = generate_key(original_filename)
        path = self.path_for(key)
        try:
            size = await copy_stream(file, path)
        except OSError as e:
            await asyncio.to_thread(path.unlink, missing_ok=True)
            STORAGE_OPERATIONS.labels(self.name, "store", "error").inc()
            raise StorageError("File save failed") from e

        STORAGE_OPERATIONS.labels(self.name, "store", "ok").inc()
        logger.info(f"Stored {original_filename!r} as {path} ({size} bytes)")
        return StoredObject(key=key, location=self.resolve(key), size=size)

    def resolve(self, key: str) -> str:
        return f"{self.url_prefix}/{key}"

    async def remove(self, key: str) -> None:
        try:
            path = self.path_for(key)
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except (OSError, ValueError) as e:
            STORAGE_OPERATIONS.labels(self.name, "remove", "error").inc()
            logger.error(f"Failed to remove local file {key}: {e!r}", exc_info=True)
            return
        STORAGE_OPERATIONS.labels(self.name, "remove", "ok").inc()
        logger.info(f"Removed local file {key}")


class S3Storage(StorageBackend):
    """S3 (or S3-compatible) bucket; uploads go through a local staging file."""

    name = "s3"

    def __init__(
        self,
        client,
        bucket: str,
        staging_dir: str | Path,
        region: str | None = None,
        endpoint_url: str | None = None,
        force_path_style: bool = False,
        public_base_url: str | None = None,
    ):
        self._client = client
        self.bucket = bucket
        self.staging_dir = Path(staging_dir)
        self.region = region
        self.endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None
        self.force_path_style = force_path_style
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        self.staging_dir.mkdir(parents=True, exist_ok=True)

    @log_execution(level=logging.DEBUG)
    async def store(
        self, file: AsyncReadable, content_type: str, original_filename: str
    ) -> StoredObject:
        key = generate_key(original_filename)
        staging_path = self.staging_dir / key
        try:
            size = await copy_stream(file, staging_path)
            await asyncio.to_thread(
                self._client.upload_file,
                str(staging_path),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (OSError, ClientError, BotoCoreError, S3UploadFailedError) as e:
            STORAGE_OPERATIONS.labels(self.name, "store", "error").inc()
            logger.error(f"Failed to upload {original_filename!r} to s3://{self.bucket}/{key}: {e}")
            raise StorageError("File upload failed") from e
        finally:
            await asyncio.to_thread(staging_path.unlink, missing_ok=True)

        STORAGE_OPERATIONS.labels(self.name, "store", "ok").inc()
        logger.info(f"Uploaded {original_filename!r} -> s3://{self.bucket}/{key}")
        return StoredObject(key=key, location=self.resolve(key), size=size)

    def resolve(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        if self.endpoint_url:
            if self.force_path_style:
                return f"{self.endpoint_url}/{self.bucket}/{key}"
            scheme, _, host = self.endpoint_url.partition("://")
            return f"{scheme}://{self.bucket}.{host}/{key}"
        if self.region:
            return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    async def remove(self, key: str) -> None:
        # DeleteObject succeeds for keys that do not exist
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            STORAGE_OPERATIONS.labels(self.name, "remove", "error").inc()
            logger.error(f"Failed to delete s3://{self.bucket}/{key}: {e}", exc_info=True)
            return
        STORAGE_OPERATIONS.labels(self.name, "remove", "ok").inc()
        logger.info(f"Deleted s3://{self.bucket}/{key}")


def build_storage(settings: Settings) -> StorageBackend:
    """Construct the backend selected by ``STORAGE_BACKEND``."""
    if settings.STORAGE_BACKEND == "s3":
        client = boto3.client(
            "s3",
            region_name=settings.S3_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            config=Config(
                s3={"addressing_style": "path" if settings.S3_FORCE_PATH_STYLE else "auto"}
            ),
        )
        logger.info(f"Using S3 storage, bucket {settings.S3_BUCKET_NAME}")
        return S3Storage(
            client,
            bucket=settings.S3_BUCKET_NAME,
            staging_dir=settings.STAGING_PATH,
            region=settings.S3_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
            force_path_style=settings.S3_FORCE_PATH_STYLE,
            public_base_url=settings.S3_PUBLIC_BASE_URL,
        )
    logger.info(f"Using local storage at {Path(settings.STORAGE_PATH).resolve()}")
    return LocalStorage(settings.STORAGE_PATH, settings.STATIC_URL_PREFIX)


def get_storage(request: Request) -> StorageBackend:
    """Dependency returning the backend built at startup."""
    return request.app.state.storage
