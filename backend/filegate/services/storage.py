import asyncio
import logging
import mimetypes
from collections.abc import AsyncIterator, Iterator
from contextlib import closing
from dataclasses import dataclass
from typing import IO, Any, Final
from urllib.parse import quote

import boto3
from botocore.client import BaseClient, Config
from botocore.exceptions import BotoCoreError
from fastapi.concurrency import iterate_in_threadpool
from fastapi.responses import StreamingResponse

from filegate.core.config import Settings, get_settings
from filegate.models import AccessType, HttpMethod
from filegate.services.naming import build_file_name

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"
PUBLIC_READ_ACL: Final[str] = "public-read"
PRESIGN_EXPIRES_IN: Final[int] = 60 * 60
DOWNLOAD_CHUNK_SIZE: Final[int] = 8192


class UnsupportedOperationError(Exception):
    """Raised when a presigned URL is requested for a verb other than GET or PUT."""


@dataclass(frozen=True)
class ObjectStream:
    key: str
    body: Any
    etag: str | None = None
    content_length: int | None = None


def resolve_content_type(key: str) -> str:
    content_type, _ = mimetypes.guess_type(key, strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def content_disposition(key: str) -> str:
    try:
        key.encode("latin-1")
    except UnicodeEncodeError:
        return f"attachment; filename*=UTF-8''{quote(key, safe='')}"
    return f"attachment; filename={key}"


def build_s3_client(settings: Settings) -> BaseClient:
    session = boto3.session.Session()
    return session.client(
        "s3",
        endpoint_url=str(settings.s3_endpoint) if settings.s3_endpoint else None,
        aws_access_key_id=settings.s3_access_key,
        aws_secret_access_key=settings.s3_secret_key,
        region_name=settings.s3_region,
        config=Config(signature_version="s3v4"),
    )


class StorageService:
    """Gateway to the S3-compatible bucket that backs every file operation."""

    def __init__(
        self,
        bucket: str,
        client: BaseClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._bucket = bucket
        self.client = client or build_s3_client(self.settings)

    @property
    def bucket(self) -> str:
        return self._bucket

    def generate_presigned_url(
        self,
        key: str,
        method: HttpMethod | str,
        access_type: AccessType | None = None,
    ) -> str:
        if method == HttpMethod.GET:
            return self._presign_get(key)
        if method == HttpMethod.PUT:
            return self._presign_put(key, access_type)
        raise UnsupportedOperationError(f"Unsupported HTTP method: {method}")

    def _presign_get(self, key: str) -> str:
        params = {"Bucket": self.bucket, "Key": key}
        logger.info("Presigning GET for %s (expires_in=%ss)", params, PRESIGN_EXPIRES_IN)
        url = self.client.generate_presigned_url(
            "get_object",
            Params=params,
            ExpiresIn=PRESIGN_EXPIRES_IN,
        )
        logger.debug("Presigned GET url for %s: %s", key, url)
        return url

    def _presign_put(self, key: str, access_type: AccessType | None) -> str:
        params = {"Bucket": self.bucket, "Key": key}
        if access_type == AccessType.PUBLIC:
            params["ACL"] = PUBLIC_READ_ACL
        logger.info("Presigning PUT for %s (expires_in=%ss)", params, PRESIGN_EXPIRES_IN)
        url = self.client.generate_presigned_url(
            "put_object",
            Params=params,
            ExpiresIn=PRESIGN_EXPIRES_IN,
        )
        logger.debug("Presigned PUT url for %s: %s", key, url)
        return url

    async def upload_file(
        self,
        fileobj: IO[bytes],
        filename: str | None,
        size: int,
        access_type: AccessType = AccessType.PRIVATE,
    ) -> str:
        key = build_file_name(filename)
        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "ContentLength": size,
        }
        if access_type == AccessType.PUBLIC:
            params["ACL"] = PUBLIC_READ_ACL

        def _upload() -> None:
            with closing(fileobj):
                self.client.put_object(Body=fileobj, **params)

        await asyncio.to_thread(_upload)
        logger.info("Uploaded %s (%s bytes, access=%s)", key, size, access_type.value)
        return key

    async def download_file(self, key: str) -> ObjectStream:
        response = await asyncio.to_thread(
            self.client.get_object, Bucket=self.bucket, Key=key
        )
        return ObjectStream(
            key=key,
            body=response["Body"],
            etag=response.get("ETag"),
            content_length=response.get("ContentLength"),
        )

    def iter_object_chunks(self, stream: ObjectStream) -> Iterator[bytes]:
        """Copy ``stream`` in fixed-size chunks, closing it however the copy ends.

        A read failure part-way through is logged and ends the iteration, so
        the client receives a truncated body rather than an error.
        """
        sent = 0
        try:
            while True:
                chunk = stream.body.read(DOWNLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                sent += len(chunk)
                yield chunk
        except (OSError, BotoCoreError):
            logger.exception("Download of %s aborted after %s bytes", stream.key, sent)
        finally:
            stream.body.close()

    async def stream_object(self, stream: ObjectStream) -> AsyncIterator[bytes]:
        """Feed the chunk copy to the response, closing the body if the client goes away."""
        chunks = self.iter_object_chunks(stream)
        sent = 0
        try:
            async for chunk in iterate_in_threadpool(chunks):
                yield chunk
                sent += len(chunk)
        except (asyncio.CancelledError, GeneratorExit):
            logger.warning("Client stopped receiving %s after %s bytes", stream.key, sent)
            raise
        finally:
            chunks.close()

    async def download_file_response(self, key: str) -> StreamingResponse:
        headers = {
            "Content-Type": resolve_content_type(key),
            "Cache-Control": "no-cache",
            "Content-Disposition": content_disposition(key),
        }
        stream = await self.download_file(key)
        try:
            if stream.etag is not None:
                headers["ETag"] = stream.etag
            return StreamingResponse(self.stream_object(stream), headers=headers)
        except Exception:
            stream.body.close()
            raise


_storage_service: StorageService | None = None


def get_storage_service() -> StorageService:
    global _storage_service
    if _storage_service is None:
        settings = get_settings()
        _storage_service = StorageService(settings.s3_bucket, settings=settings)
    return _storage_service


def reset_storage_service() -> None:
    global _storage_service
    _storage_service = None
