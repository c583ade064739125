from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import format_datetime
from functools import partial
from typing import TYPE_CHECKING, Any

from anyio import CancelScope, to_thread
from boto3.session import Session
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .errors import StoreErrorKind, classify_store_error

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Mapping

    from .routing import ObjectLocation
    from .settings import GatewaySettings

LOG = logging.getLogger("s3_gateway.store")

CHUNK_SIZE = 64 * 1024


async def _run_sync(func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
    return await to_thread.run_sync(partial(func, *args, **kwargs))


def format_http_date(value: datetime) -> str:
    aware = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    return format_datetime(aware.astimezone(UTC), usegmt=True)


@dataclass(frozen=True)
class FetchRequest:
    bucket: str
    key: str
    range: str | None = None

    def to_boto_kwargs(self) -> dict[str, str]:
        kwargs = {"Bucket": self.bucket, "Key": self.key}
        if self.range is not None:
            kwargs["Range"] = self.range
        return kwargs


def build_fetch_request(
    location: ObjectLocation, headers: Mapping[str, str]
) -> FetchRequest:
    """Build the store request for a resolved location.

    Only the ``Range`` header is forwarded, and it is forwarded verbatim;
    range syntax and satisfiability are left to the store.
    """
    range_header = next(
        (value for name, value in headers.items() if name.lower() == "range"), None
    )
    return FetchRequest(bucket=location.bucket, key=location.key, range=range_header)


@dataclass(frozen=True)
class ObjectMetadata:
    content_length: int | None = None
    content_type: str | None = None
    e_tag: str | None = None
    content_range: str | None = None
    accept_ranges: str | None = None
    last_modified: str | None = None

    @classmethod
    def from_boto(cls, result: Mapping[str, Any]) -> ObjectMetadata:
        last_modified = result.get("LastModified")
        if isinstance(last_modified, datetime):
            last_modified = format_http_date(last_modified)
        return cls(
            content_length=result.get("ContentLength"),
            content_type=result.get("ContentType"),
            e_tag=result.get("ETag"),
            content_range=result.get("ContentRange"),
            accept_ranges=result.get("AcceptRanges"),
            last_modified=last_modified,
        )


class ObjectBody:
    """One-shot async view over a botocore ``StreamingBody``.

    Chunks are read on demand, so a slow consumer throttles the reads from
    the store. The underlying connection is released once iteration ends,
    fails or is cancelled. A reply without a body (HEAD, empty objects on
    some stores) iterates as empty.
    """

    def __init__(self, stream: Any | None, chunk_size: int = CHUNK_SIZE):
        self._stream = stream
        self._chunk_size = chunk_size
        self._consumed = False
        self._closed = stream is None

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._consumed:
            msg = "object body already consumed"
            raise RuntimeError(msg)
        self._consumed = True
        if self._stream is None:
            return
        try:
            while True:
                chunk = await _run_sync(self._stream.read, self._chunk_size)
                if not chunk:
                    break
                yield chunk
        except Exception:
            LOG.exception("object stream failed after response start")
            raise
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        with CancelScope(shield=True):
            await _run_sync(self._stream.close)


@dataclass(frozen=True)
class FetchedObject:
    metadata: ObjectMetadata
    body: ObjectBody


@dataclass(frozen=True)
class ObjectNotFound:
    bucket: str
    key: str


@dataclass(frozen=True)
class FetchFailed:
    bucket: str
    key: str
    cause: Exception


FetchResult = FetchedObject | ObjectNotFound | FetchFailed


class ObjectStore:
    """Read-only access to an S3 compatible store.

    The wrapped boto3 client is thread safe and shared by every request.
    """

    def __init__(self, client: Any):
        self._client = client

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> ObjectStore:
        session = Session(
            aws_access_key_id=settings.access_key,
            aws_secret_access_key=settings.secret_key,
            aws_session_token=settings.session_token,
            region_name=settings.region,
        )
        client = session.client(
            "s3",
            endpoint_url=settings.endpoint,
            config=BotoConfig(
                signature_version="s3v4",
                retries={"max_attempts": 3},
                s3={"addressing_style": settings.addressing_style},
            ),
        )
        return cls(client)

    async def fetch(self, request: FetchRequest) -> FetchResult:
        """Issue GetObject and wrap the reply body for streaming."""
        return await self._call(self._client.get_object, request)

    async def fetch_metadata(self, request: FetchRequest) -> FetchResult:
        """Issue HeadObject; the result carries an empty body.

        HeadObject answers a missing bucket with the same bare 404 as a
        missing key, so a miss is confirmed against the bucket before it is
        reported as not found.
        """
        result = await self._call(self._client.head_object, request)
        if not isinstance(result, ObjectNotFound):
            return result
        try:
            await _run_sync(self._client.head_bucket, Bucket=request.bucket)
        except (ClientError, BotoCoreError) as error:
            return self._failed(request, error)
        return result

    async def _call(
        self, operation: Callable[..., Mapping[str, Any]], request: FetchRequest
    ) -> FetchResult:
        try:
            result = await _run_sync(operation, **request.to_boto_kwargs())
        except (ClientError, BotoCoreError) as error:
            if classify_store_error(error) is StoreErrorKind.NOT_FOUND:
                LOG.debug("store miss for s3://%s/%s", request.bucket, request.key)
                return ObjectNotFound(bucket=request.bucket, key=request.key)
            return self._failed(request, error)

        metadata = ObjectMetadata.from_boto(result)
        LOG.debug("store reply for s3://%s/%s: %s", request.bucket, request.key, metadata)
        return FetchedObject(metadata=metadata, body=ObjectBody(result.get("Body")))

    @staticmethod
    def _failed(request: FetchRequest, error: Exception) -> FetchFailed:
        LOG.warning(
            "store request failed for s3://%s/%s: %s",
            request.bucket,
            request.key,
            error,
        )
        return FetchFailed(bucket=request.bucket, key=request.key, cause=error)

    def close(self) -> None:
        self._client.close()
