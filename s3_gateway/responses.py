from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

from litestar.background_tasks import BackgroundTask
from litestar.enums import MediaType
from litestar.response import Response, Stream
from litestar.status_codes import (
    HTTP_200_OK,
    HTTP_206_PARTIAL_CONTENT,
    HTTP_404_NOT_FOUND,
    HTTP_405_METHOD_NOT_ALLOWED,
    HTTP_502_BAD_GATEWAY,
)

from .content_types import (
    guess_content_type,
    is_generic_content_type,
    is_media_content_type,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .store import FetchedObject, ObjectBody

LOG = logging.getLogger("s3_gateway.responses")

CACHE_CONTROL = "public, max-age=31536000"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
ROUTE_NOT_FOUND_TEXT = "Resource not found!"
OBJECT_NOT_FOUND_TEXT = "404 - Not found"
STORE_FAILURE_TEXT = "502 - Bad Gateway"
METHOD_NOT_ALLOWED_TEXT = "405 - Method not allowed"
ALLOWED_METHODS = ("GET", "HEAD")


@dataclass(frozen=True)
class GatewayResponse:
    """Status, headers and content of a response, decided before sending.

    Object responses carry the store body; fixed responses carry ``text``.
    """

    status_code: int
    headers: Mapping[str, str]
    body: ObjectBody | None = None
    text: str = ""

    def to_litestar(self, *, head: bool = False) -> Response:
        headers = dict(self.headers)
        if self.body is None:
            return Response(
                content=b"" if head else self.text,
                status_code=self.status_code,
                headers=headers,
                media_type=MediaType.TEXT,
            )
        # Litestar cancels the body loop on disconnect without closing the
        # iterator; the background task releases the store connection.
        return Stream(
            content=self.body,
            status_code=self.status_code,
            headers=headers,
            media_type=headers.setdefault("Content-Type", DEFAULT_CONTENT_TYPE),
            background=BackgroundTask(self.body.aclose),
        )


def resolve_content_type(reported: str | None, key: str) -> str | None:
    """Pick the Content-Type to send for an object.

    Stores often label uploads as a generic octet stream; in that case the
    key's extension is a better answer. A specific store type always wins.
    """
    if reported is not None and not is_generic_content_type(reported):
        return reported
    guessed = guess_content_type(key)
    if guessed is not None:
        LOG.debug("content type %s derived from key %s", guessed, key)
        return guessed
    return reported


def build_object_response(fetched: FetchedObject, key: str) -> GatewayResponse:
    metadata = fetched.metadata
    is_partial = metadata.content_range is not None

    headers: dict[str, str] = {}
    if metadata.content_length is not None:
        headers["Content-Length"] = str(metadata.content_length)

    content_type = resolve_content_type(metadata.content_type, key)
    if content_type is not None:
        headers["Content-Type"] = content_type
        # Keep media bytes exact so ranged reads stay decodable.
        if is_media_content_type(content_type):
            headers["Content-Encoding"] = "identity"

    if metadata.e_tag is not None:
        headers["ETag"] = metadata.e_tag
    if is_partial:
        headers["Content-Range"] = metadata.content_range
    if metadata.accept_ranges is not None:
        headers["Accept-Ranges"] = metadata.accept_ranges
    if metadata.last_modified is not None:
        headers["Last-Modified"] = metadata.last_modified
    headers["Cache-Control"] = CACHE_CONTROL

    return GatewayResponse(
        status_code=HTTP_206_PARTIAL_CONTENT if is_partial else HTTP_200_OK,
        headers=MappingProxyType(headers),
        body=fetched.body,
    )


def plain_text_response(
    status_code: int, text: str, extra_headers: Mapping[str, str] | None = None
) -> GatewayResponse:
    return GatewayResponse(
        status_code=status_code,
        headers=MappingProxyType(dict(extra_headers or {})),
        text=text,
    )


def not_found_response(text: str = OBJECT_NOT_FOUND_TEXT) -> GatewayResponse:
    return plain_text_response(HTTP_404_NOT_FOUND, text)


def store_failure_response() -> GatewayResponse:
    return plain_text_response(HTTP_502_BAD_GATEWAY, STORE_FAILURE_TEXT)


def method_not_allowed_response() -> GatewayResponse:
    return plain_text_response(
        HTTP_405_METHOD_NOT_ALLOWED,
        METHOD_NOT_ALLOWED_TEXT,
        {"Allow": ", ".join(ALLOWED_METHODS)},
    )
