from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .settings import GatewaySettings


@dataclass(frozen=True)
class ObjectLocation:
    bucket: str
    key: str


@dataclass(frozen=True)
class RouteNotFound:
    reason: str


RouteResult = ObjectLocation | RouteNotFound


def resolve_route(
    path: str, *, default_bucket: str | None, url_prefix: str = ""
) -> RouteResult:
    """Resolve a request path into the bucket and key it addresses.

    With a default bucket the whole (prefix-stripped) path is the key,
    otherwise its first segment names the bucket. Keys are passed on as
    opaque strings; dot segments are not collapsed.
    """
    trimmed = path.lstrip("/")
    if url_prefix:
        head = f"{url_prefix}/"
        if not trimmed.startswith(head):
            return RouteNotFound(f"path outside prefix /{url_prefix}")
        trimmed = trimmed[len(head) :]

    if default_bucket:
        bucket, key = default_bucket, trimmed
    elif "/" in trimmed:
        bucket, key = trimmed.split("/", 1)
    else:
        bucket, key = trimmed, ""

    if not bucket:
        return RouteNotFound("no bucket in path")
    if not key:
        return RouteNotFound("empty key")
    return ObjectLocation(bucket=bucket, key=key)


def describe_route(settings: GatewaySettings) -> str:
    route = "/{key...}" if settings.bucket else "/{bucket}/{key...}"
    if settings.url_prefix:
        route = f"/{settings.url_prefix}{route}"
    return route
