from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .responses import (
    ALLOWED_METHODS,
    ROUTE_NOT_FOUND_TEXT,
    build_object_response,
    method_not_allowed_response,
    not_found_response,
    store_failure_response,
)
from .routing import RouteNotFound, describe_route, resolve_route
from .settings import GatewaySettings, load_settings
from .store import FetchFailed, ObjectNotFound, ObjectStore, build_fetch_request

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .responses import GatewayResponse

LOG = logging.getLogger("s3_gateway.gateway")


class S3Gateway:
    """Serves objects from the store for GET and HEAD requests.

    Settings and the store client are fixed at construction and shared
    read-only by all requests.
    """

    def __init__(self, settings: GatewaySettings, store: ObjectStore):
        self._settings = settings
        self._store = store

    @property
    def settings(self) -> GatewaySettings:
        return self._settings

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> S3Gateway:
        return cls(settings, ObjectStore.from_settings(settings))

    @classmethod
    def from_env(cls) -> S3Gateway:
        return cls.from_settings(load_settings())

    async def startup(self) -> None:
        if self._settings.bucket:
            LOG.info("Hosting content from bucket '%s'", self._settings.bucket)
        LOG.info(
            "S3 gateway ready (route=%s, endpoint=%s, region=%s)",
            describe_route(self._settings),
            self._settings.endpoint or "aws",
            self._settings.region,
        )

    async def shutdown(self) -> None:
        self._store.close()

    async def handle(
        self, method: str, path: str, headers: Mapping[str, str]
    ) -> GatewayResponse:
        LOG.debug("handle method=%s path=%s", method, path)
        if method not in ALLOWED_METHODS:
            return method_not_allowed_response()

        route = resolve_route(
            path,
            default_bucket=self._settings.bucket,
            url_prefix=self._settings.url_prefix,
        )
        if isinstance(route, RouteNotFound):
            LOG.debug("no object for path %s: %s", path, route.reason)
            return not_found_response(ROUTE_NOT_FOUND_TEXT)

        request = build_fetch_request(route, headers)
        if method == "HEAD":
            result = await self._store.fetch_metadata(request)
        else:
            result = await self._store.fetch(request)

        if isinstance(result, ObjectNotFound):
            return not_found_response()
        if isinstance(result, FetchFailed):
            return store_failure_response()
        return build_object_response(result, route.key)
