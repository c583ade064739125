from __future__ import annotations

import io
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody

from s3_gateway import GatewaySettings, S3Gateway
from s3_gateway.store import ObjectStore

if TYPE_CHECKING:
    from collections.abc import Generator

    from botocore.client import BaseClient
    from pytest_databases._service import DockerService


LAST_MODIFIED = datetime(2024, 5, 17, 8, 30, 0, tzinfo=UTC)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def client_error(code: str, status: int, operation: str = "GetObject") -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} message"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


def streaming_body(data: bytes) -> tuple[StreamingBody, io.BytesIO]:
    """Return a botocore body over ``data`` and its raw stream."""
    raw = io.BytesIO(data)
    return StreamingBody(raw, len(data)), raw


def get_object_reply(data: bytes, **fields: Any) -> dict[str, Any]:
    body, _raw = streaming_body(data)
    reply: dict[str, Any] = {
        "Body": body,
        "ContentLength": len(data),
        "ContentType": "text/plain",
        "ETag": '"0123456789abcdef"',
        "AcceptRanges": "bytes",
        "LastModified": LAST_MODIFIED,
    }
    reply.update(fields)
    return {key: value for key, value in reply.items() if value is not None}


@pytest.fixture
def s3_client() -> MagicMock:
    """A stand-in for a boto3 S3 client."""
    return MagicMock()


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(region="us-east-1")


@pytest.fixture
def gateway(settings: GatewaySettings, s3_client: MagicMock) -> S3Gateway:
    return S3Gateway(settings, ObjectStore(s3_client))


# MinIO backed fixtures for the integration tests


@dataclass
class MinioService:
    endpoint: str
    access_key: str
    secret_key: str
    secure: bool


@pytest.fixture(scope="session")
def minio_access_key() -> str:
    return os.getenv("MINIO_ACCESS_KEY", "minio")


@pytest.fixture(scope="session")
def minio_secret_key() -> str:
    return os.getenv("MINIO_SECRET_KEY", "minio123")


@pytest.fixture(scope="session")
def minio_secure() -> bool:
    return os.getenv("MINIO_SECURE", "false").lower() in {
        "true",
        "1",
        "yes",
        "y",
        "t",
        "on",
    }


@pytest.fixture(scope="session")
def minio_service_name() -> str:
    return "minio-s3-gateway"


@pytest.fixture(scope="session")
def minio_service(
    docker_service: DockerService,
    minio_access_key: str,
    minio_secret_key: str,
    minio_secure: bool,
    minio_service_name: str,
) -> Generator[MinioService]:
    from urllib.error import URLError
    from urllib.request import Request, urlopen

    from pytest_databases.types import ServiceContainer

    def check(_service: ServiceContainer) -> bool:
        scheme = "https" if minio_secure else "http"
        url = f"{scheme}://{_service.host}:{_service.port}/minio/health/ready"
        if not url.startswith(("http:", "https:")):
            msg = "URL must start with 'http:' or 'https:'"
            raise ValueError(msg)
        try:
            with urlopen(url=Request(url, method="GET"), timeout=10) as response:
                return response.status == 200
        except (URLError, ConnectionError):
            return False

    with docker_service.run(
        image="quay.io/minio/minio",
        name=minio_service_name,
        command="server /data",
        container_port=9000,
        timeout=20,
        pause=0.5,
        env={
            "MINIO_ROOT_USER": minio_access_key,
            "MINIO_ROOT_PASSWORD": minio_secret_key,
        },
        check=check,
    ) as service:
        yield MinioService(
            endpoint=f"{service.host}:{service.port}",
            access_key=minio_access_key,
            secret_key=minio_secret_key,
            secure=minio_secure,
        )


@pytest.fixture
def minio_endpoint(minio_service: MinioService) -> str:
    scheme = "https" if minio_service.secure else "http"
    return f"{scheme}://{minio_service.endpoint}"


@pytest.fixture
def minio_s3_client(minio_service: MinioService, minio_endpoint: str) -> BaseClient:
    """A boto3 client used to seed the MinIO service."""
    import boto3
    from botocore.config import Config

    return boto3.client(
        "s3",
        endpoint_url=minio_endpoint,
        aws_access_key_id=minio_service.access_key,
        aws_secret_access_key=minio_service.secret_key,
        region_name="us-east-1",
        config=Config(s3={"addressing_style": "path"}),
    )


@pytest.fixture
def minio_env(
    minio_service: MinioService, minio_endpoint: str
) -> Generator[dict[str, str]]:
    """Point the gateway settings at the MinIO service."""
    env_vars = {
        "S3_GATEWAY_ENDPOINT": minio_endpoint,
        "S3_GATEWAY_ACCESS_KEY_ID": minio_service.access_key,
        "S3_GATEWAY_SECRET_ACCESS_KEY": minio_service.secret_key,
        "S3_GATEWAY_REGION": "us-east-1",
        "S3_GATEWAY_ADDRESSING_STYLE": "path",
    }

    original_values = {}
    for key, value in env_vars.items():
        original_values[key] = os.environ.get(key)
        os.environ[key] = value

    yield env_vars

    for key, original_value in original_values.items():
        if original_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original_value
