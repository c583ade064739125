"""HTTP gateway serving S3 objects as plain web resources."""

from .app import create_app
from .gateway import S3Gateway
from .settings import GatewaySettings

__all__ = ["GatewaySettings", "S3Gateway", "create_app"]
