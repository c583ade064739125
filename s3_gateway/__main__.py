from __future__ import annotations

import copy
import logging
import sys
from typing import Any

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from .errors import ConfigError
from .settings import load_settings

LOG = logging.getLogger("s3_gateway")


def build_log_config(level: str) -> dict[str, Any]:
    """Extend uvicorn's logging setup with the gateway's own loggers.

    uvicorn applies this in every worker process, which plain
    ``basicConfig`` in the parent would not reach.
    """
    config = copy.deepcopy(LOGGING_CONFIG)
    config["loggers"]["s3_gateway"] = {
        "handlers": ["default"],
        "level": level,
        "propagate": False,
    }
    return config


def main() -> int:
    try:
        settings = load_settings()
    except ConfigError:
        logging.basicConfig(level=logging.ERROR)
        LOG.exception("failed to load configuration")
        return 1

    uvicorn.run(
        "s3_gateway.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        workers=settings.effective_workers,
        log_config=build_log_config(settings.log_level),
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
