from __future__ import annotations

import enum

from botocore.exceptions import ClientError

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


class ConfigError(Exception):
    """Raised when the gateway settings cannot be loaded."""


class StoreErrorKind(enum.Enum):
    NOT_FOUND = "not-found"
    OTHER = "other"


def classify_store_error(error: Exception) -> StoreErrorKind:
    """Classify an object store failure as a missing key or anything else.

    HeadObject replies carry no error body, so a missing key surfaces as a
    bare ``404`` code there, while GetObject reports ``NoSuchKey``. A missing
    bucket is treated as a store failure, not a missing object.
    """
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code")
        if code in NOT_FOUND_CODES:
            return StoreErrorKind.NOT_FOUND
    return StoreErrorKind.OTHER
