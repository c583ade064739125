from __future__ import annotations

import mimetypes
from pathlib import PurePosixPath

GENERIC_CONTENT_TYPES = frozenset({"application/octet-stream", "binary/octet-stream"})
MEDIA_TOP_LEVEL_TYPES = frozenset({"audio", "video", "image"})

# MimeTypes() only knows the interpreter's built-in table, which lags behind
# on newer media formats.
_EXTRA_TYPES = {
    ".aac": "audio/aac",
    ".avif": "image/avif",
    ".flac": "audio/flac",
    ".m3u8": "application/vnd.apple.mpegurl",
    ".m4a": "audio/mp4",
    ".m4v": "video/mp4",
    ".mkv": "video/x-matroska",
    ".mp3": "audio/mpeg",
    ".mp4": "video/mp4",
    ".oga": "audio/ogg",
    ".ogg": "audio/ogg",
    ".ogv": "video/ogg",
    ".opus": "audio/opus",
    ".svg": "image/svg+xml",
    ".ts": "video/mp2t",
    ".wasm": "application/wasm",
    ".weba": "audio/webm",
    ".webm": "video/webm",
    ".webp": "image/webp",
}

_registry = mimetypes.MimeTypes()
for _extension, _type in _EXTRA_TYPES.items():
    _registry.add_type(_type, _extension)


def _base_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def guess_content_type(key: str) -> str | None:
    """Return the MIME type registered for the key's file extension, if any."""
    suffix = PurePosixPath(key).suffix.lower()
    if not suffix:
        return None
    strict, common = _registry.types_map[True], _registry.types_map[False]
    return strict.get(suffix) or common.get(suffix)


def is_generic_content_type(content_type: str) -> bool:
    return _base_type(content_type) in GENERIC_CONTENT_TYPES


def is_media_content_type(content_type: str) -> bool:
    top_level = _base_type(content_type).split("/", 1)[0]
    return top_level in MEDIA_TOP_LEVEL_TYPES
